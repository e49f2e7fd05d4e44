"""
Login / Challenge Response Models
=================================
Typed views over the login, two-factor and checkpoint responses.
"""

from enum import Enum
from typing import Any, Dict, Optional
from pydantic import Field

from .base import InstaModel
from .user import AuthenticatedUser


class ChallengeChannel(str, Enum):
    """Side channel for a challenge code. Instagram uses choice=0 for SMS, 1 for email."""
    SMS = "sms"
    EMAIL = "email"

    @property
    def choice(self) -> str:
        return "0" if self is ChallengeChannel.SMS else "1"


class TwoFactorInfo(InstaModel):
    two_factor_identifier: str = ""
    username: str = ""
    obfuscated_phone_number: str = ""
    sms_two_factor_on: bool = False
    totp_two_factor_on: bool = False


class ChallengeInfo(InstaModel):
    api_path: str = ""
    url: str = ""
    hide_webview_header: bool = False
    lock: bool = False
    logout: bool = False
    native_flow: bool = True


class LoginFailure(InstaModel):
    """Body of a non-OK login response. Several signal fields can be set at once."""
    status: str = ""
    message: str = ""
    error_type: str = ""
    invalid_credentials: bool = False
    two_factor_required: bool = False
    two_factor_info: Optional[TwoFactorInfo] = None
    challenge: Optional[ChallengeInfo] = None


class VerifyMethodInfo(InstaModel):
    """Available verification methods for a challenge."""
    step_name: str = ""
    step_data: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[int] = None
    nonce_code: str = ""
    status: str = ""
    message: str = ""

    @property
    def phone_number(self) -> str:
        return str(self.step_data.get("phone_number", "") or "")

    @property
    def email(self) -> str:
        return str(self.step_data.get("email", "") or "")

    @property
    def submit_phone_required(self) -> bool:
        """Challenge wants a phone number submitted before a code can be sent."""
        return self.step_name == "submit_phone"

    @property
    def channels(self) -> list:
        """Channels the user can pick from."""
        found = []
        if self.phone_number:
            found.append(ChallengeChannel.SMS)
        if self.email:
            found.append(ChallengeChannel.EMAIL)
        return found


class ChallengeCodeRequest(InstaModel):
    """Response to requesting a challenge code over SMS or email."""
    step_name: str = ""
    step_data: Dict[str, Any] = Field(default_factory=dict)
    status: str = ""
    message: str = ""

    @property
    def contact_point(self) -> str:
        return str(self.step_data.get("contact_point", "") or "")


class ChallengeVerification(InstaModel):
    """Response to submitting a challenge code."""
    action: str = ""
    status: str = ""
    message: str = ""
    logged_in_user: Optional[AuthenticatedUser] = None

    @property
    def is_logged_in(self) -> bool:
        return self.logged_in_user is not None
