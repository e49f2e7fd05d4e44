"""
Registration Models
===================
Sign-up attempt context and typed views of the sign-up responses.
"""

from enum import Enum
from typing import List, Optional
from pydantic import Field

from ..device_fingerprint import DeviceFingerprint
from .base import InstaModel
from .user import AuthenticatedUser


class RegistrationFlow(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class RegistrationContext(InstaModel):
    """
    One sign-up attempt.

    The device is a fresh identity created when the attempt starts;
    every step of the attempt sends its ids and headers.
    """
    flow: RegistrationFlow
    device: DeviceFingerprint
    waterfall_id: str
    email: str = ""
    phone_number: str = ""
    sms_sent: bool = False
    phone_verified: bool = False

    @property
    def device_id(self) -> str:
        return self.device.device_id

    @property
    def phone_id(self) -> str:
        return self.device.phone_guid

    @property
    def guid(self) -> str:
        return self.device.device_guid


class EmailCheck(InstaModel):
    """users/check_email response."""
    valid: bool = False
    available: bool = False
    error_type: str = ""


class PhoneCheck(InstaModel):
    """accounts/check_phone_number response."""
    status: str = ""


class SignUpSmsCode(InstaModel):
    """accounts/send_signup_sms_code response."""
    status: str = ""


class PhoneVerification(InstaModel):
    """accounts/validate_signup_sms_code response."""
    verified: bool = False
    error_type: str = ""


class UsernameSuggestion(InstaModel):
    username: str = ""
    prototype: str = ""


class SuggestionMetadata(InstaModel):
    suggestions: List[UsernameSuggestion] = Field(default_factory=list)


class UsernameSuggestions(InstaModel):
    suggestions_with_metadata: SuggestionMetadata = Field(default_factory=SuggestionMetadata)

    @property
    def usernames(self) -> List[str]:
        return [s.username for s in self.suggestions_with_metadata.suggestions if s.username]


class AccountCreation(InstaModel):
    """accounts/create and accounts/create_validated response."""
    account_created: bool = False
    created_user: Optional[AuthenticatedUser] = None
    error_type: str = ""
