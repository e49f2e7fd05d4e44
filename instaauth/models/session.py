"""
Session Models
==============
Credentials, flow contexts and the persisted session snapshot.
"""

from typing import List, Optional
from pydantic import Field, field_validator

from ..config import STATE_VERSION
from ..device_fingerprint import DeviceFingerprint
from .base import InstaModel
from .user import AuthenticatedUser


class SessionCredentials(InstaModel):
    """
    Mutable per-session credentials.

    csrf_token is re-read from the cookie jar after engine calls.
    rank_token is "{user_pk}_{phone_guid}" and only valid after login.
    """
    username: str = ""
    password: str = ""
    csrf_token: str = ""
    rank_token: str = ""
    facebook_user_id: Optional[str] = None
    logged_in_user: Optional[AuthenticatedUser] = None


class TwoFactorContext(InstaModel):
    """Pending two-factor login, created from a login response."""
    identifier: str
    pending_username: str
    pending_device_id: str
    obfuscated_phone_number: str = ""
    sms_two_factor_on: bool = False
    totp_two_factor_on: bool = False


class ChallengeContext(InstaModel):
    """
    Pending checkpoint.

    challenge_guid / challenge_device_id are created once and reused by
    every sub-step of the same challenge attempt.
    """
    api_path: str
    challenge_guid: str = ""
    challenge_device_id: str = ""


class CookieRecord(InstaModel):
    """One cookie from the transport jar."""
    domain: str
    name: str
    value: str
    path: str = "/"
    expires: Optional[int] = None
    secure: bool = False
    http_only: bool = False

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("cookie name must not be empty")
        return v

    @property
    def sort_key(self):
        return (self.domain, self.path, self.name)


class PersistedState(InstaModel):
    """
    Serializable session snapshot.

    Restoring it yields an authenticated session without re-login,
    as long as the cookies are still valid server-side.
    """
    version: int = STATE_VERSION
    device: DeviceFingerprint
    credentials: SessionCredentials = Field(default_factory=SessionCredentials)
    is_authenticated: bool = False
    raw_cookies: List[CookieRecord] = Field(default_factory=list)
