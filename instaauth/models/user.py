"""
User Models
===========
Minimal identity record of the logged-in account.
"""

from typing import Any
from pydantic import Field, field_validator

from .base import InstaModel


class AuthenticatedUser(InstaModel):
    """
    The account a session is logged in as.

    Converted from the `logged_in_user` object of login, two-factor and
    challenge responses, or from the web `viewer` object.

    Fields:
        pk: User numeric ID
        username: Instagram handle
        full_name: Display name
        profile_pic_url: Profile picture URL
    """
    pk: int = 0
    username: str = ""
    full_name: str = ""
    profile_pic_url: str = ""
    profile_pic_id: str = ""
    is_private: bool = False
    is_verified: bool = False

    @field_validator("pk", mode="before")
    @classmethod
    def coerce_pk(cls, v: Any) -> int:
        """Handle pk coming as string."""
        if v is None or v == "":
            return 0
        return int(v)

    @classmethod
    def from_viewer(cls, viewer: dict, username: str = "") -> "AuthenticatedUser":
        """Build from the web `config.viewer` object (keys: id, full_name, profile_pic_url)."""
        return cls(
            pk=viewer.get("id", 0),
            username=viewer.get("username") or username,
            full_name=viewer.get("full_name", ""),
            profile_pic_url=viewer.get("profile_pic_url", ""),
            profile_pic_id="unknown",
        )
