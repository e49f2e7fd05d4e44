"""
Response Handler
================
Centralized parsing of auth responses and failure classification.

Handles:
    - JSON decoding (undecodable / non-object bodies → ProtocolError)
    - Login failure classification with a fixed priority order
    - Two-factor failure classification
    - Checkpoint detection on arbitrary responses
    - Sign-up error messages
"""

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .config import API_BASE
from .exceptions import ProtocolError
from .models.challenge import ChallengeInfo, LoginFailure
from .result import LoginOutcome, TwoFactorOutcome
from .transport import TransportResponse

logger = logging.getLogger("instaauth.response")

INVALID_CREDENTIAL_ERRORS = ("bad_password", "invalid_user")
CHALLENGE_ERRORS = ("checkpoint_challenge_required", "challenge_required", "checkpoint_required")
RATE_LIMIT_ERRORS = ("rate_limit_error",)
INVALID_CODE_ERRORS = ("sms_code_validation_code_invalid", "invalid_verification_code")
SIGN_UP_ERRORS = {
    "fail": "Sign-up request failed",
    "email_is_taken": "Email is taken.",
    "invalid_email": "Please enter a valid email address.",
    "invalid_nonce": "This code is invalid or has expired.",
    "username_is_taken": "This username isn't available.",
}


class ResponseHandler:
    """Decodes transport responses into dicts and typed failure views."""

    @staticmethod
    def parse(response: TransportResponse) -> Dict[str, Any]:
        """
        Decode a JSON object body.

        Raises:
            ProtocolError: body is not a JSON object
        """
        text = response.text or ""
        if text.startswith("for (;;);"):
            text = text[len("for (;;);"):]
        try:
            data = json.loads(text)
        except (ValueError, TypeError) as e:
            raise ProtocolError(
                f"JSON parse error. Status: {response.status_code}: {text[:200]}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ProtocolError(
                f"Unexpected response shape: {type(data).__name__}",
                status_code=response.status_code,
            )
        return data

    def parse_login_failure(self, response: TransportResponse) -> LoginFailure:
        return LoginFailure.from_body(self.parse(response), response.status_code)

    @staticmethod
    def classify_login_failure(failure: LoginFailure, status_code: int = 400) -> LoginOutcome:
        """
        Map a non-OK login body to an outcome.

        A body can flag several conditions at once; the first match wins:
        invalid credentials > two-factor > challenge > rate limit > unknown.
        """
        error_type = (failure.error_type or "").lower()
        message = (failure.message or "").lower()

        if failure.invalid_credentials or error_type in INVALID_CREDENTIAL_ERRORS:
            if error_type == "bad_password":
                return LoginOutcome.BAD_PASSWORD
            return LoginOutcome.INVALID_USER

        if failure.two_factor_required:
            return LoginOutcome.TWO_FACTOR_REQUIRED

        if error_type in CHALLENGE_ERRORS or message in CHALLENGE_ERRORS:
            return LoginOutcome.CHALLENGE_REQUIRED

        if error_type in RATE_LIMIT_ERRORS or status_code == 429:
            return LoginOutcome.RATE_LIMITED

        return LoginOutcome.EXCEPTION

    @staticmethod
    def classify_two_factor_failure(body: Dict[str, Any]) -> TwoFactorOutcome:
        error_type = str(body.get("error_type", "")).lower()
        if error_type in INVALID_CODE_ERRORS:
            return TwoFactorOutcome.INVALID_CODE
        return TwoFactorOutcome.CODE_EXPIRED

    @staticmethod
    def challenge_api_path(challenge: Optional[ChallengeInfo]) -> str:
        """
        API path of a checkpoint ("/challenge/123/abc/").
        Falls back to the path of `url` when api_path is absent.
        """
        if challenge is None:
            return ""
        if challenge.api_path:
            return challenge.api_path
        if challenge.url:
            path = urlparse(challenge.url).path
            api_prefix = urlparse(API_BASE).path
            if path.startswith(api_prefix):
                path = path[len(api_prefix):]
            return path
        return ""

    def detect_challenge(self, body: Dict[str, Any]) -> str:
        """API path if `body` is a checkpoint response, else ""."""
        message = str(body.get("message", "")).lower()
        error_type = str(body.get("error_type", "")).lower()
        if message not in CHALLENGE_ERRORS and error_type not in CHALLENGE_ERRORS:
            return ""
        raw = body.get("challenge")
        if not isinstance(raw, dict):
            return ""
        return self.challenge_api_path(ChallengeInfo.from_body(raw))

    @staticmethod
    def first_error(body: Dict[str, Any]) -> str:
        """
        First human-readable message of a sign-up error.

        Sign-up endpoints report errors as {"errors": {"field": [msg, ...]}}
        or {"message": {"errors": [msg, ...]}}.
        """
        message = body.get("message")
        errors = body.get("errors")
        if not errors and isinstance(message, dict):
            errors = message.get("errors")
        if isinstance(errors, dict):
            errors = [m for v in errors.values() for m in (v if isinstance(v, list) else [v])]
        if isinstance(errors, list) and errors:
            return str(errors[0])
        return message if isinstance(message, str) else ""

    def sign_up_rejection(self, body: Dict[str, Any]) -> str:
        """Message when a 200 sign-up body still reports a rejection, else ""."""
        error_type = str(body.get("error_type", ""))
        if error_type not in SIGN_UP_ERRORS:
            return ""
        return self.first_error(body) or SIGN_UP_ERRORS[error_type]
