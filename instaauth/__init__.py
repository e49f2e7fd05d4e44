"""
InstaAuth: Instagram Private API Authentication & Session Engine
=================================================================
Login, two-factor, checkpoint challenge, sign-up and logout for the mobile
private API, with a persistable session (device identity + cookies).

Usage:
    from instaauth import AuthEngine, LoginOutcome

    engine = AuthEngine(username="bob", password="secret")
    result = engine.login()
    if result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED:
        engine.two_factor_login("123456")
"""

from .auth import AuthEngine, AuthState
from .config import AuthConfig
from .device_fingerprint import DeviceFingerprint, generate_device_id
from .events import EventData, EventEmitter, EventType
from .exceptions import (
    InstagramError,
    PreconditionError,
    ProtocolError,
    RemoteRejection,
    SequenceError,
    StateCorruptError,
    TransportError,
    ValidationError,
)
from .log_config import LogConfig
from .models import (
    AuthenticatedUser,
    ChallengeChannel,
    ChallengeContext,
    CookieRecord,
    PersistedState,
    RegistrationContext,
    SessionCredentials,
    TwoFactorContext,
)
from .result import AuthResult, LoginOutcome, StepOutcome, TwoFactorOutcome
from .session_store import SessionStore
from .signer import RequestSigner, sign
from .transport import CurlTransport, Transport, TransportResponse

__version__ = "0.1.0"

__all__ = [
    "AuthEngine",
    "AuthState",
    "AuthConfig",
    "DeviceFingerprint",
    "generate_device_id",
    "EventData",
    "EventEmitter",
    "EventType",
    "InstagramError",
    "PreconditionError",
    "ProtocolError",
    "RemoteRejection",
    "SequenceError",
    "StateCorruptError",
    "TransportError",
    "ValidationError",
    "LogConfig",
    "AuthenticatedUser",
    "ChallengeChannel",
    "ChallengeContext",
    "CookieRecord",
    "PersistedState",
    "RegistrationContext",
    "SessionCredentials",
    "TwoFactorContext",
    "AuthResult",
    "LoginOutcome",
    "StepOutcome",
    "TwoFactorOutcome",
    "SessionStore",
    "RequestSigner",
    "sign",
    "CurlTransport",
    "Transport",
    "TransportResponse",
]
