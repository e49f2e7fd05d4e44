from .base import InstaModel
from .user import AuthenticatedUser
from .session import (
    SessionCredentials,
    TwoFactorContext,
    ChallengeContext,
    CookieRecord,
    PersistedState,
)
from .challenge import (
    ChallengeChannel,
    TwoFactorInfo,
    ChallengeInfo,
    LoginFailure,
    VerifyMethodInfo,
    ChallengeCodeRequest,
    ChallengeVerification,
)
from .registration import (
    RegistrationFlow,
    RegistrationContext,
    EmailCheck,
    PhoneCheck,
    SignUpSmsCode,
    PhoneVerification,
    UsernameSuggestion,
    UsernameSuggestions,
    AccountCreation,
)

__all__ = [
    "InstaModel",
    "AuthenticatedUser",
    "SessionCredentials",
    "TwoFactorContext",
    "ChallengeContext",
    "CookieRecord",
    "PersistedState",
    "ChallengeChannel",
    "TwoFactorInfo",
    "ChallengeInfo",
    "LoginFailure",
    "VerifyMethodInfo",
    "ChallengeCodeRequest",
    "ChallengeVerification",
    "RegistrationFlow",
    "RegistrationContext",
    "EmailCheck",
    "PhoneCheck",
    "SignUpSmsCode",
    "PhoneVerification",
    "UsernameSuggestion",
    "UsernameSuggestions",
    "AccountCreation",
]
