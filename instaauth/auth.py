"""
Auth Engine
===========
Login, two-factor, challenge and logout state machine for the
Instagram Private API.

States:
    ANONYMOUS → AUTHENTICATING → AUTHENTICATED
                               → TWO_FACTOR_PENDING → AUTHENTICATED | FAILED
                               → CHALLENGE_PENDING  → VERIFY_METHOD_SELECTED
                                                    → CODE_REQUESTED
                                                    → CODE_VERIFIED → AUTHENTICATED
                               → FAILED

A new login() always restarts from ANONYMOUS: the previous session is
dropped (unauthenticated, invalidation fired) together with any pending
two-factor or challenge context.

Sign-up (check_email / check_phone_number ... create account) runs
beside the state machine on its own fresh device identity per attempt;
a created account logs the session in and adopts that identity.

Every public operation returns an AuthResult; nothing escapes as an
exception. Caller mistakes (empty credentials, wrong-length codes, calls
out of order) are reported without touching the network.

Usage:
    engine = AuthEngine(username="bob", password="secret")
    result = engine.login()

    if result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED:
        result = engine.two_factor_login(input("2FA code: "))

    elif result.outcome == LoginOutcome.CHALLENGE_REQUIRED:
        engine.challenge_get_verify_methods()
        engine.challenge_request_code(ChallengeChannel.EMAIL)
        result = engine.challenge_verify_code(input("Code: "))

    engine.session_store.save("session.json")
"""

import json
import logging
import re
import threading
import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

from pydantic import ValidationError as ModelValidationError

from .config import (
    CHALLENGE_CODE_LENGTH,
    CHALLENGE_WARM_UP_DELAY,
    CHECK_EMAIL_PATH,
    CHECK_PHONE_NUMBER_PATH,
    CREATE_ACCOUNT_PATH,
    CREATE_VALIDATED_PATH,
    CSRF_COOKIE,
    CURRENT_USER_PATH,
    DIRECT_INBOX_PATH,
    FACEBOOK_SIGNUP_PATH,
    INSTAGRAM_URL,
    LOGIN_PATH,
    LOGOUT_PATH,
    ONBOARDING_STEPS_PATH,
    RECENT_ACTIVITY_PATH,
    SEND_SIGNUP_SMS_CODE_PATH,
    TWO_FACTOR_LOGIN_PATH,
    USERNAME_SUGGESTIONS_PATH,
    VALIDATE_SIGNUP_SMS_CODE_PATH,
    AuthConfig,
    api_url,
)
from .device_fingerprint import DeviceFingerprint, generate_device_id
from .events import EventCallback, EventEmitter, EventType
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
from .log_config import mask
from .models.challenge import (
    ChallengeChannel,
    ChallengeCodeRequest,
    ChallengeVerification,
    VerifyMethodInfo,
)
from .models.session import (
    ChallengeContext,
    PersistedState,
    SessionCredentials,
    TwoFactorContext,
)
from .models.registration import (
    AccountCreation,
    EmailCheck,
    PhoneCheck,
    PhoneVerification,
    RegistrationContext,
    RegistrationFlow,
    SignUpSmsCode,
    UsernameSuggestions,
)
from .models.user import AuthenticatedUser
from .response_handler import ResponseHandler
from .result import AuthResult, LoginOutcome, StepOutcome, TwoFactorOutcome
from .session_store import SessionStore
from .signer import RequestSigner
from .transport import CurlTransport, Transport, TransportResponse

logger = logging.getLogger("instaauth.auth")

LOGIN_MESSAGES = {
    LoginOutcome.BAD_PASSWORD: "Invalid credentials: password is wrong",
    LoginOutcome.INVALID_USER: "Invalid credentials: user not found",
    LoginOutcome.TWO_FACTOR_REQUIRED: "Two factor authentication is required",
    LoginOutcome.CHALLENGE_REQUIRED: "Challenge is required",
    LoginOutcome.RATE_LIMITED: "Please wait a few minutes before you try again",
    LoginOutcome.EXCEPTION: "Unexpected login response",
}

SHARED_DATA_RE = re.compile(r"window\._sharedData\s*=\s*(\{.+?\})\s*;\s*</script>", re.DOTALL)


class AuthState(str, Enum):
    """Position of a session in the login flow."""
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    TWO_FACTOR_PENDING = "two_factor_pending"
    CHALLENGE_PENDING = "challenge_pending"
    VERIFY_METHOD_SELECTED = "verify_method_selected"
    CODE_REQUESTED = "code_requested"
    CODE_VERIFIED = "code_verified"
    FAILED = "failed"


class AuthEngine:
    """
    Authentication & session engine for one logical session.

    Not safe for concurrent mutating calls from several threads on the
    same session: every state-transition call holds the engine lock for
    its whole duration.

    Endpoint modules consume:
        current_session()  → read-only SessionCredentials copy
        is_authenticated() → bool
        on_invalidate(cb)  → called after every session change
    """

    def __init__(
        self,
        username: str = "",
        password: str = "",
        transport: Optional[Transport] = None,
        device: Optional[DeviceFingerprint] = None,
        signer: Optional[RequestSigner] = None,
        events: Optional[EventEmitter] = None,
        warm_up_delay: float = CHALLENGE_WARM_UP_DELAY,
    ):
        self._transport = transport or CurlTransport()
        self._store = SessionStore(
            self._transport,
            device=device or DeviceFingerprint.generate(username),
            credentials=SessionCredentials(username=username, password=password),
        )
        self._signer = signer or RequestSigner()
        self._responses = ResponseHandler()
        self._events = events or EventEmitter()
        self._warm_up_delay = warm_up_delay

        self._state = AuthState.ANONYMOUS
        self._two_factor: Optional[TwoFactorContext] = None
        self._challenge: Optional[ChallengeContext] = None
        self._registration: Optional[RegistrationContext] = None
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: AuthConfig, **kwargs) -> "AuthEngine":
        """Build an engine (curl_cffi transport) from AuthConfig."""
        kwargs.setdefault("transport", CurlTransport(proxy=config.proxy, timeout=config.timeout))
        kwargs.setdefault("device", DeviceFingerprint.generate(config.device_seed or config.username))
        kwargs.setdefault("signer", RequestSigner(config.signature_key, config.signature_key_version))
        return cls(username=config.username, password=config.password, **kwargs)

    # ═══════════════════════════════════════════════════════════
    # STATE ACCESS
    # ═══════════════════════════════════════════════════════════

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session_store(self) -> SessionStore:
        return self._store

    @property
    def events(self) -> EventEmitter:
        return self._events

    @property
    def two_factor_context(self) -> Optional[TwoFactorContext]:
        return self._two_factor

    @property
    def challenge_context(self) -> Optional[ChallengeContext]:
        return self._challenge

    @property
    def registration_context(self) -> Optional[RegistrationContext]:
        return self._registration

    def current_session(self) -> SessionCredentials:
        """Read-only copy of the session credentials."""
        return self._store.view()

    def is_authenticated(self) -> bool:
        return self._store.is_authenticated

    def on_invalidate(self, callback: EventCallback) -> EventCallback:
        """Subscribe to session changes (login, logout, restore, ...). Usable as decorator."""
        self._events.on(EventType.SESSION_INVALIDATED, callback)
        return callback

    def off_invalidate(self, callback: EventCallback) -> None:
        self._events.off(EventType.SESSION_INVALIDATED, callback)

    # ═══════════════════════════════════════════════════════════
    # LOGIN
    # ═══════════════════════════════════════════════════════════

    def login(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        fresh_session: bool = True,
    ) -> AuthResult[AuthenticatedUser]:
        """
        Login with username and password.

        Args:
            username: Instagram username (default: the engine's username)
            password: Account password (default: the engine's password)
            fresh_session: Visit the base URL first to obtain a csrf cookie

        Returns:
            AuthResult with LoginOutcome:
                SUCCESS             → value is the AuthenticatedUser
                TWO_FACTOR_REQUIRED → call two_factor_login(code)
                CHALLENGE_REQUIRED  → call the challenge_* methods
                BAD_PASSWORD, INVALID_USER, RATE_LIMITED, EXCEPTION
        """
        with self._lock:
            creds = self._store.credentials
            if username is not None:
                creds.username = username
            if password is not None:
                creds.password = password

            self._two_factor = None
            self._challenge = None
            self._state = AuthState.ANONYMOUS
            was_authenticated = self._store.is_authenticated
            self._store.set_authenticated(False)
            creds.logged_in_user = None
            creds.rank_token = ""
            if was_authenticated:
                logger.info("[Auth] Dropping the previous session before a new login")
                self._invalidate()

            if not creds.username or not creds.password:
                return AuthResult.fail(
                    LoginOutcome.EXCEPTION,
                    error=PreconditionError("username and password must be specified"),
                )

            self._state = AuthState.AUTHENTICATING
            logger.info(f"[Auth] Starting login for @{creds.username}")

            try:
                if fresh_session:
                    self._send("GET", f"{INSTAGRAM_URL}/")

                device = self._store.device
                data = {
                    "phone_id": device.phone_guid,
                    "_csrftoken": self._store.refresh_csrf(),
                    "username": creds.username,
                    "guid": device.device_guid,
                    "device_id": device.device_id,
                    "password": creds.password,
                    "login_attempt_count": "0",
                }
                response = self._send("POST", LOGIN_PATH, data, signed=True)

                if response.status_code != 200:
                    return self._login_failed(response)

                body = self._responses.parse(response)
                user = self._user_from(body)
                self._complete_login(user)

                logger.info(f"[Auth] Login successful! User: {user.username} (ID: {user.pk})")
                self._events.emit(EventType.LOGIN, state=self._state.value, outcome=LoginOutcome.SUCCESS.value)
                return AuthResult.success(LoginOutcome.SUCCESS, user, raw=body)

            except Exception as e:
                self._state = AuthState.FAILED
                return self._exception_result(LoginOutcome.EXCEPTION, e, EventType.LOGIN)

    def _login_failed(self, response: TransportResponse) -> AuthResult[AuthenticatedUser]:
        failure = self._responses.parse_login_failure(response)
        outcome = self._responses.classify_login_failure(failure, response.status_code)
        body = failure.to_dict()

        if outcome == LoginOutcome.TWO_FACTOR_REQUIRED:
            info = failure.two_factor_info
            if info is None or not info.two_factor_identifier:
                raise ProtocolError("two_factor_required without two_factor_identifier", response=body)
            self._two_factor = TwoFactorContext(
                identifier=info.two_factor_identifier,
                pending_username=info.username or self._store.credentials.username,
                pending_device_id=self._store.device.device_id,
                obfuscated_phone_number=info.obfuscated_phone_number,
                sms_two_factor_on=info.sms_two_factor_on,
                totp_two_factor_on=info.totp_two_factor_on,
            )
            self._state = AuthState.TWO_FACTOR_PENDING

        elif outcome == LoginOutcome.CHALLENGE_REQUIRED:
            api_path = self._responses.challenge_api_path(failure.challenge)
            if not api_path:
                raise ProtocolError("challenge required without api_path", response=body)
            self._challenge = ChallengeContext(api_path=api_path)
            self._state = AuthState.CHALLENGE_PENDING

        else:
            self._state = AuthState.FAILED

        message = failure.message or LOGIN_MESSAGES[outcome]
        logger.warning(f"[Auth] Login for @{self._store.credentials.username} → {outcome.value}: {message}")
        self._events.emit(EventType.LOGIN, state=self._state.value, outcome=outcome.value)
        return AuthResult.fail(
            outcome,
            message=message,
            error=RemoteRejection(message, status_code=response.status_code, response=body),
            raw=body,
        )

    # ═══════════════════════════════════════════════════════════
    # TWO-FACTOR
    # ═══════════════════════════════════════════════════════════

    def two_factor_login(self, code: str) -> AuthResult[AuthenticatedUser]:
        """
        Finish a login that returned TWO_FACTOR_REQUIRED.

        Returns:
            AuthResult with TwoFactorOutcome:
                SUCCESS      → authenticated, context cleared
                INVALID_CODE → context kept, retry with another code
                CODE_EXPIRED → context cleared, login() again
                EXCEPTION    → SequenceError if login() was not called first
        """
        with self._lock:
            ctx = self._two_factor
            if ctx is None:
                return AuthResult.fail(
                    TwoFactorOutcome.EXCEPTION,
                    error=SequenceError("must call login first"),
                )
            if not code or not str(code).strip():
                return AuthResult.fail(
                    TwoFactorOutcome.EXCEPTION,
                    error=ValidationError("verification code must not be empty"),
                )

            try:
                device = self._store.device
                data = {
                    "verification_code": str(code).strip(),
                    "_csrftoken": self._store.credentials.csrf_token,
                    "two_factor_identifier": ctx.identifier,
                    "username": ctx.pending_username,
                    "guid": device.device_guid,
                    "device_id": ctx.pending_device_id,
                }
                logger.info(f"[Auth] Submitting two-factor code {mask(str(code), 2)}")
                response = self._send("POST", TWO_FACTOR_LOGIN_PATH, data, signed=True)
                body = self._responses.parse(response)

                if response.status_code == 200:
                    user = self._user_from(body)
                    self._complete_login(user)
                    logger.info(f"[Auth] Two-factor login successful! User: {user.username}")
                    self._events.emit(
                        EventType.TWO_FACTOR, state=self._state.value, outcome=TwoFactorOutcome.SUCCESS.value,
                    )
                    return AuthResult.success(TwoFactorOutcome.SUCCESS, user, raw=body)

                outcome = self._responses.classify_two_factor_failure(body)
                if outcome == TwoFactorOutcome.INVALID_CODE:
                    message = body.get("message") or "Please check the security code."
                else:
                    message = body.get("message") or (
                        "This code is no longer valid, please call login again to request a new one"
                    )
                    self._two_factor = None
                    self._state = AuthState.FAILED

                logger.warning(f"[Auth] Two-factor failed → {outcome.value}: {message}")
                self._events.emit(EventType.TWO_FACTOR, state=self._state.value, outcome=outcome.value)
                return AuthResult.fail(
                    outcome,
                    message=message,
                    error=RemoteRejection(message, status_code=response.status_code, response=body),
                    raw=body,
                )

            except Exception as e:
                return self._exception_result(TwoFactorOutcome.EXCEPTION, e, EventType.TWO_FACTOR)

    def get_two_factor_info(self) -> AuthResult[TwoFactorContext]:
        """Pending two-factor details (identifier, masked phone number)."""
        if self._two_factor is None:
            return AuthResult.fail(StepOutcome.EXCEPTION, error=SequenceError("No two factor info available."))
        return AuthResult.success(StepOutcome.SUCCESS, self._two_factor.model_copy())

    # ═══════════════════════════════════════════════════════════
    # CHALLENGE
    # ═══════════════════════════════════════════════════════════

    def begin_challenge(self, api_path: str) -> AuthResult[ChallengeContext]:
        """
        Enter the challenge flow for a checkpoint hit outside login
        (e.g. by an endpoint module).
        """
        with self._lock:
            if not api_path:
                return AuthResult.fail(StepOutcome.EXCEPTION, error=ValidationError("api_path must not be empty"))
            self._challenge = ChallengeContext(api_path=api_path)
            self._state = AuthState.CHALLENGE_PENDING
            logger.info(f"[Auth] Challenge started: {api_path}")
            self._events.emit(EventType.CHALLENGE, state=self._state.value, extra={"api_path": api_path})
            return AuthResult.success(StepOutcome.SUCCESS, self._challenge.model_copy())

    def challenge_from_response(self, body: Dict[str, Any]) -> AuthResult[ChallengeContext]:
        """begin_challenge() from a raw checkpoint response body."""
        try:
            api_path = self._responses.detect_challenge(body or {})
        except ProtocolError as e:
            return AuthResult.fail(StepOutcome.EXCEPTION, error=e, raw=body or {})
        if not api_path:
            return AuthResult.fail(
                StepOutcome.EXCEPTION,
                error=ValidationError("response is not a checkpoint response"),
                raw=body or {},
            )
        return self.begin_challenge(api_path)

    def challenge_get_verify_methods(self) -> AuthResult[VerifyMethodInfo]:
        """
        Fetch the verification methods (SMS / email) of the pending challenge.
        Starts a new challenge attempt: guid and device id are regenerated.
        """
        with self._lock:
            missing = self._require_challenge()
            if missing is not None:
                return missing
            ctx = self._challenge_ids(regenerate=True)
            query = urlencode({"guid": ctx.challenge_guid, "device_id": ctx.challenge_device_id})
            return self._challenge_step(
                "GET",
                f"{ctx.api_path}?{query}",
                None,
                VerifyMethodInfo,
                AuthState.VERIFY_METHOD_SELECTED,
            )

    def challenge_reset_verify_method(self) -> AuthResult[VerifyMethodInfo]:
        """Reset the challenge to method selection (e.g. to switch SMS ↔ email)."""
        with self._lock:
            missing = self._require_challenge()
            if missing is not None:
                return missing
            ctx = self._challenge_ids(regenerate=True)
            return self._challenge_step(
                "POST",
                ctx.api_path.replace("/challenge/", "/challenge/reset/", 1),
                self._challenge_form(),
                VerifyMethodInfo,
                AuthState.VERIFY_METHOD_SELECTED,
            )

    def challenge_request_code(
        self,
        channel: Union[ChallengeChannel, str],
    ) -> AuthResult[ChallengeCodeRequest]:
        """Ask Instagram to send the challenge code over SMS or email."""
        with self._lock:
            try:
                channel = ChallengeChannel(channel)
            except ValueError:
                return AuthResult.fail(
                    StepOutcome.EXCEPTION,
                    error=ValidationError(f"Unknown challenge channel: {channel!r}"),
                )
            missing = self._require_challenge()
            if missing is not None:
                return missing
            ctx = self._challenge_ids()
            logger.info(f"[Auth] Requesting challenge code via {channel.value}")
            return self._challenge_step(
                "POST",
                ctx.api_path,
                self._challenge_form(choice=channel.choice),
                ChallengeCodeRequest,
                AuthState.CODE_REQUESTED,
            )

    def challenge_verify_code(self, code: str) -> AuthResult[ChallengeVerification]:
        """
        Submit the 6-digit challenge code.

        On success with a logged-in user the session becomes authenticated
        and the inbox / activity feed are warmed up (best-effort).
        """
        with self._lock:
            if not isinstance(code, str) or len(code) != CHALLENGE_CODE_LENGTH:
                return AuthResult.fail(
                    StepOutcome.EXCEPTION,
                    error=ValidationError(f"Verify code must be a {CHALLENGE_CODE_LENGTH} digit number."),
                )
            missing = self._require_challenge()
            if missing is not None:
                return missing

            self._store.refresh_csrf()
            ctx = self._challenge_ids()
            logger.info(f"[Auth] Submitting challenge code {mask(code, 2)}")
            result = self._challenge_step(
                "POST",
                ctx.api_path,
                self._challenge_form(security_code=code),
                ChallengeVerification,
                AuthState.CODE_VERIFIED,
            )
            if not result.succeeded or not result.value.is_logged_in:
                return result

            self._complete_login(result.value.logged_in_user)
            logger.info(f"[Auth] Challenge resolved! User: {result.value.logged_in_user.username}")
            self._events.emit(EventType.CHALLENGE, state=self._state.value, outcome=StepOutcome.SUCCESS.value)
            self._warm_caches()
            return result

    def _require_challenge(self) -> Optional[AuthResult]:
        if self._challenge is None:
            return AuthResult.fail(
                StepOutcome.EXCEPTION,
                error=SequenceError("challenge require info is empty, call login first"),
            )
        return None

    def _challenge_ids(self, regenerate: bool = False) -> ChallengeContext:
        """guid/device_id of the current challenge attempt, created once and reused."""
        ctx = self._challenge
        if regenerate or not ctx.challenge_guid:
            ctx.challenge_guid = str(uuid.uuid4())
        if regenerate or not ctx.challenge_device_id:
            ctx.challenge_device_id = generate_device_id()
        return ctx

    def _challenge_form(self, **fields) -> Dict[str, str]:
        ctx = self._challenge
        return {
            **fields,
            "_csrftoken": self._store.credentials.csrf_token,
            "guid": ctx.challenge_guid,
            "device_id": ctx.challenge_device_id,
        }

    def _challenge_step(self, method, path, data, model, next_state) -> AuthResult:
        try:
            response = self._send(method, path, data, signed=data is not None)
            if response.status_code != 200:
                message = self._failure_message(response)
                logger.warning(f"[Auth] Challenge step {path} rejected ({response.status_code}): {message}")
                return AuthResult.fail(
                    StepOutcome.REJECTED,
                    message=message,
                    error=RemoteRejection(message, status_code=response.status_code),
                )
            body = self._responses.parse(response)
            value = model.from_body(body, response.status_code)

            self._state = next_state
            self._events.emit(EventType.CHALLENGE, state=self._state.value, extra={"step": body.get("step_name", "")})
            return AuthResult.success(StepOutcome.SUCCESS, value, raw=body)

        except Exception as e:
            return self._exception_result(StepOutcome.EXCEPTION, e, EventType.CHALLENGE)

    def _failure_message(self, response: TransportResponse) -> str:
        try:
            message = str(self._responses.parse(response).get("message", ""))
        except ProtocolError:
            message = ""
        return f"{message} (status code: {response.status_code})".strip()

    def _warm_caches(self) -> None:
        """Touch inbox and activity feed the way the app does after a challenge."""
        if self._warm_up_delay:
            time.sleep(self._warm_up_delay)
        for path in (DIRECT_INBOX_PATH, RECENT_ACTIVITY_PATH):
            try:
                self._send("GET", path)
            except Exception as e:
                logger.warning(f"[Auth] Cache warm-up {path} failed: {e}")

    # ═══════════════════════════════════════════════════════════
    # REGISTRATION
    # ═══════════════════════════════════════════════════════════

    def check_email(self, email: str) -> AuthResult[EmailCheck]:
        """
        Start an email sign-up attempt and check the address.

        A fresh device identity is created here; get_username_suggestions()
        and create_new_account() reuse it for the rest of the attempt.
        """
        with self._lock:
            if not email or not email.strip():
                return AuthResult.fail(StepOutcome.EXCEPTION, error=ValidationError("email must not be empty"))
            ctx = self._start_registration(RegistrationFlow.EMAIL, email=email.strip())
            return self._registration_step(
                CHECK_EMAIL_PATH,
                {
                    "login_nonces": "[]",
                    "email": ctx.email,
                    "qe_id": str(uuid.uuid4()),
                    "waterfall_id": ctx.waterfall_id,
                },
                EmailCheck,
                warm_up=True,
            )

    def check_phone_number(self, phone_number: str) -> AuthResult[PhoneCheck]:
        """Start a phone sign-up attempt (fresh device identity) and check the number."""
        with self._lock:
            if not phone_number or not phone_number.strip():
                return AuthResult.fail(
                    StepOutcome.EXCEPTION, error=ValidationError("phone number must not be empty"),
                )
            ctx = self._start_registration(RegistrationFlow.PHONE, phone_number=phone_number.strip())
            return self._registration_step(
                CHECK_PHONE_NUMBER_PATH,
                {
                    "login_nonces": "[]",
                    "phone_number": ctx.phone_number,
                    "device_id": ctx.device_id,
                },
                PhoneCheck,
                warm_up=True,
            )

    def send_signup_sms_code(self) -> AuthResult[SignUpSmsCode]:
        """Text a sign-up code to the number given to check_phone_number()."""
        with self._lock:
            ctx = self._registration
            if ctx is None or ctx.flow != RegistrationFlow.PHONE:
                return AuthResult.fail(
                    StepOutcome.EXCEPTION, error=SequenceError("call check_phone_number first"),
                )
            result = self._registration_step(
                SEND_SIGNUP_SMS_CODE_PATH,
                {
                    "phone_id": ctx.phone_id,
                    "phone_number": ctx.phone_number,
                    "guid": ctx.guid,
                    "device_id": ctx.device_id,
                    "waterfall_id": ctx.waterfall_id,
                },
                SignUpSmsCode,
            )
            if result.succeeded:
                ctx.sms_sent = True
            return result

    def verify_signup_sms_code(self, code: str) -> AuthResult[PhoneVerification]:
        """Confirm the texted sign-up code; then fetch the onboarding steps (best-effort)."""
        with self._lock:
            if not code or not str(code).strip():
                return AuthResult.fail(
                    StepOutcome.EXCEPTION, error=ValidationError("verification code must not be empty"),
                )
            missing = self._require_sms_sent()
            if missing is not None:
                return missing

            ctx = self._registration
            logger.info(f"[Auth] Submitting sign-up code {mask(str(code), 2)}")
            result = self._registration_step(
                VALIDATE_SIGNUP_SMS_CODE_PATH,
                {
                    "verification_code": str(code).strip(),
                    "phone_number": ctx.phone_number,
                    "guid": ctx.guid,
                    "device_id": ctx.device_id,
                    "waterfall_id": ctx.waterfall_id,
                },
                PhoneVerification,
            )
            if result.succeeded:
                ctx.phone_verified = True
                self._fetch_onboarding_steps()
            return result

    def get_username_suggestions(self, name: str, email: str = "") -> AuthResult[UsernameSuggestions]:
        """Usernames derived from a display name, within the current sign-up attempt."""
        with self._lock:
            if not name or not name.strip():
                return AuthResult.fail(StepOutcome.EXCEPTION, error=ValidationError("name must not be empty"))
            ctx = self._registration or self._start_registration(RegistrationFlow.EMAIL, email=email)
            return self._registration_step(
                USERNAME_SUGGESTIONS_PATH,
                {
                    "phone_id": ctx.phone_id,
                    "name": name.strip(),
                    "guid": ctx.guid,
                    "device_id": ctx.device_id,
                    "email": email or ctx.email,
                    "waterfall_id": ctx.waterfall_id,
                },
                UsernameSuggestions,
            )

    def validate_new_account_with_phone_number(
        self,
        code: str,
        username: str,
        password: str,
        first_name: str = "",
    ) -> AuthResult[AccountCreation]:
        """
        Create the account of a phone sign-up attempt.

        On success the session is logged in as the new account and
        adopts the attempt's device identity.
        """
        with self._lock:
            invalid = self._invalid_account_fields(username, password, code=code)
            if invalid is not None:
                return invalid
            missing = self._require_sms_sent()
            if missing is not None:
                return missing

            ctx = self._registration
            return self._create_account(
                CREATE_VALIDATED_PATH,
                {
                    "allow_contacts_sync": "true",
                    "verification_code": str(code).strip(),
                    "sn_result": "API_ERROR:+null",
                    "phone_id": ctx.phone_id,
                    "phone_number": ctx.phone_number,
                    "username": username,
                    "first_name": first_name,
                    "adid": str(uuid.uuid4()),
                    "guid": ctx.guid,
                    "device_id": ctx.device_id,
                    "sn_nonce": "",
                    "force_sign_up_code": "",
                    "waterfall_id": ctx.waterfall_id,
                    "qs_stamp": "",
                    "password": password,
                    "has_sms_consent": "true",
                },
                username,
                password,
            )

    def create_new_account(
        self,
        username: str,
        password: str,
        email: str,
        first_name: str = "",
    ) -> AuthResult[AccountCreation]:
        """
        Create an account with an email address.

        Continues the email attempt started by check_email() for the same
        address, otherwise starts a new one.
        """
        with self._lock:
            invalid = self._invalid_account_fields(username, password, email=email)
            if invalid is not None:
                return invalid

            email = email.strip()
            ctx = self._registration
            if ctx is None or ctx.flow != RegistrationFlow.EMAIL or ctx.email not in ("", email):
                ctx = self._start_registration(RegistrationFlow.EMAIL, email=email)
            ctx.email = email
            return self._create_account(
                CREATE_ACCOUNT_PATH,
                {
                    "email": email,
                    "username": username,
                    "password": password,
                    "device_id": ctx.device_id,
                    "guid": ctx.guid,
                    "first_name": first_name,
                    "waterfall_id": ctx.waterfall_id,
                },
                username,
                password,
            )

    def _start_registration(self, flow: RegistrationFlow, **fields) -> RegistrationContext:
        """New sign-up attempt with its own fresh device identity."""
        self._registration = RegistrationContext(
            flow=flow,
            device=DeviceFingerprint.fresh(locale=self._store.device.locale),
            waterfall_id=str(uuid.uuid4()),
            **fields,
        )
        logger.info(f"[Auth] Registration attempt started ({flow.value}, device {self._registration.device_id})")
        return self._registration

    def _require_sms_sent(self) -> Optional[AuthResult]:
        ctx = self._registration
        if ctx is None or ctx.flow != RegistrationFlow.PHONE:
            return AuthResult.fail(StepOutcome.EXCEPTION, error=SequenceError("call check_phone_number first"))
        if not ctx.sms_sent:
            return AuthResult.fail(StepOutcome.EXCEPTION, error=SequenceError("call send_signup_sms_code first"))
        return None

    @staticmethod
    def _invalid_account_fields(username: str, password: str, **required) -> Optional[AuthResult]:
        for name, value in (("username", username), ("password", password), *required.items()):
            if not value or not str(value).strip():
                return AuthResult.fail(StepOutcome.EXCEPTION, error=ValidationError(f"{name} must not be empty"))
        return None

    def _registration_step(self, path, data, model, warm_up=False) -> AuthResult:
        device = self._registration.device
        try:
            if warm_up:
                self._send("GET", f"{INSTAGRAM_URL}/", device=device)
            form = {**data, "_csrftoken": self._store.refresh_csrf()}
            response = self._send("POST", path, form, signed=True, device=device)

            if response.status_code != 200:
                try:
                    body = self._responses.parse(response)
                except ProtocolError:
                    body = {}
                message = self._responses.first_error(body) or f"Status code: {response.status_code}"
            else:
                body = self._responses.parse(response)
                message = self._responses.sign_up_rejection(body)

            if message:
                logger.warning(f"[Auth] Registration step {path} rejected ({response.status_code}): {message}")
                return AuthResult.fail(
                    StepOutcome.REJECTED,
                    message=message,
                    error=RemoteRejection(message, status_code=response.status_code, response=body),
                    raw=body,
                )

            value = model.from_body(body, response.status_code)
            self._events.emit(EventType.REGISTRATION, state=self._state.value, extra={"step": path})
            return AuthResult.success(StepOutcome.SUCCESS, value, raw=body)

        except Exception as e:
            return self._exception_result(StepOutcome.EXCEPTION, e, EventType.REGISTRATION)

    def _create_account(self, path, data, username, password) -> AuthResult[AccountCreation]:
        result = self._registration_step(path, data, AccountCreation)
        if not result.succeeded:
            return result

        created = result.value
        if not created.account_created or created.created_user is None:
            message = self._responses.first_error(result.raw) or "Account was not created"
            logger.warning(f"[Auth] Account @{username} not created: {message}")
            return AuthResult.fail(
                StepOutcome.REJECTED,
                message=message,
                error=RemoteRejection(message, status_code=200, response=result.raw),
                raw=result.raw,
            )

        self._store.adopt_device(self._registration.device)
        creds = self._store.credentials
        creds.username = username
        creds.password = password
        self._registration = None
        self._complete_login(created.created_user)

        logger.info(f"[Auth] Account created: @{created.created_user.username} (ID: {created.created_user.pk})")
        self._events.emit(EventType.REGISTRATION, state=self._state.value, outcome=StepOutcome.SUCCESS.value)
        return result

    def _fetch_onboarding_steps(self) -> None:
        """Onboarding steps the app loads after phone verification. Failures only logged."""
        ctx = self._registration
        data = {
            "fb_connected": "false",
            "seen_steps": "[]",
            "phone_id": ctx.phone_id,
            "fb_installed": "false",
            "locale": ctx.device.locale,
            "timezone_offset": str(-time.timezone),
            "network_type": "WIFI-UNKNOWN",
            "_csrftoken": self._store.credentials.csrf_token,
            "guid": ctx.guid,
            "is_ci": "false",
            "android_id": ctx.device_id,
            "reg_flow_taken": "phone",
            "tos_accepted": "false",
        }
        try:
            self._send("POST", ONBOARDING_STEPS_PATH, data, signed=True, device=ctx.device)
        except Exception as e:
            logger.warning(f"[Auth] Onboarding steps failed: {e}")

    # ═══════════════════════════════════════════════════════════
    # LOGOUT / CURRENT USER
    # ═══════════════════════════════════════════════════════════

    def logout(self) -> AuthResult[bool]:
        """
        Logout from Instagram.

        Returns:
            AuthResult whose value is True when the session is now
            unauthenticated, False when the server did not confirm.
        """
        with self._lock:
            if not self._store.is_authenticated:
                return AuthResult.fail(
                    StepOutcome.EXCEPTION,
                    value=False,
                    error=SequenceError("user must be authenticated"),
                )
            try:
                response = self._send("GET", LOGOUT_PATH)
                if response.status_code != 200:
                    message = self._failure_message(response)
                    return AuthResult.fail(
                        StepOutcome.REJECTED,
                        message=message,
                        value=False,
                        error=RemoteRejection(message, status_code=response.status_code),
                    )
                body = self._responses.parse(response)
                if body.get("status") == "ok":
                    self._store.set_authenticated(False)
                    self._state = AuthState.ANONYMOUS
                    logger.info("Logout successful")
                    self._events.emit(EventType.LOGOUT, state=self._state.value)
                    self._invalidate()
                else:
                    logger.warning(f"[Auth] Logout not confirmed: {body.get('message', body)}")
                return AuthResult.success(StepOutcome.SUCCESS, not self._store.is_authenticated, raw=body)

            except Exception as e:
                result = self._exception_result(StepOutcome.EXCEPTION, e, EventType.LOGOUT)
                result.value = False
                return result

    def get_current_user(self) -> AuthResult[AuthenticatedUser]:
        """Refresh the logged-in user record from Instagram."""
        with self._lock:
            if not self._store.is_authenticated:
                return AuthResult.fail(StepOutcome.EXCEPTION, error=SequenceError("user must be authenticated"))
            try:
                response = self._send("GET", CURRENT_USER_PATH)
                if response.status_code != 200:
                    message = self._failure_message(response)
                    return AuthResult.fail(
                        StepOutcome.REJECTED,
                        message=message,
                        error=RemoteRejection(message, status_code=response.status_code),
                    )
                body = self._responses.parse(response)
                raw_user = body.get("user")
                if not isinstance(raw_user, dict):
                    raise ProtocolError("current_user response without user", response=body)
                user = AuthenticatedUser.from_body(raw_user, response.status_code)
                self._store.credentials.logged_in_user = user
                return AuthResult.success(StepOutcome.SUCCESS, user, raw=body)
            except Exception as e:
                return self._exception_result(StepOutcome.EXCEPTION, e)

    # ═══════════════════════════════════════════════════════════
    # BROWSER / FACEBOOK LOGIN
    # ═══════════════════════════════════════════════════════════

    def login_with_browser_session(
        self,
        shared_data: Union[str, Dict[str, Any]],
        cookie_string: str,
        facebook_login: bool = False,
        fb_access_token: str = "",
    ) -> AuthResult[bool]:
        """
        Adopt a session obtained in a web view / browser.

        Args:
            shared_data: Page HTML containing window._sharedData, or the parsed dict
            cookie_string: Cookies from the browser ("a=1; b=2")
            facebook_login: Also link the Facebook account (best-effort)
            fb_access_token: Facebook access token for the link call
        """
        with self._lock:
            if not cookie_string:
                return AuthResult.fail(
                    StepOutcome.EXCEPTION, value=False, error=ValidationError("cookie string must not be empty"),
                )
            try:
                data = self._extract_shared_data(shared_data)
                config = data.get("config") or {}
                if not isinstance(config, dict):
                    raise ValidationError("shared data config is not an object")
                viewer = config.get("viewer")
                if not isinstance(viewer, dict) or not viewer.get("id"):
                    raise ValidationError("shared data has no config.viewer")
                user = AuthenticatedUser.from_viewer(viewer, self._store.credentials.username)
            except (ValidationError, ValueError, ModelValidationError) as e:
                error = e if isinstance(e, InstagramError) else ValidationError(str(e))
                return AuthResult.fail(StepOutcome.EXCEPTION, value=False, error=error)

            try:
                self._store.set_cookie_string(cookie_string)
            except Exception as e:
                result = self._exception_result(StepOutcome.EXCEPTION, e)
                result.value = False
                return result

            self._two_factor = None
            self._challenge = None
            creds = self._store.credentials
            creds.logged_in_user = user
            creds.csrf_token = config.get("csrf_token") or self._store.cookie(CSRF_COOKIE)
            creds.rank_token = self._store.rank_token_for(user.pk)
            if not creds.username:
                creds.username = user.username
            self._store.set_authenticated(True)
            self._state = AuthState.AUTHENTICATED
            logger.info(f"[Auth] Browser session adopted for user ID {user.pk}")

            if facebook_login:
                self._link_facebook(fb_access_token)

            self._events.emit(EventType.LOGIN, state=self._state.value, outcome=LoginOutcome.SUCCESS.value)
            self._invalidate()
            return AuthResult.success(StepOutcome.SUCCESS, True)

    @staticmethod
    def _extract_shared_data(shared_data: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(shared_data, dict):
            return shared_data
        match = SHARED_DATA_RE.search(shared_data or "")
        if not match:
            raise ValidationError("window._sharedData not found in HTML")
        return json.loads(match.group(1))

    def _link_facebook(self, fb_access_token: str) -> None:
        """Facebook sign-up dry run; stores fb_user_id. Failures only logged."""
        try:
            device = self._store.device
            data = {
                "dryrun": "true",
                "phone_id": device.phone_guid,
                "_csrftoken": self._store.credentials.csrf_token,
                "adid": str(uuid.uuid4()),
                "guid": str(uuid.uuid4()),
                "device_id": generate_device_id(),
                "waterfall_id": str(uuid.uuid4()),
                "fb_access_token": fb_access_token,
            }
            response = self._send("POST", FACEBOOK_SIGNUP_PATH, data, signed=True)
            body = self._responses.parse(response)
            fb_user_id = body.get("fb_user_id")
            if fb_user_id:
                self._store.credentials.facebook_user_id = str(fb_user_id)
        except Exception as e:
            logger.warning(f"[Auth] Facebook link failed: {e}")

    # ═══════════════════════════════════════════════════════════
    # STATE PERSISTENCE
    # ═══════════════════════════════════════════════════════════

    def snapshot(self, include_password: bool = True) -> PersistedState:
        with self._lock:
            return self._store.snapshot(include_password=include_password)

    def restore(self, state: Union[PersistedState, str]) -> AuthResult[bool]:
        """
        Resume a saved session (PersistedState or serialized blob).
        Value is the restored authenticated flag.
        """
        with self._lock:
            try:
                if isinstance(state, str):
                    state = SessionStore.decode(state)
                self._store.restore(state)
            except StateCorruptError as e:
                logger.error(f"[Auth] Session restore failed: {e}")
                return AuthResult.fail(StepOutcome.EXCEPTION, value=False, error=e)

            self._two_factor = None
            self._challenge = None
            self._state = AuthState.AUTHENTICATED if state.is_authenticated else AuthState.ANONYMOUS
            self._events.emit(EventType.SESSION_RESTORED, state=self._state.value)
            self._invalidate()
            return AuthResult.success(StepOutcome.SUCCESS, state.is_authenticated)

    def reset(self) -> None:
        """Forget the session: new device identity, empty jar, ANONYMOUS."""
        with self._lock:
            self._store.reset()
            self._two_factor = None
            self._challenge = None
            self._registration = None
            self._state = AuthState.ANONYMOUS
            self._invalidate()

    # ═══════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════

    def _headers(self, device: Optional[DeviceFingerprint] = None) -> Dict[str, str]:
        headers = (device or self._store.device).headers
        csrf = self._store.credentials.csrf_token
        if csrf:
            headers["X-CSRFToken"] = csrf
        return headers

    def _send(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        signed: bool = False,
        device: Optional[DeviceFingerprint] = None,
    ) -> TransportResponse:
        """Send through the transport, then pick up a rotated csrftoken."""
        body = None
        if data is not None:
            body = urlencode(self._signer.signed_form(data) if signed else data)
        response = self._transport.send(method, api_url(path), headers=self._headers(device), body=body)
        logger.debug(f"[Auth] {method} {path} → {response.status_code}")
        self._store.refresh_csrf()
        return response

    def _user_from(self, body: Dict[str, Any]) -> AuthenticatedUser:
        raw_user = body.get("logged_in_user")
        if not isinstance(raw_user, dict):
            raise ProtocolError("response has no logged_in_user", response=body)
        return AuthenticatedUser.from_body(raw_user)

    def _complete_login(self, user: AuthenticatedUser) -> None:
        """Shared success path of login, two-factor and challenge."""
        creds = self._store.credentials
        creds.logged_in_user = user
        creds.rank_token = self._store.rank_token_for(user.pk)
        self._store.refresh_csrf(only_if_empty=True)
        self._store.set_authenticated(True)
        self._two_factor = None
        self._challenge = None
        self._state = AuthState.AUTHENTICATED
        self._invalidate()

    def _invalidate(self) -> None:
        self._events.emit(EventType.SESSION_INVALIDATED, state=self._state.value)

    def _exception_result(
        self,
        outcome: Enum,
        exc: Exception,
        event_type: Optional[EventType] = None,
    ) -> AuthResult:
        """Convert a fault into a result; unknown faults become TransportError."""
        if isinstance(exc, InstagramError):
            error = exc
        else:
            error = TransportError(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
        logger.error(f"[Auth] {type(error).__name__}: {error}")
        self._events.emit(EventType.ERROR, state=self._state.value, outcome=outcome.value, error=error)
        if event_type is not None:
            self._events.emit(event_type, state=self._state.value, outcome=outcome.value, error=error)
        return AuthResult.fail(outcome, error=error, raw=getattr(error, "response", {}) or {})
