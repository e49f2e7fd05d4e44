"""
Session Store
=============
Holds the mutable state of one logical session and persists it.

    - device identity (DeviceFingerprint)
    - credentials (username, password, csrf/rank tokens, logged-in user)
    - authenticated flag
    - cookie jar of the transport (the ONLY component that reads/writes it)

snapshot()/restore() round-trip: restore(snapshot()) yields the same
identity, the same authenticated flag and the same cookie set.
"""

import json
import logging
import threading
from typing import IO, List, Optional

from pydantic import ValidationError as ModelValidationError

from .config import COOKIE_DOMAIN, CSRF_COOKIE, STATE_VERSION
from .device_fingerprint import DeviceFingerprint
from .exceptions import StateCorruptError
from .models.session import CookieRecord, PersistedState, SessionCredentials
from .transport import Transport

logger = logging.getLogger("instaauth.session")


class SessionStore:
    """
    Session state + cookie persistence.

    Usage:
        store = SessionStore(transport, DeviceFingerprint.generate("bob"))
        blob = store.dumps()
        ...
        store.loads(blob)   # no re-login needed
    """

    def __init__(
        self,
        transport: Transport,
        device: Optional[DeviceFingerprint] = None,
        credentials: Optional[SessionCredentials] = None,
        domain: str = COOKIE_DOMAIN,
    ):
        self._transport = transport
        self._device = device or DeviceFingerprint.generate()
        self._credentials = credentials or SessionCredentials()
        self._domain = domain
        self._authenticated = False
        self._lock = threading.Lock()

    # ─── STATE ACCESS ───────────────────────────────────────

    @property
    def device(self) -> DeviceFingerprint:
        return self._device

    @property
    def credentials(self) -> SessionCredentials:
        return self._credentials

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def set_authenticated(self, value: bool) -> None:
        self._authenticated = bool(value)

    def adopt_device(self, device: DeviceFingerprint) -> None:
        """Switch to the identity a new account was registered with."""
        with self._lock:
            self._device = device

    def view(self) -> SessionCredentials:
        """Detached copy of the credentials for read-only consumers."""
        return self._credentials.model_copy(deep=True)

    def rank_token_for(self, user_pk: int) -> str:
        return f"{user_pk}_{self._device.phone_guid}"

    # ─── COOKIES ────────────────────────────────────────────

    def cookies(self) -> List[CookieRecord]:
        """Cookies for the service domain, in stable order."""
        return sorted(self._transport.get_cookies(self._domain), key=lambda c: c.sort_key)

    def cookie(self, name: str) -> str:
        for record in self.cookies():
            if record.name == name:
                return record.value
        return ""

    def refresh_csrf(self, only_if_empty: bool = False) -> str:
        """Copy csrftoken from the jar into the credentials."""
        if only_if_empty and self._credentials.csrf_token:
            return self._credentials.csrf_token
        token = self.cookie(CSRF_COOKIE)
        if token and token != self._credentials.csrf_token:
            self._credentials.csrf_token = token
            logger.debug(f"[Session] csrftoken updated: {token[:6]}***")
        return self._credentials.csrf_token

    def set_cookie_string(self, cookie_string: str) -> None:
        """Seed the jar from a browser cookie header ("a=1; b=2")."""
        self._transport.set_cookies(self._domain, cookie_string)

    def clear_cookies(self) -> None:
        self._transport.clear_cookies()

    # ─── SNAPSHOT / RESTORE ─────────────────────────────────

    def snapshot(self, include_password: bool = True) -> PersistedState:
        """Capture identity, credentials, authenticated flag and all cookies."""
        with self._lock:
            credentials = self._credentials.model_copy(deep=True)
            if not include_password:
                credentials.password = ""
            return PersistedState(
                version=STATE_VERSION,
                device=DeviceFingerprint.from_dict(self._device.to_dict()),
                credentials=credentials,
                is_authenticated=self._authenticated,
                raw_cookies=self.cookies(),
            )

    def restore(self, state: PersistedState) -> None:
        """
        Replace identity and credentials, re-seed the cookie jar.

        Raises:
            StateCorruptError: a cookie could not be loaded (jar is left as it was)
        """
        with self._lock:
            previous = self._transport.get_cookies(None)
            self._transport.clear_cookies()
            try:
                for record in state.raw_cookies:
                    self._transport.add_cookie(record)
            except Exception as e:
                self._transport.clear_cookies()
                for record in previous:
                    self._transport.add_cookie(record)
                raise StateCorruptError(f"Cookie could not be restored: {e}") from e

            self._device = DeviceFingerprint.from_dict(state.device.to_dict())
            self._credentials = state.credentials.model_copy(deep=True)
            self._authenticated = state.is_authenticated

        logger.info(
            f"[Session] Restored @{self._credentials.username or '?'} "
            f"(authenticated={self._authenticated}, cookies={len(state.raw_cookies)})"
        )

    def reset(self, device: Optional[DeviceFingerprint] = None) -> None:
        """Start over: new identity, no tokens, empty jar, unauthenticated."""
        with self._lock:
            username, password = self._credentials.username, self._credentials.password
            self._device = device or DeviceFingerprint.fresh()
            self._credentials = SessionCredentials(username=username, password=password)
            self._authenticated = False
            self._transport.clear_cookies()

    # ─── SERIALIZATION ──────────────────────────────────────

    @staticmethod
    def decode(blob: str) -> PersistedState:
        """
        Parse a serialized state blob.

        Raises:
            StateCorruptError: blob is not valid state JSON
        """
        try:
            data = json.loads(blob)
        except (ValueError, TypeError) as e:
            raise StateCorruptError(f"State blob is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StateCorruptError("State blob must be a JSON object")
        if data.get("version", STATE_VERSION) != STATE_VERSION:
            raise StateCorruptError(f"Unsupported state version: {data.get('version')}")
        try:
            return PersistedState.model_validate(data)
        except ModelValidationError as e:
            raise StateCorruptError(f"State blob is invalid: {e}") from e

    def dumps(self, include_password: bool = True) -> str:
        return self.snapshot(include_password=include_password).model_dump_json(indent=2)

    def loads(self, blob: str) -> None:
        self.restore(self.decode(blob))

    def dump(self, stream: IO[str], include_password: bool = True) -> None:
        stream.write(self.dumps(include_password=include_password))

    def load(self, stream: IO[str]) -> None:
        self.loads(stream.read())

    def save(self, filepath: str, include_password: bool = True) -> None:
        """Save session state to a file."""
        with open(filepath, "w", encoding="utf-8") as f:
            self.dump(f, include_password=include_password)
        logger.info(f"Session saved: {filepath}")

    def load_file(self, filepath: str) -> None:
        """Load session state from a file."""
        with open(filepath, "r", encoding="utf-8") as f:
            self.load(f)
        logger.info(f"Session loaded: {filepath}")
