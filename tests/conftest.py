"""
Pytest fixtures for InstaAuth tests.

FakeTransport stands in for CurlTransport: responses are routed by URL
fragment, every request is recorded, and the cookie jar is a plain dict
of CookieRecords.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import pytest

from instaauth.auth import AuthEngine
from instaauth.config import COOKIE_DOMAIN
from instaauth.device_fingerprint import DeviceFingerprint
from instaauth.models.session import CookieRecord
from instaauth.transport import TransportResponse, _domain_matches, parse_cookie_string


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def path(self) -> str:
        return urlparse(self.url).path

    @property
    def query(self) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlparse(self.url).query).items()}

    @property
    def form(self) -> Dict[str, str]:
        return {k: v[0] for k, v in parse_qs(self.body or "", keep_blank_values=True).items()}

    @property
    def signature(self) -> str:
        return self.form["signed_body"].partition(".")[0]

    @property
    def payload(self) -> dict:
        """JSON half of signed_body."""
        return json.loads(self.form["signed_body"].partition(".")[2])


class FakeTransport:
    """In-memory Transport."""

    def __init__(self):
        self.requests: List[SentRequest] = []
        self.routes: Dict[str, list] = {}
        self.jar: Dict[tuple, CookieRecord] = {}
        self.reject_cookies: set = set()

    # ─── test setup ─────────────────────────

    def route(self, fragment: str, status_code: int = 200, body=None, text: str = None, cookies=None):
        """Queue a response for the next request whose URL contains `fragment`."""
        if text is None:
            text = json.dumps(body if body is not None else {"status": "ok"})
        self.routes.setdefault(fragment, []).append(
            (TransportResponse(status_code=status_code, text=text), cookies or {})
        )
        return self

    def fail(self, fragment: str, error: Exception):
        """Raise `error` on the next request whose URL contains `fragment`."""
        self.routes.setdefault(fragment, []).append(error)
        return self

    def set_cookie(self, name: str, value: str, domain: str = COOKIE_DOMAIN):
        self.add_cookie(CookieRecord(domain=domain, name=name, value=value))

    def requests_to(self, fragment: str) -> List[SentRequest]:
        return [r for r in self.requests if fragment in r.url]

    # ─── Transport interface ────────────────

    def send(self, method, url, headers=None, body=None):
        self.requests.append(SentRequest(method, url, dict(headers or {}), body))
        for fragment in sorted(self.routes, key=len, reverse=True):
            queue = self.routes[fragment]
            if fragment in url and queue:
                item = queue.pop(0)
                if isinstance(item, Exception):
                    raise item
                response, cookies = item
                for name, value in cookies.items():
                    self.set_cookie(name, value)
                return response
        return TransportResponse(status_code=200, text=json.dumps({"status": "ok"}))

    def get_cookies(self, domain=COOKIE_DOMAIN):
        return [c for c in self.jar.values() if domain is None or _domain_matches(c.domain, domain)]

    def set_cookies(self, domain, cookie_string):
        for name, value in parse_cookie_string(cookie_string):
            self.set_cookie(name, value, domain)

    def add_cookie(self, record):
        if record.name in self.reject_cookies:
            raise ValueError(f"cookie rejected: {record.name}")
        self.jar[record.sort_key] = record

    def clear_cookies(self):
        self.jar.clear()


# ─── Sample Data ─────────────────────────────────────────────

USER_PK = 123456789
CHALLENGE_PATH = "/challenge/123456789/AbCdEf/"


@pytest.fixture
def logged_in_user():
    return {
        "pk": USER_PK,
        "username": "bob",
        "full_name": "Bob Tester",
        "profile_pic_url": "https://example.com/bob.jpg",
        "is_private": False,
        "is_verified": False,
    }


@pytest.fixture
def login_ok(logged_in_user):
    return {"logged_in_user": logged_in_user, "status": "ok"}


@pytest.fixture
def two_factor_required():
    return {
        "message": "",
        "two_factor_required": True,
        "two_factor_info": {
            "username": "bob",
            "two_factor_identifier": "2fa-ident-1",
            "obfuscated_phone_number": "•••• 42",
            "sms_two_factor_on": True,
            "totp_two_factor_on": False,
        },
        "status": "fail",
        "error_type": "two_factor_required",
    }


@pytest.fixture
def challenge_required():
    return {
        "message": "challenge_required",
        "challenge": {
            "url": f"https://i.instagram.com{CHALLENGE_PATH}",
            "api_path": CHALLENGE_PATH,
            "hide_webview_header": True,
            "lock": True,
            "logout": False,
            "native_flow": True,
        },
        "status": "fail",
        "error_type": "checkpoint_challenge_required",
    }


@pytest.fixture
def verify_methods():
    return {
        "step_name": "select_verify_method",
        "step_data": {"choice": "1", "phone_number": "+1 ***-***-**42", "email": "b***@example.com"},
        "user_id": USER_PK,
        "nonce_code": "nonce",
        "status": "ok",
    }


# ─── Engine ──────────────────────────────────────────────────

@pytest.fixture
def transport():
    t = FakeTransport()
    t.set_cookie("csrftoken", "csrf-1")
    return t


@pytest.fixture
def device():
    return DeviceFingerprint.generate("bob")


@pytest.fixture
def engine(transport, device):
    return AuthEngine(
        username="bob",
        password="secret",
        transport=transport,
        device=device,
        warm_up_delay=0,
    )


@pytest.fixture
def authed_engine(engine, transport, login_ok):
    transport.route("/accounts/login/", body=login_ok)
    engine.login().unwrap()
    transport.requests.clear()
    return engine
