"""
Transport Adapter
=================
The only HTTP surface the auth engine consumes.

    send(method, url, headers, body) → TransportResponse
    get_cookies(domain)              → [CookieRecord, ...] (None: whole jar)
    set_cookies(domain, cookie_str)  → seed jar from "a=1; b=2"
    add_cookie(record)               → seed jar with one full cookie
    clear_cookies()

CurlTransport implements it on a curl_cffi Session.
"""

import json
import logging
from dataclasses import dataclass, field
from http.cookiejar import Cookie
from typing import Any, Dict, List, Optional, Protocol, Union

from curl_cffi import CurlError
from curl_cffi import requests as curl_requests

from .config import COOKIE_DOMAIN, REQUEST_TIMEOUT
from .exceptions import TransportError
from .models.session import CookieRecord

logger = logging.getLogger("instaauth.transport")


@dataclass
class TransportResponse:
    """Plain response record, independent of the HTTP library."""
    status_code: int
    text: str = ""
    cookies: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    def json(self) -> Any:
        return json.loads(self.text)


class Transport(Protocol):
    """Structural interface of a transport adapter."""

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Union[str, bytes, Dict[str, str]]] = None,
    ) -> TransportResponse:
        ...

    def get_cookies(self, domain: Optional[str] = COOKIE_DOMAIN) -> List[CookieRecord]:
        ...

    def set_cookies(self, domain: str, cookie_string: str) -> None:
        ...

    def add_cookie(self, record: CookieRecord) -> None:
        ...

    def clear_cookies(self) -> None:
        ...


def _domain_matches(cookie_domain: str, domain: str) -> bool:
    base = domain.lstrip(".")
    cd = cookie_domain.lstrip(".")
    return cd == base or cd.endswith(f".{base}")


def parse_cookie_string(cookie_string: str) -> List[tuple]:
    """
    Split "a=1; b=2" (or "a=1, b=2" as browser controls export it)
    into [(name, value), ...].
    """
    pairs = []
    for part in cookie_string.replace(",", ";").split(";"):
        part = part.strip()
        if not part or "=" not in part:
            continue
        name, _, value = part.partition("=")
        name = name.strip()
        if name:
            pairs.append((name, value.strip().strip('"')))
    return pairs


class CurlTransport:
    """
    curl_cffi-backed transport.

    Usage:
        transport = CurlTransport(proxy="http://user:pass@ip:port")
        resp = transport.send("GET", "https://i.instagram.com/")
    """

    def __init__(
        self,
        proxy: Optional[str] = None,
        timeout: int = REQUEST_TIMEOUT,
        impersonate: str = "chrome142",
    ):
        self._proxy = proxy
        self._timeout = timeout
        self._impersonate = impersonate
        self._session: Optional[curl_requests.Session] = None

    def _get_session(self) -> curl_requests.Session:
        """Get or create curl_cffi session."""
        if self._session is None:
            self._session = curl_requests.Session(impersonate=self._impersonate)
            self._session.max_redirects = 5
        return self._session

    @property
    def _jar(self):
        return self._get_session().cookies.jar

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Union[str, bytes, Dict[str, str]]] = None,
    ) -> TransportResponse:
        session = self._get_session()
        proxies = {"http": self._proxy, "https": self._proxy} if self._proxy else None
        try:
            resp = session.request(
                method,
                url,
                headers=headers,
                data=body,
                proxies=proxies,
                timeout=self._timeout,
                allow_redirects=False,
            )
        except CurlError as e:
            logger.warning(f"[Transport] {method} {url} failed: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e

        return TransportResponse(
            status_code=resp.status_code,
            text=resp.text,
            cookies={c.name: c.value for c in self._jar},
            headers=dict(resp.headers),
        )

    def get_cookies(self, domain: Optional[str] = COOKIE_DOMAIN) -> List[CookieRecord]:
        records = []
        for c in self._jar:
            if domain is not None and not _domain_matches(c.domain, domain):
                continue
            records.append(CookieRecord(
                domain=c.domain,
                name=c.name,
                value=c.value or "",
                path=c.path or "/",
                expires=c.expires,
                secure=bool(c.secure),
                http_only=c.has_nonstandard_attr("HttpOnly"),
            ))
        return records

    def set_cookies(self, domain: str, cookie_string: str) -> None:
        session = self._get_session()
        for name, value in parse_cookie_string(cookie_string):
            session.cookies.set(name, value, domain=domain, path="/")

    def add_cookie(self, record: CookieRecord) -> None:
        rest = {"HttpOnly": None} if record.http_only else {}
        self._jar.set_cookie(Cookie(
            version=0,
            name=record.name,
            value=record.value,
            port=None,
            port_specified=False,
            domain=record.domain,
            domain_specified=True,
            domain_initial_dot=record.domain.startswith("."),
            path=record.path,
            path_specified=True,
            secure=record.secure,
            expires=record.expires,
            discard=record.expires is None,
            comment=None,
            comment_url=None,
            rest=rest,
        ))

    def clear_cookies(self) -> None:
        self._get_session().cookies.clear()

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
