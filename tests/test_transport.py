"""
Tests for the curl_cffi transport adapter and cookie helpers.
"""

from unittest.mock import MagicMock

import pytest
from curl_cffi import CurlError
from curl_cffi.requests import BrowserType

from instaauth.exceptions import TransportError
from instaauth.models.session import CookieRecord
from instaauth.transport import CurlTransport, TransportResponse, _domain_matches, parse_cookie_string


class TestCookieHelpers:

    def test_parse_semicolons(self):
        assert parse_cookie_string("a=1; b=2") == [("a", "1"), ("b", "2")]

    def test_parse_commas(self):
        assert parse_cookie_string("a=1, b=2") == [("a", "1"), ("b", "2")]

    def test_parse_skips_junk(self):
        assert parse_cookie_string("a=1;; novalue; =x; c=\"3\"") == [("a", "1"), ("c", "3")]

    def test_value_with_equals(self):
        assert parse_cookie_string("token=abc==") == [("token", "abc==")]

    @pytest.mark.parametrize("cookie_domain,expected", [
        (".instagram.com", True),
        ("instagram.com", True),
        ("i.instagram.com", True),
        (".example.com", False),
        ("notinstagram.com", False),
    ])
    def test_domain_matches(self, cookie_domain, expected):
        assert _domain_matches(cookie_domain, ".instagram.com") is expected


class TestTransportResponse:

    def test_ok(self):
        assert TransportResponse(200).ok is True
        assert TransportResponse(400).ok is False

    def test_json(self):
        assert TransportResponse(200, '{"a": 1}').json() == {"a": 1}


class TestCurlTransport:

    def _mocked(self, status_code=200, text='{"status": "ok"}'):
        transport = CurlTransport(proxy="http://proxy:8080", timeout=7)
        session = MagicMock()
        session.request.return_value = MagicMock(status_code=status_code, text=text, headers={"X-A": "1"})
        session.cookies.jar = []
        transport._session = session
        return transport, session

    def test_send(self):
        transport, session = self._mocked()
        resp = transport.send("POST", "https://i.instagram.com/api/v1/x/", headers={"H": "v"}, body="a=1")

        assert resp.status_code == 200
        assert resp.text == '{"status": "ok"}'
        assert resp.headers == {"X-A": "1"}
        kwargs = session.request.call_args.kwargs
        assert kwargs["data"] == "a=1"
        assert kwargs["headers"] == {"H": "v"}
        assert kwargs["timeout"] == 7
        assert kwargs["proxies"] == {"http": "http://proxy:8080", "https": "http://proxy:8080"}
        assert kwargs["allow_redirects"] is False

    def test_curl_error(self):
        transport, session = self._mocked()
        session.request.side_effect = CurlError("connection refused")

        with pytest.raises(TransportError):
            transport.send("GET", "https://i.instagram.com/")

    def test_cookie_jar(self):
        transport = CurlTransport()
        transport.add_cookie(CookieRecord(domain=".instagram.com", name="sessionid", value="s1", http_only=True))
        transport.set_cookies(".instagram.com", "csrftoken=c1")
        transport.add_cookie(CookieRecord(domain=".example.com", name="other", value="x"))

        cookies = {c.name: c for c in transport.get_cookies(".instagram.com")}
        assert set(cookies) == {"sessionid", "csrftoken"}
        assert cookies["sessionid"].value == "s1"
        assert cookies["sessionid"].http_only is True
        assert cookies["csrftoken"].value == "c1"

        assert {c.name for c in transport.get_cookies(None)} == {"sessionid", "csrftoken", "other"}

        transport.clear_cookies()
        assert transport.get_cookies(None) == []
        transport.close()

    def test_default_impersonation_known(self):
        assert CurlTransport()._impersonate in {b.value for b in BrowserType}

    def test_close_idempotent(self):
        transport = CurlTransport()
        transport.close()
        transport.close()
