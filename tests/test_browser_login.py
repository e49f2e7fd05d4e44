"""
Tests for adopting a browser / web view session.
"""

import json

import pytest

from instaauth.auth import AuthState
from instaauth.exceptions import ValidationError

SHARED_DATA = {
    "config": {
        "csrf_token": "web-csrf",
        "viewer": {
            "id": "987654321",
            "username": "webbob",
            "full_name": "Web Bob",
            "profile_pic_url": "https://example.com/web.jpg",
        },
    },
}

COOKIES = "csrftoken=web-csrf; sessionid=abc%3A123; ds_user_id=987654321"


def _html(data: dict) -> str:
    return (
        "<html><body><script type=\"text/javascript\">"
        f"window._sharedData = {json.dumps(data)};</script></body></html>"
    )


class TestBrowserLogin:

    def test_from_html(self, engine, device):
        result = engine.login_with_browser_session(_html(SHARED_DATA), COOKIES)
        session = engine.current_session()

        assert result.succeeded
        assert engine.is_authenticated() is True
        assert engine.state == AuthState.AUTHENTICATED
        assert session.logged_in_user.pk == 987654321
        assert session.logged_in_user.full_name == "Web Bob"
        assert session.csrf_token == "web-csrf"
        assert session.rank_token == f"987654321_{device.phone_guid}"

    def test_from_dict(self, engine):
        assert engine.login_with_browser_session(SHARED_DATA, COOKIES).succeeded

    def test_cookies_seeded(self, engine):
        engine.login_with_browser_session(SHARED_DATA, COOKIES)
        store = engine.session_store
        assert store.cookie("sessionid") == "abc%3A123"
        assert store.cookie("ds_user_id") == "987654321"

    def test_no_network_without_facebook(self, engine, transport):
        engine.login_with_browser_session(SHARED_DATA, COOKIES)
        assert transport.requests == []

    def test_csrf_from_cookie_when_missing(self, engine):
        data = {"config": {"viewer": SHARED_DATA["config"]["viewer"]}}
        engine.login_with_browser_session(data, "csrftoken=jar-csrf; sessionid=x")
        assert engine.current_session().csrf_token == "jar-csrf"

    @pytest.mark.parametrize("shared", [
        "<html>nothing here</html>",
        {"config": {}},
        {"config": ["viewer"]},
        {},
    ])
    def test_invalid_shared_data(self, engine, shared):
        result = engine.login_with_browser_session(shared, COOKIES)
        assert isinstance(result.error, ValidationError)
        assert engine.is_authenticated() is False

    def test_empty_cookie_string(self, engine):
        result = engine.login_with_browser_session(SHARED_DATA, "")
        assert isinstance(result.error, ValidationError)

    def test_pending_contexts_dropped(self, engine, transport, two_factor_required):
        transport.route("/accounts/login/", 400, two_factor_required)
        engine.login()
        engine.login_with_browser_session(SHARED_DATA, COOKIES)
        assert engine.two_factor_context is None


class TestFacebookLink:

    def test_facebook_user_id_stored(self, engine, transport):
        transport.route("/fb/facebook_signup/", body={"fb_user_id": "1000001", "status": "ok"})
        result = engine.login_with_browser_session(SHARED_DATA, COOKIES, facebook_login=True, fb_access_token="tok")

        request = transport.requests[0]
        assert result.succeeded
        assert engine.current_session().facebook_user_id == "1000001"
        assert request.payload["dryrun"] == "true"
        assert request.payload["fb_access_token"] == "tok"

    def test_facebook_failure_ignored(self, engine, transport):
        transport.route("/fb/facebook_signup/", 500, text="error")
        result = engine.login_with_browser_session(SHARED_DATA, COOKIES, facebook_login=True)

        assert result.succeeded
        assert engine.is_authenticated() is True
        assert engine.current_session().facebook_user_id is None
