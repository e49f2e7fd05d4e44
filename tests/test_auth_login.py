"""
Tests for AuthEngine.login(): request shape, outcome classification,
context handling and session invalidation.
"""

import pytest

from instaauth.auth import AuthEngine, AuthState
from instaauth.config import INSTAGRAM_URL
from instaauth.exceptions import PreconditionError, ProtocolError, RemoteRejection, TransportError
from instaauth.result import LoginOutcome
from instaauth.signer import RequestSigner

LOGIN = "/accounts/login/"


class TestLoginSuccess:
    """Happy path."""

    def test_success_result(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok)
        result = engine.login()

        assert result.succeeded
        assert result.outcome == LoginOutcome.SUCCESS
        assert result.value.pk == 123456789
        assert result.value.username == "bob"

    def test_session_authenticated(self, engine, transport, device, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login()

        session = engine.current_session()
        assert engine.is_authenticated() is True
        assert engine.state == AuthState.AUTHENTICATED
        assert session.logged_in_user.pk == 123456789
        assert session.rank_token == f"123456789_{device.phone_guid}"
        assert session.csrf_token == "csrf-1"

    def test_warm_up_get_on_fresh_session(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login()

        first, second = transport.requests
        assert first.method == "GET"
        assert first.url == f"{INSTAGRAM_URL}/"
        assert second.method == "POST"
        assert second.url.endswith("/api/v1/accounts/login/")

    def test_no_warm_up_when_not_fresh(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login(fresh_session=False)

        assert len(transport.requests) == 1
        assert transport.requests[0].method == "POST"

    def test_signed_body(self, engine, transport, device, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login(fresh_session=False)

        request = transport.requests[0]
        payload = request.payload
        assert request.form["ig_sig_key_version"] == "4"
        assert request.signature == RequestSigner().signature(payload)
        assert payload["username"] == "bob"
        assert payload["password"] == "secret"
        assert payload["_csrftoken"] == "csrf-1"
        assert payload["phone_id"] == device.phone_guid
        assert payload["guid"] == device.device_guid
        assert payload["device_id"] == device.device_id

    def test_device_headers_sent(self, engine, transport, device, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login(fresh_session=False)

        headers = transport.requests[0].headers
        assert headers["User-Agent"] == device.user_agent
        assert headers["X-IG-Android-ID"] == device.device_id
        assert headers["X-CSRFToken"] == "csrf-1"

    def test_csrf_picked_up_from_response_cookie(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok, cookies={"csrftoken": "csrf-2"})
        engine.login()
        assert engine.current_session().csrf_token == "csrf-2"

    def test_explicit_credentials_override(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok)
        engine.login(username="alice", password="hunter2", fresh_session=False)

        payload = transport.requests[0].payload
        assert payload["username"] == "alice"
        assert payload["password"] == "hunter2"

    def test_invalidation_fired_once(self, engine, transport, login_ok):
        calls = []
        engine.on_invalidate(calls.append)
        transport.route(LOGIN, body=login_ok)
        engine.login()
        assert len(calls) == 1
        assert calls[0].state == "authenticated"

    def test_email_login_accepted(self, engine, transport, login_ok):
        transport.route(LOGIN, body=login_ok)
        result = engine.login(username="bob@example.com")
        assert result.succeeded
        assert result.value.username == "bob"


class TestLoginPreconditions:
    """Local validation happens before any network call."""

    @pytest.mark.parametrize("username,password", [("", "secret"), ("bob", ""), ("", "")])
    def test_missing_credentials(self, transport, device, username, password):
        engine = AuthEngine(username=username, password=password, transport=transport, device=device)
        result = engine.login()

        assert not result.succeeded
        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, PreconditionError)
        assert transport.requests == []

    def test_unwrap_raises(self, transport, device):
        engine = AuthEngine(transport=transport, device=device)
        with pytest.raises(PreconditionError):
            engine.login().unwrap()


class TestLoginFailures:
    """Non-OK responses map to outcomes in a fixed priority order."""

    def test_bad_password(self, engine, transport):
        transport.route(LOGIN, 400, {
            "message": "The password you entered is incorrect.",
            "invalid_credentials": True,
            "error_type": "bad_password",
            "status": "fail",
        })
        result = engine.login()

        assert result.outcome == LoginOutcome.BAD_PASSWORD
        assert result.message == "The password you entered is incorrect."
        assert isinstance(result.error, RemoteRejection)
        assert result.error.error_type == "bad_password"
        assert engine.state == AuthState.FAILED
        assert engine.is_authenticated() is False

    def test_invalid_user(self, engine, transport):
        transport.route(LOGIN, 400, {"invalid_credentials": True, "error_type": "invalid_user", "status": "fail"})
        assert engine.login().outcome == LoginOutcome.INVALID_USER

    def test_invalid_credentials_beat_two_factor(self, engine, transport, two_factor_required):
        body = dict(two_factor_required, invalid_credentials=True, error_type="invalid_user")
        transport.route(LOGIN, 400, body)
        result = engine.login()

        assert result.outcome == LoginOutcome.INVALID_USER
        assert engine.two_factor_context is None

    def test_bad_password_beats_two_factor(self, engine, transport, two_factor_required):
        body = dict(two_factor_required, invalid_credentials=True, error_type="bad_password")
        transport.route(LOGIN, 400, body)
        result = engine.login()

        assert result.outcome == LoginOutcome.BAD_PASSWORD
        assert engine.state == AuthState.FAILED
        assert engine.two_factor_context is None

    def test_two_factor_required(self, engine, transport, device, two_factor_required):
        transport.route(LOGIN, 400, two_factor_required)
        result = engine.login()

        ctx = engine.two_factor_context
        assert result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED
        assert engine.state == AuthState.TWO_FACTOR_PENDING
        assert ctx.identifier == "2fa-ident-1"
        assert ctx.pending_username == "bob"
        assert ctx.pending_device_id == device.device_id
        assert engine.is_authenticated() is False

    def test_two_factor_without_identifier(self, engine, transport):
        transport.route(LOGIN, 400, {"two_factor_required": True, "two_factor_info": {"username": "bob"}})
        result = engine.login()

        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, ProtocolError)
        assert engine.two_factor_context is None

    def test_challenge_required(self, engine, transport, challenge_required):
        transport.route(LOGIN, 400, challenge_required)
        result = engine.login()

        assert result.outcome == LoginOutcome.CHALLENGE_REQUIRED
        assert engine.state == AuthState.CHALLENGE_PENDING
        assert engine.challenge_context.api_path == "/challenge/123456789/AbCdEf/"

    def test_challenge_api_path_from_url(self, engine, transport):
        transport.route(LOGIN, 400, {
            "message": "challenge_required",
            "challenge": {"url": "https://i.instagram.com/api/v1/challenge/1/xyz/"},
        })
        engine.login()
        assert engine.challenge_context.api_path == "/challenge/1/xyz/"

    def test_challenge_without_path(self, engine, transport):
        transport.route(LOGIN, 400, {"error_type": "checkpoint_challenge_required", "challenge": {}})
        result = engine.login()

        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, ProtocolError)
        assert engine.challenge_context is None

    def test_rate_limited(self, engine, transport):
        transport.route(LOGIN, 400, {"message": "Please wait a few minutes", "error_type": "rate_limit_error"})
        assert engine.login().outcome == LoginOutcome.RATE_LIMITED

    def test_rate_limited_by_status(self, engine, transport):
        transport.route(LOGIN, 429, {"message": "Please wait a few minutes", "status": "fail"})
        assert engine.login().outcome == LoginOutcome.RATE_LIMITED

    def test_unknown_failure(self, engine, transport):
        transport.route(LOGIN, 400, {"message": "something else", "status": "fail"})
        result = engine.login()
        assert result.outcome == LoginOutcome.EXCEPTION
        assert engine.state == AuthState.FAILED

    def test_undecodable_body(self, engine, transport):
        transport.route(LOGIN, 500, text="<html>Oops</html>")
        result = engine.login()

        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, ProtocolError)

    def test_ok_without_user(self, engine, transport):
        transport.route(LOGIN, 200, {"status": "ok"})
        result = engine.login()

        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, ProtocolError)
        assert engine.is_authenticated() is False

    def test_transport_error(self, engine, transport):
        transport.fail(LOGIN, TransportError("connection reset"))
        result = engine.login()

        assert result.outcome == LoginOutcome.EXCEPTION
        assert isinstance(result.error, TransportError)
        assert engine.state == AuthState.FAILED

    def test_unknown_exception_wrapped(self, engine, transport):
        transport.fail(LOGIN, OSError("socket closed"))
        result = engine.login()

        assert isinstance(result.error, TransportError)
        assert isinstance(result.error.__cause__, OSError)

    def test_failure_does_not_invalidate(self, engine, transport):
        calls = []
        engine.on_invalidate(calls.append)
        transport.route(LOGIN, 400, {"invalid_credentials": True, "error_type": "bad_password"})
        engine.login()
        assert calls == []


class TestLoginRestart:
    """A new login drops any pending two-factor or challenge context."""

    def test_new_login_clears_two_factor(self, engine, transport, two_factor_required):
        transport.route(LOGIN, 400, two_factor_required)
        transport.route(LOGIN, 400, {"invalid_credentials": True, "error_type": "bad_password"})
        engine.login()
        assert engine.two_factor_context is not None

        engine.login()
        assert engine.two_factor_context is None

    def test_new_login_clears_challenge(self, engine, transport, challenge_required, login_ok):
        transport.route(LOGIN, 400, challenge_required)
        transport.route(LOGIN, body=login_ok)
        engine.login()
        assert engine.challenge_context is not None

        engine.login()
        assert engine.challenge_context is None
        assert engine.state == AuthState.AUTHENTICATED

    def test_relogin_drops_previous_session(self, authed_engine, transport, two_factor_required):
        transport.route(LOGIN, 400, two_factor_required)
        result = authed_engine.login()
        session = authed_engine.current_session()

        assert result.outcome == LoginOutcome.TWO_FACTOR_REQUIRED
        assert authed_engine.state == AuthState.TWO_FACTOR_PENDING
        assert authed_engine.is_authenticated() is False
        assert session.logged_in_user is None
        assert session.rank_token == ""

    def test_failed_relogin_is_unauthenticated(self, authed_engine, transport):
        transport.route(LOGIN, 400, {"invalid_credentials": True, "error_type": "bad_password"})
        result = authed_engine.login()

        assert result.outcome == LoginOutcome.BAD_PASSWORD
        assert authed_engine.state == AuthState.FAILED
        assert authed_engine.is_authenticated() is False

    def test_relogin_invalidates_previous_session(self, authed_engine, transport):
        calls = []
        authed_engine.on_invalidate(calls.append)
        transport.route(LOGIN, 400, {"invalid_credentials": True, "error_type": "bad_password"})
        authed_engine.login()

        assert len(calls) == 1
        assert calls[0].state == "anonymous"

    def test_relogin_precondition_still_drops_session(self, authed_engine, transport):
        result = authed_engine.login(password="")

        assert isinstance(result.error, PreconditionError)
        assert authed_engine.is_authenticated() is False
        assert transport.requests == []
