"""
Tests for AuthConfig.from_env and URL helpers.
"""

import pytest

from instaauth.auth import AuthEngine
from instaauth.config import (
    IG_SIGNATURE_KEY,
    IG_SIGNATURE_KEY_VERSION,
    REQUEST_TIMEOUT,
    AuthConfig,
    api_url,
)

ENV_KEYS = (
    "IG_USERNAME", "IG_PASSWORD", "IG_SESSION_FILE", "IG_PROXY", "IG_SIGNATURE_KEY",
    "IG_SIGNATURE_KEY_VERSION", "IG_DEVICE_SEED", "IG_LOG_LEVEL", "IG_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so monkeypatch restores (removes) whatever load_dotenv writes
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")


class TestApiUrl:

    def test_path(self):
        assert api_url("/accounts/login/") == "https://i.instagram.com/api/v1/accounts/login/"

    def test_no_leading_slash(self):
        assert api_url("accounts/logout/") == "https://i.instagram.com/api/v1/accounts/logout/"

    def test_absolute(self):
        assert api_url("https://i.instagram.com/") == "https://i.instagram.com/"


class TestAuthConfig:

    def test_defaults_without_file(self, tmp_path):
        cfg = AuthConfig.from_env(str(tmp_path / "missing.env"))
        assert cfg.username == ""
        assert cfg.session_file is None
        assert cfg.signature_key == IG_SIGNATURE_KEY
        assert cfg.signature_key_version == IG_SIGNATURE_KEY_VERSION
        assert cfg.log_level == "WARNING"
        assert cfg.timeout == REQUEST_TIMEOUT

    def test_from_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text(
            "IG_USERNAME=bob\n"
            "IG_PASSWORD=secret\n"
            "IG_SESSION_FILE=bob.json\n"
            "IG_PROXY=http://proxy:8080\n"
            "IG_DEVICE_SEED=seed-1\n"
            "IG_LOG_LEVEL=DEBUG\n"
            "IG_TIMEOUT=30\n"
        )
        cfg = AuthConfig.from_env(str(env))

        assert cfg.username == "bob"
        assert cfg.password == "secret"
        assert cfg.session_file == "bob.json"
        assert cfg.proxy == "http://proxy:8080"
        assert cfg.device_seed == "seed-1"
        assert cfg.log_level == "DEBUG"
        assert cfg.timeout == 30

    def test_process_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IG_USERNAME", "alice")
        monkeypatch.setenv("IG_TIMEOUT", "abc")
        cfg = AuthConfig.from_env(str(tmp_path / "missing.env"))
        assert cfg.username == "alice"
        assert cfg.timeout == REQUEST_TIMEOUT

    def test_engine_from_config(self):
        cfg = AuthConfig(username="bob", password="secret", device_seed="seed-1")
        engine = AuthEngine.from_config(cfg)
        assert engine.session_store.device.seed == "seed-1"
        assert engine.current_session().username == "bob"

    def test_device_seed_defaults_to_username(self):
        a = AuthEngine.from_config(AuthConfig(username="bob", password="x"))
        b = AuthEngine.from_config(AuthConfig(username="bob", password="y"))
        assert a.session_store.device.device_id == b.session_store.device.device_id
