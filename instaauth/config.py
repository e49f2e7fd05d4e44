"""
Instagram Auth Configuration and Constants
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ============================================================
# API Base
# ============================================================
INSTAGRAM_URL = "https://i.instagram.com"
API_BASE = f"{INSTAGRAM_URL}/api/v1"
COOKIE_DOMAIN = ".instagram.com"

# Mobile API App ID (for i.instagram.com endpoints)
IG_APP_ID_MOBILE = "567067343352427"

# ============================================================
# Endpoints
# ============================================================
LOGIN_PATH = "/accounts/login/"
TWO_FACTOR_LOGIN_PATH = "/accounts/two_factor_login/"
LOGOUT_PATH = "/accounts/logout/"
CURRENT_USER_PATH = "/accounts/current_user/?edit=true"
FACEBOOK_SIGNUP_PATH = "/fb/facebook_signup/"
DIRECT_INBOX_PATH = "/direct_v2/inbox/"
RECENT_ACTIVITY_PATH = "/news/inbox/"

# Registration
CHECK_EMAIL_PATH = "/users/check_email/"
CHECK_PHONE_NUMBER_PATH = "/accounts/check_phone_number/"
SEND_SIGNUP_SMS_CODE_PATH = "/accounts/send_signup_sms_code/"
VALIDATE_SIGNUP_SMS_CODE_PATH = "/accounts/validate_signup_sms_code/"
USERNAME_SUGGESTIONS_PATH = "/accounts/username_suggestions/"
CREATE_VALIDATED_PATH = "/accounts/create_validated/"
CREATE_ACCOUNT_PATH = "/accounts/create/"
ONBOARDING_STEPS_PATH = "/dynamic_onboarding/get_steps/"

# ============================================================
# Request signing
# ============================================================
IG_SIGNATURE_KEY = "937463b5272b5d60e9d20f0f8d7d192193dd95095a3ad43725d494300a5ea5fc"
IG_SIGNATURE_KEY_VERSION = "4"

# ============================================================
# Cookies
# ============================================================
CSRF_COOKIE = "csrftoken"
SESSION_COOKIE = "sessionid"

# ============================================================
# Challenge
# ============================================================
CHALLENGE_CODE_LENGTH = 6
CHALLENGE_WARM_UP_DELAY = 1.5  # seconds between verification and cache warm-up

# Bumped whenever the persisted state layout changes
STATE_VERSION = 1

# ============================================================
# Timeout (in seconds)
# ============================================================
REQUEST_TIMEOUT = 15


def api_url(path: str) -> str:
    """Absolute API URL for a path like '/accounts/login/'."""
    if path.startswith("http"):
        return path
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{API_BASE}{path}"


@dataclass
class AuthConfig:
    """
    Runtime settings for an auth session.

    Usage:
        cfg = AuthConfig.from_env(".env")
        engine = AuthEngine.from_config(cfg)
    """

    username: str = ""
    password: str = ""
    session_file: Optional[str] = None
    proxy: Optional[str] = None
    signature_key: str = IG_SIGNATURE_KEY
    signature_key_version: str = IG_SIGNATURE_KEY_VERSION
    device_seed: str = ""
    log_level: str = "WARNING"
    timeout: int = REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, env_path: str = ".env") -> "AuthConfig":
        """
        Load settings from a .env file (if present) and the process environment.

        Recognized keys: IG_USERNAME, IG_PASSWORD, IG_SESSION_FILE, IG_PROXY,
        IG_SIGNATURE_KEY, IG_SIGNATURE_KEY_VERSION, IG_DEVICE_SEED,
        IG_LOG_LEVEL, IG_TIMEOUT
        """
        env_file = Path(env_path)
        if env_file.exists():
            load_dotenv(env_file, override=True)

        timeout = os.getenv("IG_TIMEOUT", "")
        return cls(
            username=os.getenv("IG_USERNAME", ""),
            password=os.getenv("IG_PASSWORD", ""),
            session_file=os.getenv("IG_SESSION_FILE") or None,
            proxy=os.getenv("IG_PROXY") or None,
            signature_key=os.getenv("IG_SIGNATURE_KEY") or IG_SIGNATURE_KEY,
            signature_key_version=os.getenv("IG_SIGNATURE_KEY_VERSION") or IG_SIGNATURE_KEY_VERSION,
            device_seed=os.getenv("IG_DEVICE_SEED", ""),
            log_level=os.getenv("IG_LOG_LEVEL") or "WARNING",
            timeout=int(timeout) if timeout.isdigit() else REQUEST_TIMEOUT,
        )
