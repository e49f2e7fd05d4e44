"""
Request Signer
==============
HMAC-SHA256 signature over the canonical request body.

Signed calls carry two form fields:
    signed_body         → "{hex signature}.{canonical json}"
    ig_sig_key_version  → key version tag

Signing is a pure function: same payload + key = same signature.
"""

import hashlib
import hmac
import json
from typing import Any, Dict, Union

from .config import IG_SIGNATURE_KEY, IG_SIGNATURE_KEY_VERSION


def sign(payload: bytes, key: bytes) -> str:
    """HMAC-SHA256 hex digest of payload under key."""
    return hmac.new(key, payload, hashlib.sha256).hexdigest()


class RequestSigner:
    """
    Builds signed request bodies.

    Usage:
        signer = RequestSigner()
        form = signer.signed_form({"username": "bob", "_csrftoken": "x"})
        # {"signed_body": "5f1c...{...}", "ig_sig_key_version": "4"}
    """

    def __init__(
        self,
        key: Union[str, bytes] = IG_SIGNATURE_KEY,
        key_version: str = IG_SIGNATURE_KEY_VERSION,
    ):
        self._key = key.encode("utf-8") if isinstance(key, str) else key
        self.key_version = key_version

    @staticmethod
    def canonical(data: Dict[str, Any]) -> bytes:
        """Exact byte form the signature is computed over (compact JSON, key order kept)."""
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def signature(self, data: Dict[str, Any]) -> str:
        return sign(self.canonical(data), self._key)

    def signed_body(self, data: Dict[str, Any]) -> str:
        payload = self.canonical(data)
        return f"{sign(payload, self._key)}.{payload.decode('utf-8')}"

    def signed_form(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Form fields for a signed POST."""
        return {
            "signed_body": self.signed_body(data),
            "ig_sig_key_version": self.key_version,
        }
