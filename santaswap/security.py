from __future__ import annotations

import base64
import hashlib
import json
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken


# ---------------------------------------------------------------------------
# Assignment tables on disk
#
# assignments.json and every backup copy of it would otherwise show who draws
# whom to anyone who can list the data directory. With a key configured, each
# party's table is stored as a Fernet token instead of a JSON object.
#
# The key lives in the process environment, so this only keeps the draw away
# from someone browsing files or backups, not from whoever runs the server.
# ---------------------------------------------------------------------------


class AssignmentCipher:
    def __init__(self, key: bytes) -> None:
        self._fernet = Fernet(key)

    @classmethod
    def from_config(cls, config) -> Optional["AssignmentCipher"]:
        """Build a cipher from ASSIGNMENT_ENC_KEY or derive one from SECRET_KEY.

        Returns None when neither is configured; tables are then stored as
        plain JSON.
        """
        explicit = (config.get("ASSIGNMENT_ENC_KEY") or "").strip()
        if explicit:
            # Expect a urlsafe base64-encoded 32-byte key.
            return cls(explicit.encode("utf-8"))

        secret = (config.get("SECRET_KEY") or "").strip()
        if not secret:
            return None

        # Derive a stable key so decrypt works across restarts.
        digest = hashlib.sha256(b"santaswap-assignments|" + secret.encode("utf-8")).digest()
        return cls(base64.urlsafe_b64encode(digest))

    def encrypt_table(self, table: dict[str, str]) -> str:
        """Encrypt {giver: recipient} -> ciphertext token (string)."""
        raw = json.dumps(table, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return self._fernet.encrypt(raw).decode("utf-8")

    def decrypt_table(self, token) -> dict[str, str]:
        """Decrypt ciphertext token -> {giver: recipient}. Raises ValueError on failure.

        Plain tables written before encryption was enabled are returned as is.
        """
        if isinstance(token, dict):
            return token
        try:
            raw = self._fernet.decrypt(token.encode("utf-8"))
            table = json.loads(raw.decode("utf-8"))
        except (InvalidToken, ValueError, TypeError, AttributeError) as e:
            raise ValueError("Invalid assignment token") from e
        if not isinstance(table, dict):
            raise ValueError("Invalid assignment token")
        return table


# ---------------------------------------------------------------------------
# Response headers
# ---------------------------------------------------------------------------

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self'; "
    "style-src 'self'; "
    "img-src 'self' data:; "
    "connect-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self'"
)

SECURITY_HEADERS = {
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


def apply_security_headers(response):
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response
