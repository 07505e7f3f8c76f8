"""Guest edit tokens.

A guest comment gets a random token at creation. Only its SHA-256 digest is
stored; the plaintext is returned to the client once and cannot be
recovered.
"""

import hashlib
import secrets


def issue_edit_token() -> str:
    """Generate a URL-safe edit token (43 chars, 256 bits)."""
    return secrets.token_urlsafe(32)


def hash_edit_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def verify_edit_token(token: str | None, stored_hash: str | None) -> bool:
    """Check a plaintext token against the stored digest.

    Constant-time comparison. A missing token or hash never verifies.
    """
    if not token or not stored_hash:
        return False
    return secrets.compare_digest(hash_edit_token(token), stored_hash)
