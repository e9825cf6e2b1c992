"""PKCE (RFC 7636) helpers for the S256 challenge method."""

from __future__ import annotations

import base64
import hashlib
import secrets

CODE_CHALLENGE_METHOD = "S256"


def generate_code_verifier() -> str:
    """Return 32 random bytes hex-encoded (64 characters)."""
    return secrets.token_hex(32)


def derive_code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state() -> str:
    return secrets.token_hex(16)


__all__ = [
    "CODE_CHALLENGE_METHOD",
    "derive_code_challenge",
    "generate_code_verifier",
    "generate_state",
]
