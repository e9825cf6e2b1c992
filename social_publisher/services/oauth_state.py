"""
OAuth state signing and PKCE verifier hand-off between authorize and callback.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import threading
import time
from hashlib import sha256
from typing import Any, Callable, Dict, Optional, Tuple

from social_publisher.core.exceptions import SocialMediaException


class InvalidOAuthStateError(SocialMediaException):
    """Raised when a state token is malformed, tampered with or expired."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("OAuth state secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidOAuthStateError("Malformed OAuth state token.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidOAuthStateError("Invalid OAuth state signature.")
        return json.loads(serialized)


class PkceVerifierStore:
    """Short-lived, single-use verifier storage keyed by platform and state.

    Entries vanish on first read whether or not they are still valid.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def put(self, platform: str, state: str, code_verifier: str) -> None:
        with self._lock:
            self._purge()
            self._entries[(platform, state)] = (code_verifier, self._clock() + self._ttl)

    def pop(self, platform: str, state: Optional[str]) -> Optional[str]:
        if not state:
            return None
        with self._lock:
            entry = self._entries.pop((platform, state), None)
        if entry is None:
            return None
        verifier, expires_at = entry
        if expires_at < self._clock():
            return None
        return verifier

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._entries)

    def _purge(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at < now]
        for key in expired:
            del self._entries[key]


__all__ = ["InvalidOAuthStateError", "OAuthStateEncoder", "PkceVerifierStore"]
