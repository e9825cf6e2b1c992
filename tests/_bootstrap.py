"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "OAUTH_STATE_SECRET": "test-state-secret",
    "FACEBOOK_CLIENT_ID": "fb-client-id",
    "FACEBOOK_CLIENT_SECRET": "fb-client-secret",
    "X_CLIENT_ID": "x-client-id",
    "X_CLIENT_SECRET": "x-client-secret",
    "LINKEDIN_CLIENT_ID": "li-client-id",
    "LINKEDIN_CLIENT_SECRET": "li-client-secret",
    "SOCIAL_MEDIA_RETRY_BACKOFF": "0",
    "SOCIAL_MEDIA_DB_PATH": str(Path(tempfile.gettempdir()) / "social_publisher_test.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
