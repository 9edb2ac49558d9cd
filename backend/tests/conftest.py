"""
Pytest configuration for backend tests.

Environment defaults are set before any `eduvane` import so settings, the
SQLAlchemy engine and the app pick up a throwaway SQLite database and a
well-formed (fake) credential. No test talks to a real model API.
"""
import os
import tempfile

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="eduvane-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ.setdefault("GEMINI_API_KEY", "AIzaTestKey-0123456789abcdefghijklmnop")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LLM_PROVIDER", "gemini")

from eduvane.settings import Settings  # noqa: E402

VALID_KEY = "AIzaTestKey-0123456789abcdefghijklmnop"


@pytest.fixture
def anyio_backend():
    # Force AnyIO to the asyncio backend; the disconnect watcher relies on asyncio tasks.
    return "asyncio"


@pytest.fixture
def valid_settings() -> Settings:
    return Settings(GEMINI_API_KEY=VALID_KEY, LLM_PROVIDER="gemini")
