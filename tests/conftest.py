"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports ``app.core.config``,
so the settings object is built for tests: a dummy Gemini key and a
throwaway rate limit state file.
"""

import os
import tempfile

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("GENAI_API_KEY", "test-genai-key")
os.environ.setdefault("GENAI_MODEL", "gemini-2.5-flash-image")
os.environ.setdefault(
    "APP_RATE_LIMIT_STATE_FILE",
    os.path.join(tempfile.mkdtemp(prefix="image-editor-tests-"), "rate_limit_state.json"),
)

import pytest  # noqa: E402

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def png_bytes() -> bytes:
    """Bytes with a valid PNG signature."""
    return PNG_HEADER + b"\x00\x00\x00\rIHDR" + b"\x00" * 16


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Bytes with a valid JPEG signature."""
    return b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 16
