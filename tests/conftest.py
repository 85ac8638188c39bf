"""Pytest configuration shared by every suite.

What:
  Make the in-repo ``imapmove/src`` tree importable and keep the settings
  environment variable out of tests that do not set it explicitly.

Why:
  Tests must run against the source tree rather than an installed wheel, and
  a developer's own ``IMAPMOVE_CONFIG_PATH`` must never leak into assertions
  about argument handling.

How:
  Prepend the source directory to ``sys.path`` at import time and clear the
  variable with an autouse :class:`pytest.MonkeyPatch` fixture.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "imapmove" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from imapmove.config.loader import CONFIG_ENV


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Remove ``IMAPMOVE_CONFIG_PATH`` for the duration of each test."""

    monkeypatch.delenv(CONFIG_ENV, raising=False)
    yield
