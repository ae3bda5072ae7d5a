"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Put the in-repo ``veloimap/src`` tree first on ``sys.path`` and keep the
  configuration environment variables out of every test.

Why:
  Tests must exercise the source tree rather than an installed wheel, and a
  developer's ``VELOIMAP_CONFIG_PATH`` or ``VELOIMAP_SECRET`` must never leak
  into assertions about configuration loading.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "veloimap" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from veloimap.config.loader import CONFIG_ENV, SECRET_ENV


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Run every test from an empty directory without config variables."""

    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.delenv(SECRET_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
