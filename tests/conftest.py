"""Test configuration: stable temp directory on WSL and an isolated HOME."""

from __future__ import annotations

import os
import platform
import tempfile

import pytest


def _is_wsl() -> bool:
    release = platform.release().lower()
    version = platform.version().lower()
    return "microsoft" in release or "microsoft" in version


if _is_wsl() and os.path.isdir("/tmp"):
    os.environ["TMPDIR"] = "/tmp"
    os.environ["TEMP"] = "/tmp"
    os.environ["TMP"] = "/tmp"
    tempfile.tempdir = "/tmp"


@pytest.fixture(autouse=True)
def home(tmp_path, monkeypatch):
    """Point HOME at the test directory and drop any ARKTOOLS_* settings."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("ARKTOOLS_"):
            monkeypatch.delenv(key)
    return tmp_path
