from __future__ import annotations

import os

import pytest

from siteflow.config import get_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep host SITEFLOW_* variables and .env files out of every test."""
    for key in list(os.environ):
        if key.startswith("SITEFLOW_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
