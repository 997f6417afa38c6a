import os

import pytest

from mintbot.config import Settings

_SETTINGS_VARS = tuple(Settings.model_fields)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test without the caller's mintbot env vars or .env file."""
    for name in list(os.environ):
        if name.upper() in _SETTINGS_VARS:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path
