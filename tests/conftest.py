"""Pytest fixtures for tasklane tests."""

import pytest


@pytest.fixture(autouse=True)
def isolated_user_config(tmp_path, monkeypatch):
    """Keep the developer's own tasklane settings and profile out of every test."""
    monkeypatch.setattr(
        "tasklane.config.get_user_config_path", lambda: tmp_path / "user-config" / "config.yml"
    )
    monkeypatch.setattr(
        "tasklane.config.get_machine_config_path", lambda: tmp_path / "site-config" / "config.yml"
    )
    monkeypatch.delenv("TASKLANE_ENV", raising=False)
    yield
