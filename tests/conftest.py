# Shared fixtures.
# Created: 2026-03-02

import pytest

from roomauth import lifecycle


@pytest.fixture(autouse=True)
def _reset_singletons(monkeypatch, tmp_path):
    monkeypatch.setenv("ROOMAUTH_CONFIG_DIR", str(tmp_path / "config"))
    lifecycle.reset_all()
    yield
    lifecycle.reset_all()
