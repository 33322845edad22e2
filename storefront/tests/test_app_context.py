from __future__ import annotations

import pytest

from storefront import app_context


@pytest.fixture
def restore_hooks(monkeypatch):
    monkeypatch.setattr(app_context, "_hooks", {})


def test_unconfigured_hook_raises(restore_hooks):
    with pytest.raises(RuntimeError, match="get_conn"):
        app_context.get_conn()


def test_configured_hooks_are_forwarded(restore_hooks):
    app_context.configure(
        get_conn=lambda: "conn",
        get_current_user=lambda session_token=None: {"token": session_token},
    )

    assert app_context.get_conn() == "conn"
    assert app_context.get_current_user(session_token="abc") == {"token": "abc"}
