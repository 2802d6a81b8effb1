from __future__ import annotations

import importlib
import json

import pytest

from gridscout.adapters.sqlite_blob_store import SQLiteBlobStore
from gridscout.core.tenants import TenantConfigStore


@pytest.fixture
def app(tmp_path, monkeypatch):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"database": {"path": str(tmp_path / "grid.db")}, "logging": {"enabled": False}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("GRIDSCOUT_CONFIG", str(config_path))
    importlib.reload(importlib.import_module("gridscout.settings"))
    return importlib.import_module("gridscout.app")


def _tenant_configs(app) -> TenantConfigStore:
    store = SQLiteBlobStore(app.settings.DB_PATH)
    store.init_db()
    return TenantConfigStore(store)


def test_clear_spy_removes_one_tenant(app, capsys) -> None:
    _tenant_configs(app).flag_spy("pilot-7", ["guild-1", "guild-2"], "leaked fleet comms")

    assert app.main(["clear-spy", "pilot-7", "--tenant", "guild-1"]) == 0

    assert "Cleared pilot-7 for guild-1; still flagged for: guild-2" in capsys.readouterr().out
    tenant_configs = _tenant_configs(app)
    assert not tenant_configs.is_flagged("pilot-7", "guild-1")
    assert tenant_configs.is_flagged("pilot-7", "guild-2")


def test_clear_spy_reports_other_tenants(app, capsys) -> None:
    _tenant_configs(app).flag_spy("pilot-7", ["guild-2"], "leaked fleet comms")

    assert app.main(["clear-spy", "pilot-7", "--tenant", "guild-1"]) == 1
    assert "not flagged for guild-1; flagged for: guild-2" in capsys.readouterr().out


def test_clear_spy_unknown_identity(app, capsys) -> None:
    assert app.main(["clear-spy", "nobody", "--tenant", "guild-1"]) == 1
    assert "nobody is not flagged" in capsys.readouterr().out


def test_spies_identity_lookup(app, capsys) -> None:
    _tenant_configs(app).flag_spy("pilot-7", ["guild-1"], "leaked fleet comms")

    assert app.main(["spies", "--tenant", "guild-1", "--identity", "pilot-7"]) == 0
    assert "pilot-7 is flagged for guild-1" in capsys.readouterr().out
    assert app.main(["spies", "--tenant", "guild-2", "--identity", "pilot-7"]) == 1


def test_show_config(app, capsys) -> None:
    tenant_configs = _tenant_configs(app)
    tenant_configs.set_event_channel("guild-1", "-100123")
    tenant_configs.enable_event("guild-1", "new_enemy_sighted")
    tenant_configs.flag_spy("pilot-7", ["guild-1"], "leaked fleet comms")

    assert app.main(["show-config", "--tenant", "guild-1"]) == 0

    out = capsys.readouterr().out
    assert "Tenant guild-1: channel=-100123 owner=- events=new_enemy_sighted" in out
    assert "Suspected spies: 1" in out


def test_show_config_for_unknown_tenant(app, capsys) -> None:
    assert app.main(["show-config", "--tenant", "guild-9"]) == 0
    assert "Tenant guild-9: channel=- owner=- events=none" in capsys.readouterr().out
