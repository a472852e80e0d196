from __future__ import annotations

import json
import sys
import types

import pytest

import azure_inventory.cli as cli
from azure_inventory.auth.providers import AuthContext
from azure_inventory.config import load_run_config
from azure_inventory.graph import schema
from azure_inventory.util.errors import ConfigError, ExitCode

RG_ID = "/subscriptions/sub-1/resourceGroups/rg-1"


class _FakeClients:
    def __init__(self, groups) -> None:
        self._groups = groups
        self.closed = False
        self.subscription_id = "sub-1"

    def resource(self):
        return types.SimpleNamespace(resource_groups=types.SimpleNamespace(list=self._groups))

    def close(self) -> None:
        self.closed = True


class _FakeGraph:
    def __init__(self, _credential) -> None:
        self.closed = False

    def fetch_organization(self):
        return {"id": "dir-1", "displayName": "Contoso", "verifiedDomains": [{"name": "contoso.com", "isDefault": True}]}

    def close(self) -> None:
        self.closed = True


def _run_config(tmp_path, monkeypatch, *extra):
    monkeypatch.delenv("AZURE_CLIENT_SECRET", raising=False)
    monkeypatch.delenv("AZURE_INV_CLIENT_SECRET", raising=False)
    _, cfg = load_run_config(
        argv=[
            "run",
            "--outdir",
            str(tmp_path / "out"),
            "--directory",
            "dir-1",
            "--subscription",
            "sub-1",
            "--steps",
            schema.STEP_RM_RESOURCES_RESOURCE_GROUPS,
            "--no-progress",
            *extra,
        ]
    )
    return cfg


def _patch_run(monkeypatch, groups):
    created = {}

    def fake_clients(_ctx):
        created["clients"] = _FakeClients(groups)
        return created["clients"]

    monkeypatch.setattr(
        cli, "_resolve_auth", lambda cfg: AuthContext("default", object(), cfg.directory_id, cfg.subscription_id)
    )
    monkeypatch.setattr(cli, "AzureClients", fake_clients)
    monkeypatch.setattr(cli, "GraphClient", _FakeGraph)
    return created


def test_cmd_run_writes_graph_and_summary_offline(tmp_path, monkeypatch) -> None:
    cfg = _run_config(tmp_path, monkeypatch)
    created = _patch_run(monkeypatch, lambda: iter([{"id": RG_ID, "name": "rg-1", "location": "eastus"}]))

    assert cli.cmd_run(cfg) == 0

    entities = [json.loads(line) for line in (cfg.outdir / "graph" / "entities.jsonl").read_text().splitlines()]
    assert [e["_key"] for e in entities] == [RG_ID, "azure_account_dir-1"]
    assert entities[0]["webLink"] == f"https://portal.azure.com/#@contoso.com/resource{RG_ID}"
    assert (cfg.outdir / "graph" / "relationships.jsonl").read_text() == ""
    assert (cfg.outdir / "logs" / "debug.log").exists()

    summary = json.loads((cfg.outdir / "run_summary.json").read_text())
    assert summary["status"] == "OK"
    assert summary["total_entities"] == 2
    assert summary["counts_by_entity_type"] == {"azure_account": 1, "azure_resource_group": 1}
    assert [s["id"] for s in summary["steps"]] == [schema.STEP_AD_ACCOUNT, schema.STEP_RM_RESOURCES_RESOURCE_GROUPS]
    assert summary["config"]["subscription_id"] == "sub-1"
    assert summary["unrecognized_resource_ids"] == 0
    assert created["clients"].closed


def test_cmd_run_failed_step_is_partial(tmp_path, monkeypatch) -> None:
    cfg = _run_config(tmp_path, monkeypatch)

    def failing_groups():
        raise RuntimeError("listing failed")

    _patch_run(monkeypatch, failing_groups)

    assert cli.cmd_run(cfg) == int(ExitCode.RUNTIME_ERROR)

    summary = json.loads((cfg.outdir / "run_summary.json").read_text())
    assert summary["status"] == "PARTIAL"
    failed = [s for s in summary["steps"] if s["status"] == "ERROR"]
    assert failed[0]["id"] == schema.STEP_RM_RESOURCES_RESOURCE_GROUPS
    assert failed[0]["error"] == "listing failed"
    assert (cfg.outdir / "graph" / "entities.jsonl").exists()


def test_resource_manager_steps_require_subscription(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("AZURE_SUBSCRIPTION_ID", raising=False)
    monkeypatch.delenv("AZURE_INV_SUBSCRIPTION_ID", raising=False)
    _, cfg = load_run_config(argv=["run", "--outdir", str(tmp_path), "--steps", schema.STEP_RM_STORAGE_ACCOUNTS])
    with pytest.raises(ConfigError, match="subscription"):
        cli._selected_steps(cfg)

    _, ad_only = load_run_config(argv=["run", "--outdir", str(tmp_path), "--steps", schema.STEP_AD_USERS])
    assert [s.id for s in cli._selected_steps(ad_only)] == [schema.STEP_AD_ACCOUNT, schema.STEP_AD_USERS]


def test_list_steps_prints_ids_in_order(capsys) -> None:
    _, cfg = load_run_config(argv=["list-steps"])
    assert cli.cmd_list_steps(cfg) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == f"{schema.STEP_AD_ACCOUNT}\tActive Directory Info\t-"
    assert len(lines) == 18
    assert any(line.startswith(f"{schema.STEP_RM_STORAGE_CONTAINERS}\t") for line in lines)


def test_validate_auth_prints_scopes(monkeypatch, capsys) -> None:
    requested = []
    credential = types.SimpleNamespace(get_token=lambda scope: requested.append(scope))
    monkeypatch.setattr(cli, "_resolve_auth", lambda cfg: AuthContext("default", credential, None, None))

    _, cfg = load_run_config(argv=["validate-auth"])
    assert cli.cmd_validate_auth(cfg) == 0
    assert requested == ["https://management.azure.com/.default", "https://graph.microsoft.com/.default"]
    assert capsys.readouterr().out.startswith("OK: authentication validated (default)")


def test_main_maps_unknown_step_to_config_exit_code(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(sys, "argv", ["azure-inv", "run", "--outdir", str(tmp_path), "--steps", "no-such-step"])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == int(ExitCode.CONFIG_ERROR)
