from __future__ import annotations

import json

import pytest

from azure_inventory.export.jsonl import write_jsonl
from azure_inventory.util.errors import ExportError
from azure_inventory.util.serialization import REDACTED_VALUE


def test_write_jsonl_sorts_by_key_and_redacts(tmp_path) -> None:
    path = tmp_path / "graph" / "entities.jsonl"
    records = [
        {"_key": "b", "_type": "azure_storage_account", "primaryAccessKey": "k"},
        {"_key": "a", "_type": "azure_vm", "name": "vm-1"},
    ]

    count = write_jsonl(records, path)

    lines = path.read_text(encoding="utf-8").splitlines()
    assert count == 2
    assert [json.loads(line)["_key"] for line in lines] == ["a", "b"]
    assert json.loads(lines[1])["primaryAccessKey"] == REDACTED_VALUE
    assert lines[0] == '{"_key":"a","_type":"azure_vm","name":"vm-1"}'


def test_write_jsonl_empty_creates_file(tmp_path) -> None:
    path = tmp_path / "relationships.jsonl"
    assert write_jsonl([], path) == 0
    assert path.read_text(encoding="utf-8") == ""


def test_write_jsonl_maps_os_errors(tmp_path) -> None:
    blocker = tmp_path / "graph"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(ExportError):
        write_jsonl([{"_key": "a"}], blocker / "entities.jsonl")
