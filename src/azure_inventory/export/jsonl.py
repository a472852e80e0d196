from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List

from ..util.errors import ExportError
from ..util.serialization import sanitize_for_json, stable_json_dumps


def write_jsonl(records: Iterable[Dict[str, Any]], path: Path) -> int:
    """
    Write graph objects to a JSONL file with stable key ordering and deterministic line order.
    Ordering: sort by _key. Returns the number of lines written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        sorted_records: List[Dict[str, Any]] = sorted(records, key=lambda r: str(r.get("_key") or ""))
        with path.open("w", encoding="utf-8") as f:
            for rec in sorted_records:
                f.write(stable_json_dumps(sanitize_for_json(rec)))
                f.write("\n")
    except OSError as e:
        raise ExportError(f"Failed to write {path}: {e}") from e
    return len(sorted_records)
