from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .util.serialization import REDACTED_VALUE

# --------
# Defaults
# --------
DEFAULT_INSTANCE_ID = "default"
AUTH_METHODS = {"auto", "default", "client_secret"}
ALLOWED_CONFIG_KEYS = {
    "outdir",
    "directory_id",
    "subscription_id",
    "client_id",
    "client_secret",
    "auth",
    "instance_id",
    "instance_name",
    "steps",
    "ingest_active_directory",
    "progress",
    "json_logs",
    "log_level",
}
BOOL_CONFIG_KEYS = {"ingest_active_directory", "progress", "json_logs"}
PATH_CONFIG_KEYS = {"outdir"}
STR_CONFIG_KEYS = {
    "directory_id",
    "subscription_id",
    "client_id",
    "client_secret",
    "auth",
    "instance_id",
    "instance_name",
    "log_level",
}


@dataclass(frozen=True)
class RunConfig:
    # General
    outdir: Path
    json_logs: bool = False
    log_level: str = "INFO"
    progress: bool = True

    # Scope
    steps: Optional[List[str]] = None
    ingest_active_directory: bool = True
    instance_id: str = DEFAULT_INSTANCE_ID
    instance_name: Optional[str] = None

    # Auth
    auth: str = "auto"  # auto|default|client_secret
    directory_id: Optional[str] = None
    subscription_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)

    # Internal/derived
    collected_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        elif path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # Try YAML first then JSON
            try:
                data = yaml.safe_load(text) or {}
            except yaml.YAMLError:
                data = json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(*names: str) -> Optional[str]:
    """First non-empty value among the given environment variables."""
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        raw = raw.strip()
        if raw:
            return raw
    return None


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _split_steps(value: Any) -> List[str]:
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, list) and all(isinstance(s, str) for s in value):
        return [s.strip() for s in value if s.strip()]
    raise ValueError("Config field 'steps' must be a list of strings or comma-separated string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key == "steps":
            normalized[key] = _split_steps(value)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
        else:
            normalized[key] = value
    auth = normalized.get("auth")
    if auth is not None:
        auth = str(auth).lower()
        if auth not in AUTH_METHODS:
            raise ValueError(f"Config field 'auth' must be one of: {', '.join(sorted(AUTH_METHODS))}")
        normalized["auth"] = auth
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def _timestamp_dir(base: Optional[Union[str, Path]]) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    if base:
        return Path(base) / ts
    return Path("out") / ts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="azure-inv", description="Azure Inventory CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # common flags builder
    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        # Auth
        p.add_argument(
            "--auth",
            default=None,
            choices=sorted(AUTH_METHODS),
            help="Auth method (default: auto)",
        )
        p.add_argument("--directory", dest="directory_id", default=None, help="Directory (tenant) id")
        p.add_argument("--subscription", dest="subscription_id", default=None, help="Subscription id")
        p.add_argument("--client-id", default=None, help="Service principal application id")

    # run
    p_run = subparsers.add_parser("run", help="Run inventory collection")
    add_common(p_run)
    p_run.add_argument("--outdir", type=Path, default=None, help="Output base directory (out/TS)")
    p_run.add_argument(
        "--steps",
        default=None,
        help="Comma-separated step ids to run (dependencies are added automatically)",
    )
    p_run.add_argument(
        "--ingest-active-directory",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Ingest directory users, groups and group members (default on)",
    )
    p_run.add_argument("--instance-id", default=None, help="Integration instance id (account _key suffix)")
    p_run.add_argument("--instance-name", default=None, help="Integration instance display name")
    p_run.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show progress and the summary table (default on)",
    )

    # list-steps
    p_ls = subparsers.add_parser("list-steps", help="List ingestion steps in execution order")
    add_common(p_ls)

    # validate-auth
    p_val = subparsers.add_parser("validate-auth", help="Validate authentication setup")
    add_common(p_val)

    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
    subcommand: Optional[str] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.
    The client secret is never a CLI flag; it comes from the config file or env.

    Returns:
      (command, RunConfig) where command is the subcommand selected: run|list-steps|validate-auth
    """
    parser = build_parser()
    ns = args if args is not None else parser.parse_args(argv)
    command = ns.command if subcommand is None else subcommand

    # defaults
    base: Dict[str, Any] = {
        "outdir": None,
        "json_logs": False,
        "log_level": "INFO",
        "progress": True,
        "steps": None,
        "ingest_active_directory": True,
        "instance_id": None,
        "instance_name": None,
        "auth": "auto",
        "directory_id": None,
        "subscription_id": None,
        "client_id": None,
        "client_secret": None,
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "outdir": _env_str("AZURE_INV_OUTDIR"),
            "json_logs": _env_bool("AZURE_INV_JSON_LOGS"),
            "log_level": _env_str("AZURE_INV_LOG_LEVEL"),
            "progress": _env_bool("AZURE_INV_PROGRESS"),
            "steps": _env_str("AZURE_INV_STEPS"),
            "ingest_active_directory": _env_bool("AZURE_INV_INGEST_ACTIVE_DIRECTORY"),
            "instance_id": _env_str("AZURE_INV_INSTANCE_ID"),
            "instance_name": _env_str("AZURE_INV_INSTANCE_NAME"),
            "auth": _env_str("AZURE_INV_AUTH"),
            "directory_id": _env_str("AZURE_INV_DIRECTORY_ID", "AZURE_TENANT_ID"),
            "subscription_id": _env_str("AZURE_INV_SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_ID"),
            "client_id": _env_str("AZURE_INV_CLIENT_ID", "AZURE_CLIENT_ID"),
            "client_secret": _env_str("AZURE_INV_CLIENT_SECRET", "AZURE_CLIENT_SECRET"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "outdir": getattr(ns, "outdir", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
            "progress": getattr(ns, "progress", None),
            "steps": getattr(ns, "steps", None),
            "ingest_active_directory": getattr(ns, "ingest_active_directory", None),
            "instance_id": getattr(ns, "instance_id", None),
            "instance_name": getattr(ns, "instance_name", None),
            "auth": getattr(ns, "auth", None),
            "directory_id": getattr(ns, "directory_id", None),
            "subscription_id": getattr(ns, "subscription_id", None),
            "client_id": getattr(ns, "client_id", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    # Normalize/construct types
    outdir_raw = merged.get("outdir")
    outdir = _timestamp_dir(outdir_raw) if command == "run" else Path(outdir_raw) if outdir_raw else Path.cwd()
    steps_raw = merged.get("steps")
    steps = _split_steps(steps_raw) if steps_raw is not None else None
    auth = str(merged["auth"] or "auto").lower()
    if auth not in AUTH_METHODS:
        raise ValueError(f"Auth method must be one of: {', '.join(sorted(AUTH_METHODS))}")
    directory_id = merged.get("directory_id")
    instance_id = merged.get("instance_id") or directory_id or DEFAULT_INSTANCE_ID

    cfg = RunConfig(
        outdir=outdir,
        json_logs=bool(merged["json_logs"]),
        log_level=(merged.get("log_level") or "INFO").upper(),
        progress=bool(merged["progress"]),
        steps=steps or None,
        ingest_active_directory=bool(merged["ingest_active_directory"]),
        instance_id=str(instance_id),
        instance_name=merged.get("instance_name"),
        auth=auth,
        directory_id=directory_id,
        subscription_id=merged.get("subscription_id"),
        client_id=merged.get("client_id"),
        client_secret=merged.get("client_secret"),
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "outdir": str(cfg.outdir),
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "progress": cfg.progress,
        "steps": cfg.steps,
        "ingest_active_directory": cfg.ingest_active_directory,
        "instance_id": cfg.instance_id,
        "instance_name": cfg.instance_name,
        "auth": cfg.auth,
        "directory_id": cfg.directory_id,
        "subscription_id": cfg.subscription_id,
        "client_id": cfg.client_id,
        "client_secret": REDACTED_VALUE if cfg.client_secret else None,
        "collected_at": cfg.collected_at,
    }
