from __future__ import annotations

import logging
import sys
from collections import Counter
from dataclasses import asdict
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List, Optional, Sequence

from .auth.providers import ARM_SCOPE, GRAPH_SCOPE, AuthContext, AuthError, resolve_auth, validate_credential
from .azure.clients import AzureClients
from .azure.graph_client import GraphClient
from .config import RunConfig, dump_config, load_run_config
from .export.jsonl import write_jsonl
from .graph.job_state import InMemoryJobState
from .logging import LogConfig, add_run_log_file, get_logger, remove_run_log_file, setup_logging
from .steps import Step, StepContext, StepResult, StepStatus, ordered_steps, run_steps
from .util.errors import AuthResolutionError, ConfigError, ExitCode, ExportError, as_exit_code
from .util.rich_progress import RunProgress, render_run_summary_table
from .util.serialization import stable_json_dumps
from .util.time import utc_now_iso

LOG = get_logger(__name__)

OUT_SCHEMA_VERSION = "1"
RESOURCE_MANAGER_STEP_PREFIX = "rm-"


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    timer_key: Optional[str] = None,
    **extra: Any,
) -> None:
    key = timer_key or step
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(key)
        elif phase in {"complete", "error", "warning", "validated", "skipped"}:
            duration_ms = timers.finish(key)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def _resolve_auth(cfg: RunConfig) -> AuthContext:
    try:
        return resolve_auth(cfg.auth, cfg.directory_id, cfg.client_id, cfg.client_secret, cfg.subscription_id)
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e


def _selected_steps(cfg: RunConfig) -> List[Step]:
    steps = ordered_steps(cfg.steps)
    needs_subscription = any(s.id.startswith(RESOURCE_MANAGER_STEP_PREFIX) for s in steps)
    if needs_subscription and not cfg.subscription_id:
        raise ConfigError(
            "A subscription id is required for Resource Manager steps "
            "(--subscription, AZURE_INV_SUBSCRIPTION_ID or AZURE_SUBSCRIPTION_ID)"
        )
    return steps


def _run_status(results: Sequence[StepResult]) -> str:
    if any(r.status is StepStatus.ERROR for r in results):
        return "PARTIAL"
    return "OK"


def _step_result_dict(result: StepResult) -> Dict[str, Any]:
    data = asdict(result)
    data["status"] = result.status.value
    return data


def _write_run_summary(
    outdir: Path,
    cfg: RunConfig,
    job_state: InMemoryJobState,
    results: Sequence[StepResult],
    status: str,
    started_at: str,
    unrecognized_resource_ids: int = 0,
) -> Path:
    entity_types = Counter(str(e.get("_type")) for e in job_state.iterate_entities())
    relationship_types = Counter(str(r.get("_type")) for r in job_state.iterate_relationships())
    summary = {
        "schema_version": OUT_SCHEMA_VERSION,
        "status": status,
        "started_at": started_at,
        "finished_at": utc_now_iso(),
        "collected_at": cfg.collected_at,
        "total_entities": job_state.entity_count,
        "total_relationships": job_state.relationship_count,
        "records_skipped": sum(r.records_skipped for r in results),
        "unrecognized_resource_ids": unrecognized_resource_ids,
        "counts_by_entity_type": dict(sorted(entity_types.items())),
        "counts_by_relationship_type": dict(sorted(relationship_types.items())),
        "steps": [_step_result_dict(r) for r in results],
        "config": dump_config(cfg),
    }
    path = outdir / "run_summary.json"
    try:
        path.write_text(stable_json_dumps(summary), encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to write {path}: {e}") from e
    return path


def cmd_run(cfg: RunConfig) -> int:
    # Ensure the run directory exists early so the debug log always lands there.
    cfg.outdir.mkdir(parents=True, exist_ok=True)
    log_path = cfg.outdir / "logs" / "debug.log"
    add_run_log_file(log_path)
    started_at = utc_now_iso()
    timers = _StepTimers()
    clients: Optional[AzureClients] = None
    graph: Optional[GraphClient] = None

    _log_event(
        LOG,
        logging.INFO,
        "Starting inventory run",
        step="run",
        phase="start",
        timers=timers,
        outdir=str(cfg.outdir),
    )
    try:
        steps = _selected_steps(cfg)

        _log_event(LOG, logging.INFO, "Authentication resolution started", step="auth", phase="start", timers=timers)
        ctx = _resolve_auth(cfg)
        _log_event(
            LOG,
            logging.INFO,
            "Authentication resolved",
            step="auth",
            phase="complete",
            timers=timers,
            method=ctx.method,
        )

        clients = AzureClients(ctx)
        if cfg.ingest_active_directory:
            graph = GraphClient(ctx.credential)
        job_state = InMemoryJobState()
        step_ctx = StepContext(config=cfg, job_state=job_state, clients=clients, graph=graph, logger=LOG)

        with RunProgress(enabled=cfg.progress, total_steps=len(steps)) as progress:
            results = run_steps(step_ctx, steps, progress=progress if progress.enabled else None)

        _log_event(LOG, logging.INFO, "Export started", step="export", phase="start", timers=timers)
        graph_dir = cfg.outdir / "graph"
        entity_lines = write_jsonl(job_state.entities, graph_dir / "entities.jsonl")
        relationship_lines = write_jsonl(job_state.relationships, graph_dir / "relationships.jsonl")
        status = _run_status(results)
        _write_run_summary(
            cfg.outdir, cfg, job_state, results, status, started_at, len(step_ctx.unrecognized_resource_ids)
        )
        _log_event(
            LOG,
            logging.INFO,
            "Export complete",
            step="export",
            phase="complete",
            timers=timers,
            entities=entity_lines,
            relationships=relationship_lines,
        )

        render_run_summary_table(enabled=cfg.progress, status=status, results=results, outdir=str(cfg.outdir))
        _log_event(
            LOG,
            logging.INFO if status == "OK" else logging.WARNING,
            "Inventory run finished",
            step="run",
            phase="complete",
            timers=timers,
            status=status,
        )
        return int(ExitCode.OK) if status == "OK" else int(ExitCode.RUNTIME_ERROR)
    finally:
        if graph is not None:
            graph.close()
        if clients is not None:
            clients.close()
        remove_run_log_file(log_path)


def cmd_list_steps(cfg: RunConfig) -> int:
    for step in ordered_steps():
        depends = ",".join(step.depends_on) or "-"
        print(f"{step.id}\t{step.name}\t{depends}")
    return 0


def cmd_validate_auth(cfg: RunConfig) -> int:
    ctx = _resolve_auth(cfg)
    scopes = [ARM_SCOPE]
    if cfg.ingest_active_directory:
        scopes.append(GRAPH_SCOPE)
    try:
        for scope in scopes:
            validate_credential(ctx, scope)
    except AuthError as e:
        raise AuthResolutionError(str(e)) from e
    LOG.info("Authentication validated", extra={"method": ctx.method, "scopes": scopes})
    # Print to stdout a concise success message (no secrets)
    print(f"OK: authentication validated ({ctx.method}) for", ", ".join(scopes))
    return 0


def main() -> None:
    try:
        command, cfg = load_run_config()
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "run":
            code = cmd_run(cfg)
        elif command == "list-steps":
            code = cmd_list_steps(cfg)
        elif command == "validate-auth":
            code = cmd_validate_auth(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())  # no-op when already configured
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
