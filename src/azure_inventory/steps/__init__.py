from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, Iterable, List, Optional, Set

from ..util.errors import ConfigError
from .base import Step, StepContext, StepResult, StepStatus


class StepRegistry:
    """
    Registry of ingestion steps keyed by step id, kept in registration order.
    """

    def __init__(self) -> None:
        self._map: Dict[str, Step] = {}

    def register(self, step: Step) -> None:
        if step.id in self._map:
            raise ConfigError(f"Step already registered: {step.id}")
        self._map[step.id] = step

    def is_registered(self, step_id: str) -> bool:
        return step_id in self._map

    def step_ids(self) -> List[str]:
        return list(self._map.keys())

    def steps(self) -> List[Step]:
        return list(self._map.values())

    def get(self, step_id: str) -> Step:
        step = self._map.get(step_id)
        if step is None:
            raise ConfigError(f"Unknown step: {step_id}")
        return step

    def ordered(self, selected: Optional[Iterable[str]] = None) -> List[Step]:
        """
        Steps in dependency order. Dependencies of selected steps are pulled in;
        ties keep registration order so the result is stable between runs.
        """
        roots = list(selected) if selected else self.step_ids()
        order: List[Step] = []
        done: Set[str] = set()
        visiting: List[str] = []

        def visit(step_id: str, required_by: Optional[str]) -> None:
            if step_id in done:
                return
            if step_id in visiting:
                cycle = " -> ".join(visiting[visiting.index(step_id):] + [step_id])
                raise ConfigError(f"Step dependency cycle: {cycle}")
            if step_id not in self._map:
                if required_by:
                    raise ConfigError(f"Step {required_by} depends on unknown step {step_id}")
                raise ConfigError(f"Unknown step: {step_id}")
            visiting.append(step_id)
            for dep in self._map[step_id].depends_on:
                visit(dep, step_id)
            visiting.pop()
            done.add(step_id)
            order.append(self._map[step_id])

        wanted = set(roots)
        for step_id in roots:
            if step_id not in self._map:
                raise ConfigError(f"Unknown step: {step_id}")
        for step_id in self.step_ids():
            if step_id in wanted:
                visit(step_id, None)
        return order


_global_registry = StepRegistry()


def register_step(step: Step) -> None:
    _global_registry.register(step)


def get_step(step_id: str) -> Step:
    return _global_registry.get(step_id)


def list_steps() -> List[Step]:
    return _global_registry.steps()


def ordered_steps(selected: Optional[Iterable[str]] = None, registry: Optional[StepRegistry] = None) -> List[Step]:
    return (registry or _global_registry).ordered(selected)


def run_steps(ctx: StepContext, steps: Iterable[Step], progress: Optional[Any] = None) -> List[StepResult]:
    """
    Execute steps in the given order. A failing step is recorded as ERROR and the
    run moves on; what it published before failing stays in the job state.
    """
    results: List[StepResult] = []
    log = ctx.logger
    for step in steps:
        if progress is not None:
            progress.start_step(step)
        entities_before = ctx.job_state.entity_count
        relationships_before = ctx.job_state.relationship_count
        skipped_before = ctx.records_skipped
        started = perf_counter()
        status = StepStatus.OK
        error: Optional[str] = None

        if step.active_directory and not getattr(ctx.config, "ingest_active_directory", True):
            status = StepStatus.SKIPPED
            log.info(
                "Step skipped: Active Directory ingestion disabled",
                extra={"step": step.id, "phase": "skipped"},
            )
        else:
            log.info(step.name, extra={"step": step.id, "phase": "start"})
            ctx.step_id = step.id
            try:
                step.execute(ctx)
            except Exception as e:
                status = StepStatus.ERROR
                error = str(e)
                log.error(
                    "Step failed",
                    exc_info=log.isEnabledFor(logging.DEBUG),
                    extra={"step": step.id, "phase": "error", "error": error},
                )

        result = StepResult(
            id=step.id,
            status=status,
            error=error,
            duration_ms=int((perf_counter() - started) * 1000),
            entities_added=ctx.job_state.entity_count - entities_before,
            relationships_added=ctx.job_state.relationship_count - relationships_before,
            records_skipped=ctx.records_skipped - skipped_before,
        )
        if status is StepStatus.OK:
            log.info(
                "Step complete",
                extra={
                    "step": step.id,
                    "phase": "complete",
                    "duration_ms": result.duration_ms,
                    "entities_added": result.entities_added,
                    "relationships_added": result.relationships_added,
                    "records_skipped": result.records_skipped,
                },
            )
        results.append(result)
        if progress is not None:
            progress.finish_step(result)
    return results


def _register_builtin_steps() -> None:
    from .active_directory import STEPS as ACTIVE_DIRECTORY_STEPS
    from .compute import STEPS as COMPUTE_STEPS
    from .databases import STEPS as DATABASE_STEPS
    from .network import STEPS as NETWORK_STEPS
    from .resources import STEPS as RESOURCE_STEPS
    from .security import STEPS as SECURITY_STEPS
    from .storage import STEPS as STORAGE_STEPS

    for group in (
        ACTIVE_DIRECTORY_STEPS,
        RESOURCE_STEPS,
        NETWORK_STEPS,
        COMPUTE_STEPS,
        STORAGE_STEPS,
        DATABASE_STEPS,
        SECURITY_STEPS,
    ):
        for step in group:
            register_step(step)


_register_builtin_steps()

__all__ = [
    "Step",
    "StepContext",
    "StepRegistry",
    "StepResult",
    "StepStatus",
    "get_step",
    "list_steps",
    "ordered_steps",
    "register_step",
    "run_steps",
]
