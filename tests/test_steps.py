from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from azure_inventory.graph import schema
from azure_inventory.graph.job_state import InMemoryJobState
from azure_inventory.steps import (
    Step,
    StepContext,
    StepRegistry,
    StepStatus,
    list_steps,
    ordered_steps,
    run_steps,
)
from azure_inventory.util.errors import ConfigError, InvalidRecordError


def _noop(ctx: StepContext) -> None:
    return None


def _step(step_id: str, depends_on=None, execute=_noop, **kwargs) -> Step:
    return Step(
        id=step_id,
        name=step_id.title(),
        entities=[],
        relationships=[],
        depends_on=list(depends_on or []),
        execute=execute,
        **kwargs,
    )


def _ctx(**config) -> StepContext:
    cfg = SimpleNamespace(ingest_active_directory=config.get("ingest_active_directory", True))
    return StepContext(config=cfg, job_state=InMemoryJobState(), logger=logging.getLogger("test.steps"))


def test_builtin_registry_holds_every_step_once() -> None:
    ids = [s.id for s in list_steps()]
    assert len(ids) == len(set(ids)) == 18
    assert schema.STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS in ids


def test_builtin_order_respects_dependencies() -> None:
    order = [s.id for s in ordered_steps()]
    position = {step_id: i for i, step_id in enumerate(order)}
    for step in list_steps():
        for dep in step.depends_on:
            assert position[dep] < position[step.id]
    assert order[0] == schema.STEP_AD_ACCOUNT


def test_selected_steps_pull_in_transitive_dependencies() -> None:
    order = [s.id for s in ordered_steps([schema.STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS])]
    assert order[0] == schema.STEP_AD_ACCOUNT
    assert order[-1] == schema.STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS
    assert schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS in order
    assert schema.STEP_RM_STORAGE_ACCOUNTS not in order


def test_order_is_stable_registration_order_for_ties() -> None:
    registry = StepRegistry()
    for step in (_step("c"), _step("a"), _step("b", ["a"])):
        registry.register(step)
    assert [s.id for s in registry.ordered()] == ["c", "a", "b"]


def test_unknown_dependency_raises_config_error() -> None:
    registry = StepRegistry()
    registry.register(_step("a", ["missing"]))
    with pytest.raises(ConfigError, match="unknown step missing"):
        registry.ordered()


def test_unknown_selected_step_raises_config_error() -> None:
    with pytest.raises(ConfigError, match="Unknown step"):
        ordered_steps(["no-such-step"])


def test_cycle_raises_config_error() -> None:
    registry = StepRegistry()
    registry.register(_step("a", ["b"]))
    registry.register(_step("b", ["a"]))
    with pytest.raises(ConfigError, match="cycle"):
        registry.ordered()


def test_duplicate_registration_raises() -> None:
    registry = StepRegistry()
    registry.register(_step("a"))
    with pytest.raises(ConfigError):
        registry.register(_step("a"))


def test_run_steps_counts_and_isolates_failures() -> None:
    def publish(ctx: StepContext) -> None:
        ctx.add_entity({"_key": "e1", "_type": "t", "_class": "C"})
        ctx.add_relationship({"_key": "r1", "_type": "rel", "_class": "HAS"})
        ctx.convert("publish", _raise_invalid)

    def boom(ctx: StepContext) -> None:
        ctx.add_entity({"_key": "e2", "_type": "t", "_class": "C"})
        raise RuntimeError("boom")

    ctx = _ctx()
    results = run_steps(ctx, [_step("publish", execute=publish), _step("boom", execute=boom), _step("after")])

    assert [r.status for r in results] == [StepStatus.OK, StepStatus.ERROR, StepStatus.OK]
    assert results[0].entities_added == 1
    assert results[0].relationships_added == 1
    assert results[0].records_skipped == 1
    assert results[1].error == "boom"
    assert results[1].entities_added == 1
    assert ctx.job_state.find_entity("e2") is not None


def _raise_invalid() -> None:
    raise InvalidRecordError("record 'x' has no id")


def test_active_directory_steps_skip_when_disabled() -> None:
    calls = []
    step = _step("ad-x", execute=lambda ctx: calls.append(1), active_directory=True)

    (result,) = run_steps(_ctx(ingest_active_directory=False), [step])

    assert result.status is StepStatus.SKIPPED
    assert calls == []


def test_run_steps_reports_progress() -> None:
    events = []
    progress = SimpleNamespace(
        start_step=lambda step: events.append(("start", step.id)),
        finish_step=lambda result: events.append(("finish", result.id)),
    )
    run_steps(_ctx(), [_step("a")], progress=progress)
    assert events == [("start", "a"), ("finish", "a")]


def test_add_relationship_once_ignores_repeats() -> None:
    ctx = _ctx()
    rel = {"_key": "r", "_type": "rel", "_class": "HAS"}
    ctx.add_relationship_once(rel)
    ctx.add_relationship_once(dict(rel))
    ctx.add_relationship_once(None)
    assert ctx.job_state.relationship_count == 1


def test_duplicate_entity_is_skipped_and_counted(caplog) -> None:
    def publish(ctx: StepContext) -> None:
        assert ctx.add_entity({"_key": "dup", "_type": "t", "_class": "C"}) is not None
        assert ctx.add_entity({"_key": "dup", "_type": "t", "_class": "C"}) is None
        ctx.add_relationship({"_key": "r", "_type": "rel", "_class": "HAS"})
        ctx.add_relationship({"_key": "r", "_type": "rel", "_class": "HAS"})
        ctx.add_entity({"_key": "next", "_type": "t", "_class": "C"})

    ctx = _ctx()
    with caplog.at_level(logging.WARNING, logger="test.steps"):
        (result,) = run_steps(ctx, [_step("publish", execute=publish)])

    assert result.status is StepStatus.OK
    assert result.entities_added == 2
    assert result.relationships_added == 1
    assert result.records_skipped == 2
    skipped = [r for r in caplog.records if r.getMessage() == "Skipping duplicate record"]
    assert len(skipped) == 2
    assert all(r.step == "publish" for r in skipped)


def test_unrecognized_relationship_endpoints_are_counted_once() -> None:
    rg = "/subscriptions/sub-1/resourceGroups/rg-1"
    unknown = "/subscriptions/sub-1/providers/Microsoft.Unknown/things/x"
    ctx = _ctx()

    ctx.add_relationship(
        {"_key": "r1", "_type": "rel", "_class": "USES", "_fromEntityKey": rg, "_toEntityKey": unknown}
    )
    ctx.add_relationship_once(
        {"_key": "r2", "_type": "rel", "_class": "USES", "_fromEntityKey": "entity-key", "_toEntityKey": unknown}
    )
    ctx.add_relationship({"_key": "r3", "_type": "rel", "_class": "HAS", "_fromEntityKey": rg, "_toEntityKey": "x"})

    assert ctx.unrecognized_resource_ids == {unknown}
    assert ctx.job_state.get_data("UNRECOGNIZED_RESOURCE_IDS") is None
