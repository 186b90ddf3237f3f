from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from nova.db import Database
from nova.models import ConnectedIntegration, ToolStep
from nova.rate_limit import RateLimiter
from nova.routines import (
    PREVIOUS_RESULT,
    RoutineEngine,
    RoutineScheduler,
    substitute_previous_result,
)
from nova.tools.base import Tool, ToolContext
from nova.tools.registry import ToolRegistry

TODAY_8AM = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


class ConstantTool(Tool):
    name = "constant"
    description = "Returns a fixed value"
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        return {"value": "42"}


class EchoTool(Tool):
    name = "echo"
    description = "Echoes its text"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }

    def __init__(self) -> None:
        self.seen: list[str] = []

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        self.seen.append(kwargs["text"])
        return {"echo": kwargs["text"]}


class FailingTool(Tool):
    name = "explode"
    description = "Always fails"
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        raise RuntimeError("boom")


class SlowTool(Tool):
    name = "slow"
    description = "Sleeps briefly"
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.05)
        self.active -= 1
        return {"slept": True}


class FakeCredentials:
    def __init__(self, integrations: list[ConnectedIntegration] | None = None) -> None:
        self._integrations = integrations or []
        self.users: list[str] = []

    async def get_connected_integrations(self, user_id: str) -> list[ConnectedIntegration]:
        self.users.append(user_id)
        return list(self._integrations)


def _setup(tmp_path, *tools: Tool, max_workers: int = 4, now: datetime = TODAY_8AM):
    db = Database(tmp_path / "nova.db")
    db.initialize()
    registry = ToolRegistry(db)
    for tool in tools:
        registry.register(tool)
    engine = RoutineEngine(
        db=db,
        registry=registry,
        credentials=FakeCredentials(),
        llm=None,
        max_workers=max_workers,
        clock=lambda: now,
    )
    return db, engine


def test_substitute_previous_result_replaces_nested_placeholders():
    args = {
        "text": f"echo: {PREVIOUS_RESULT}",
        "items": [PREVIOUS_RESULT, {"deep": f"{PREVIOUS_RESULT}/{PREVIOUS_RESULT}"}],
        "count": 3,
    }

    assert substitute_previous_result(args, "42") == {
        "text": "echo: 42",
        "items": ["42", {"deep": "42/42"}],
        "count": 3,
    }


@pytest.mark.asyncio
async def test_daily_routine_due_at_eight_and_rescheduled_for_tomorrow(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool())
    routine = db.create_routine("u1", "Morning", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)
    db.update_routine_schedule(routine.id, last_run=TODAY_8AM - timedelta(days=1), next_run=TODAY_8AM)

    executions = await engine.run_due()

    assert len(executions) == 1
    assert executions[0].status == "completed"
    stored = db.get_routine(routine.id)
    assert stored.last_run == TODAY_8AM
    assert stored.next_run == TODAY_8AM + timedelta(days=1)
    assert await engine.run_due() == []


@pytest.mark.asyncio
async def test_not_yet_due_routine_is_skipped(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool())
    db.create_routine("u1", "Later", "0 9 * * *", [ToolStep("constant")], next_run=TODAY_8AM + timedelta(hours=1))

    assert await engine.run_due() == []


@pytest.mark.asyncio
async def test_disabled_routine_is_skipped(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool())
    routine = db.create_routine("u1", "Off", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)
    db.set_routine_enabled(routine.id, False)

    assert await engine.run_due() == []


@pytest.mark.asyncio
async def test_previous_result_flows_into_next_step(tmp_path):
    echo = EchoTool()
    db, engine = _setup(tmp_path, echo)
    routine = db.create_routine(
        "u1",
        "Chain",
        "*/5 * * * *",
        [ToolStep("echo", {"text": "42"}), ToolStep("echo", {"text": f"echo: {PREVIOUS_RESULT}"})],
        next_run=TODAY_8AM,
    )

    execution = await engine.execute(routine)

    first_result = json.dumps({"echo": "42"})
    assert echo.seen == ["42", f"echo: {first_result}"]
    assert execution.status == "completed"
    assert [r.tool for r in execution.results] == ["echo", "echo"]
    assert execution.results[0].result == first_result


@pytest.mark.asyncio
async def test_failing_middle_step_keeps_partial_progress(tmp_path):
    echo = EchoTool()
    db, engine = _setup(tmp_path, ConstantTool(), FailingTool(), echo)
    routine = db.create_routine(
        "u1",
        "Broken",
        "0 8 * * *",
        [ToolStep("constant"), ToolStep("explode"), ToolStep("echo", {"text": "never"})],
        next_run=TODAY_8AM,
    )

    execution = await engine.execute(routine, TODAY_8AM)

    assert execution.status == "failed"
    assert [r.tool for r in execution.results] == ["constant"]
    assert "boom" in execution.error
    assert echo.seen == []
    assert execution.finished_at is not None
    assert db.get_routine(routine.id).next_run == TODAY_8AM + timedelta(days=1)


@pytest.mark.asyncio
async def test_unknown_tool_fails_routine(tmp_path):
    db, engine = _setup(tmp_path)
    routine = db.create_routine("u1", "Ghost", "0 8 * * *", [ToolStep("missing")], next_run=TODAY_8AM)

    execution = await engine.execute(routine, TODAY_8AM)

    assert execution.status == "failed"
    assert "Unknown function: missing" in execution.error
    assert execution.results == []


@pytest.mark.asyncio
async def test_one_failing_routine_does_not_affect_others(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool(), FailingTool())
    bad = db.create_routine("u1", "Bad", "0 8 * * *", [ToolStep("explode")], next_run=TODAY_8AM)
    good = db.create_routine("u2", "Good", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)

    executions = await engine.run_due()

    statuses = {e.routine_id: e.status for e in executions}
    assert statuses == {bad.id: "failed", good.id: "completed"}
    assert db.get_routine(bad.id).next_run > TODAY_8AM
    assert db.get_routine(good.id).next_run > TODAY_8AM


@pytest.mark.asyncio
async def test_due_routines_run_concurrently_within_worker_limit(tmp_path):
    slow = SlowTool()
    db, engine = _setup(tmp_path, slow, max_workers=2)
    for i in range(5):
        db.create_routine(f"u{i}", f"R{i}", "0 8 * * *", [ToolStep("slow")], next_run=TODAY_8AM)

    executions = await engine.run_due()

    assert len(executions) == 5
    assert all(e.status == "completed" for e in executions)
    assert slow.peak == 2


@pytest.mark.asyncio
async def test_history_is_newest_first(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool(), FailingTool())
    routine = db.create_routine("u1", "Twice", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)
    first = await engine.execute(routine, TODAY_8AM)
    second = await engine.execute(routine, TODAY_8AM + timedelta(days=1))

    history = engine.history(routine.id)

    assert [e.id for e in history] == [second.id, first.id]


@pytest.mark.asyncio
async def test_scheduler_tick_runs_engine_and_cleans_rate_limits(tmp_path):
    db, engine = _setup(tmp_path, ConstantTool())
    db.create_routine("u1", "Tick", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)
    limiter = RateLimiter(db, clock=lambda: TODAY_8AM)
    limiter.check("dalle:u1", 5, window_seconds=1)
    cleanup_limiter = RateLimiter(db, clock=lambda: TODAY_8AM + timedelta(seconds=5))
    scheduler = RoutineScheduler(engine, rate_limiter=cleanup_limiter, poll_interval_seconds=0.01)

    await scheduler.tick()

    routine = db.list_routines("u1")[0]
    assert len(engine.history(routine.id)) == 1
    assert cleanup_limiter.cleanup() == 0


@pytest.mark.asyncio
async def test_scheduler_stops(tmp_path):
    _, engine = _setup(tmp_path)
    scheduler = RoutineScheduler(engine, poll_interval_seconds=10)

    task = asyncio.create_task(scheduler.run_forever())
    await asyncio.sleep(0.01)
    scheduler.stop()

    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_missing_execution_record_raises(tmp_path, monkeypatch):
    db, engine = _setup(tmp_path, ConstantTool())
    routine = db.create_routine("u1", "Lost", "0 8 * * *", [ToolStep("constant")], next_run=TODAY_8AM)
    monkeypatch.setattr(db, "get_routine_execution", lambda execution_id: None)

    with pytest.raises(RuntimeError, match="disappeared"):
        await engine.execute(routine, TODAY_8AM)

    assert db.get_routine(routine.id).next_run == TODAY_8AM + timedelta(days=1)
