"""Tests for the @command dispatch system."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from nova.commands import CommandDispatcher, parse_command
from nova.db import Database
from nova.models import ToolStep
from nova.routines import RoutineEngine
from nova.tools.base import Tool, ToolContext
from nova.tools.registry import ToolRegistry

EIGHT_AM = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


class ConstantTool(Tool):
    name = "constant"
    description = "Returns a fixed value"
    parameters_schema: dict[str, Any] = {"type": "object", "properties": {}}

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        return {"value": "42"}


class NoCredentials:
    async def get_connected_integrations(self, user_id: str) -> list:
        return []


def _setup(tmp_path) -> tuple[Database, RoutineEngine, CommandDispatcher]:
    db = Database(tmp_path / "nova.db")
    db.initialize()
    registry = ToolRegistry(db)
    registry.register(ConstantTool())
    engine = RoutineEngine(db=db, registry=registry, credentials=NoCredentials(), llm=None, clock=lambda: EIGHT_AM)
    return db, engine, CommandDispatcher(db, engine)


class TestParseCommand:
    def test_regular_text_returns_none(self):
        assert parse_command("hello world") is None

    def test_at_sign_alone_returns_none(self):
        assert parse_command("@   ") is None

    def test_command_keyword_is_lowercased(self):
        assert parse_command("  @Routine 3 ON ") == ("routine", ["3", "ON"])


def test_unknown_command_falls_through(tmp_path):
    _, _, commands = _setup(tmp_path)

    assert commands.dispatch("u1", "@weather tomorrow") is None
    assert commands.dispatch("u1", "what's on today?") is None


def test_routines_lists_only_own_routines(tmp_path):
    db, _, commands = _setup(tmp_path)
    db.create_routine("u1", "Morning brief", "0 8 * * *", [ToolStep("constant")], next_run=EIGHT_AM)
    db.create_routine("u2", "Someone else", "0 9 * * *", [ToolStep("constant")], next_run=EIGHT_AM)

    reply = commands.dispatch("u1", "@routines")

    assert "Morning brief [on] Daily at 08:00 UTC" in reply
    assert "Someone else" not in reply
    assert commands.dispatch("u3", "@routines") == "You have no routines yet."


def test_routine_toggle_disables_and_enables(tmp_path):
    db, _, commands = _setup(tmp_path)
    routine = db.create_routine("u1", "Brief", "0 8 * * *", [ToolStep("constant")], next_run=EIGHT_AM)

    assert commands.dispatch("u1", f"@routine {routine.id} off") == f"Routine #{routine.id} disabled."
    assert db.get_routine(routine.id).enabled is False
    assert db.get_due_routines(EIGHT_AM) == []

    assert commands.dispatch("u1", f"@routine #{routine.id} on") == f"Routine #{routine.id} enabled."
    assert db.get_routine(routine.id).enabled is True


def test_routine_toggle_rejects_other_users_and_bad_input(tmp_path):
    db, _, commands = _setup(tmp_path)
    routine = db.create_routine("u1", "Brief", "0 8 * * *", [ToolStep("constant")], next_run=EIGHT_AM)

    assert commands.dispatch("u2", f"@routine {routine.id} off") == f"Routine {routine.id} not found."
    assert db.get_routine(routine.id).enabled is True
    assert commands.dispatch("u1", "@routine 1") == "Usage: @routine <id> on|off"
    assert commands.dispatch("u1", "@routine abc off") == "Routine abc not found."


@pytest.mark.asyncio
async def test_history_shows_newest_execution_first(tmp_path):
    db, engine, commands = _setup(tmp_path)
    routine = db.create_routine("u1", "Brief", "0 8 * * *", [ToolStep("constant")], next_run=EIGHT_AM)
    ghost = db.create_routine("u1", "Ghost", "0 8 * * *", [ToolStep("missing")], next_run=EIGHT_AM)

    assert commands.dispatch("u1", f"@history {routine.id}") == f"Routine #{routine.id} has not run yet."
    await engine.execute(routine, EIGHT_AM)
    await engine.execute(ghost, EIGHT_AM)

    assert "completed (1 steps)" in commands.dispatch("u1", f"@history {routine.id}")
    assert "failed (0 steps): Step missing failed" in commands.dispatch("u1", f"@history {ghost.id}")
    assert commands.dispatch("u2", f"@history {routine.id}") == f"Routine {routine.id} not found."


def test_disconnect_removes_only_that_provider(tmp_path):
    db, _, commands = _setup(tmp_path)
    db.save_integration("u1", "spotify", access_token="enc-a")
    db.save_integration("u1", "google", access_token="enc-b")

    assert commands.dispatch("u1", "@disconnect Spotify") == "Spotify disconnected."
    assert [row["provider"] for row in db.list_integrations("u1")] == ["google"]
    assert commands.dispatch("u1", "@disconnect myspace").startswith("Usage: @disconnect <provider>")
