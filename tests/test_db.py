from datetime import datetime, timedelta, timezone

import pytest

from nova.db import Database
from nova.models import StepResult, ToolStep

NOW = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)


def _db(tmp_path) -> Database:
    db = Database(tmp_path / "nova.db")
    db.initialize()
    return db


def test_initialize_is_idempotent(tmp_path):
    db = _db(tmp_path)
    db.initialize()

    assert db.list_routines("nobody") == []


def test_conversation_messages_and_title(tmp_path):
    db = _db(tmp_path)
    db.upsert_conversation("c1", "u1")
    for i in range(5):
        db.add_message("c1", "user" if i % 2 == 0 else "assistant", f"m{i}")

    assert [m["content"] for m in db.get_recent_messages("c1", limit=3)] == ["m2", "m3", "m4"]
    assert db.get_conversation_title("c1") is None
    db.set_conversation_title("c1", "Weekend plans")
    db.upsert_conversation("c1", "u1")
    assert db.get_conversation_title("c1") == "Weekend plans"
    assert db.get_conversation_title("missing") is None


def test_integrations_are_unique_per_provider(tmp_path):
    db = _db(tmp_path)
    db.save_integration("u1", "google", "enc-1", refresh_token="r-1")
    db.save_integration("u1", "google", "enc-2", refresh_token="r-2", email="a@b.c")
    db.save_integration("u2", "google", "enc-3")

    rows = db.list_integrations("u1")
    assert len(rows) == 1
    assert rows[0]["access_token"] == "enc-2"
    assert rows[0]["email"] == "a@b.c"

    db.delete_integration("u1", "google")
    assert db.list_integrations("u1") == []
    assert len(db.list_integrations("u2")) == 1


def test_routine_round_trip(tmp_path):
    db = _db(tmp_path)
    steps = [ToolStep("weather_current", {"location": "Stockholm"}), ToolStep("slack_send_message")]

    created = db.create_routine("u1", "Morning", "0 8 * * *", steps, next_run=NOW, description="Daily brief")
    loaded = db.get_routine(created.id)

    assert loaded.steps == steps
    assert loaded.schedule == "0 8 * * *"
    assert loaded.description == "Daily brief"
    assert loaded.enabled
    assert loaded.next_run == NOW
    assert loaded.last_run is None
    assert db.count_routines("u1") == 1
    assert db.get_routine(9999) is None


def test_due_routines(tmp_path):
    db = _db(tmp_path)
    due = db.create_routine("u1", "Due", "0 8 * * *", [ToolStep("calculate")], next_run=NOW)
    db.create_routine("u1", "Later", "0 9 * * *", [ToolStep("calculate")], next_run=NOW + timedelta(hours=1))
    off = db.create_routine("u1", "Off", "0 7 * * *", [ToolStep("calculate")], next_run=NOW - timedelta(hours=1))
    db.set_routine_enabled(off.id, False)

    assert [r.id for r in db.get_due_routines(NOW)] == [due.id]

    db.update_routine_schedule(due.id, last_run=NOW, next_run=NOW + timedelta(days=1))
    assert db.get_due_routines(NOW) == []
    assert db.get_routine(due.id).last_run == NOW


def test_routine_executions(tmp_path):
    db = _db(tmp_path)
    routine = db.create_routine("u1", "R", "0 8 * * *", [ToolStep("calculate")], next_run=NOW)

    first = db.create_routine_execution(routine.id)
    running = db.get_routine_execution(first)
    assert running.status == "running"
    assert running.results == []
    assert running.finished_at is None

    db.finish_routine_execution(first, "failed", [StepResult("calculate", '{"result": 4}')], error="boom")
    second = db.create_routine_execution(routine.id)
    db.finish_routine_execution(second, "completed", [])

    finished = db.get_routine_execution(first)
    assert finished.status == "failed"
    assert finished.results == [StepResult("calculate", '{"result": 4}')]
    assert finished.error == "boom"
    assert finished.finished_at is not None
    assert [e.id for e in db.list_routine_executions(routine.id)] == [second, first]
    assert len(db.list_routine_executions(routine.id, limit=1)) == 1


def test_usage_and_tool_log(tmp_path):
    db = _db(tmp_path)
    db.record_usage("u1", "c1", "gpt-4o-mini", 2)
    db.log_tool_execution("u1", "calculate", {"expression": "2+2"}, '{"result": 4}', succeeded=True)

    assert db.list_usage("u1")[0]["tool_rounds"] == 2
    log = db.list_tool_executions("u1")
    assert log[0]["input_json"] == '{"expression": "2+2"}'
    assert log[0]["succeeded"] == 1


def test_call_records(tmp_path):
    db = _db(tmp_path)
    first = db.create_call_record("u1", "Anna", "********4567")
    second = db.create_call_record("u1", "Ben", "********8901")

    calls = db.list_call_records("u1", limit=10)

    assert [c["id"] for c in calls] == [second, first]
    assert calls[0]["status"] == "initiated"
    assert calls[0]["duration_seconds"] == 0


def test_rejects_unknown_schema_version(tmp_path):
    db = _db(tmp_path)
    with db._connect() as conn:
        conn.execute("UPDATE schema_version SET version = 99")

    with pytest.raises(RuntimeError):
        db.initialize()
