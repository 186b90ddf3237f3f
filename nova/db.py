"""SQLite persistence layer."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from nova.models import Routine, RoutineExecution, StepResult, ToolStep

SCHEMA_VERSION = 1


class Database:
    """Small SQLite wrapper with explicit schema management."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS integrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                provider TEXT NOT NULL,
                access_token TEXT NOT NULL,
                refresh_token TEXT,
                expires_at TEXT,
                email TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(user_id, provider)
            );

            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY(conversation_id) REFERENCES conversations(id)
            );

            CREATE TABLE IF NOT EXISTS usage_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                model TEXT NOT NULL,
                tool_rounds INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tool_executions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                tool_name TEXT NOT NULL,
                input_json TEXT NOT NULL,
                output_json TEXT NOT NULL,
                succeeded INTEGER NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS routines (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                schedule TEXT NOT NULL,
                tool_chain_json TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                next_run TEXT,
                last_run TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS routine_executions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                routine_id INTEGER NOT NULL,
                status TEXT NOT NULL,
                result_json TEXT,
                error TEXT,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                FOREIGN KEY(routine_id) REFERENCES routines(id)
            );

            CREATE TABLE IF NOT EXISTS rate_limits (
                key TEXT PRIMARY KEY,
                count INTEGER NOT NULL,
                reset_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS call_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                contact_name TEXT NOT NULL,
                phone_number TEXT NOT NULL,
                direction TEXT NOT NULL,
                status TEXT NOT NULL,
                duration_seconds INTEGER NOT NULL DEFAULT 0,
                cost_cents INTEGER NOT NULL DEFAULT 0,
                summary TEXT,
                created_at TEXT NOT NULL
            );
            """
        )

    # Integrations

    def save_integration(
        self,
        user_id: str,
        provider: str,
        access_token: str,
        refresh_token: str | None = None,
        expires_at: datetime | None = None,
        email: str | None = None,
    ) -> None:
        """Insert or replace a user's (already encrypted) credential for a provider."""

        now = _utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO integrations(user_id, provider, access_token, refresh_token, expires_at, email,
                                         created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    access_token=excluded.access_token,
                    refresh_token=excluded.refresh_token,
                    expires_at=excluded.expires_at,
                    email=excluded.email,
                    updated_at=excluded.updated_at
                """,
                (user_id, provider, access_token, refresh_token, _iso_or_none(expires_at), email, now, now),
            )

    def list_integrations(self, user_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, provider, access_token, refresh_token, expires_at, email
                FROM integrations
                WHERE user_id = ?
                ORDER BY id ASC
                """,
                (user_id,),
            ).fetchall()
        return [
            {**dict(row), "expires_at": _parse_or_none(row["expires_at"])}
            for row in rows
        ]

    def update_integration_tokens(
        self,
        integration_id: int,
        access_token: str,
        refresh_token: str | None,
        expires_at: datetime | None,
    ) -> None:
        """Store refreshed tokens; a ``None`` refresh token keeps the existing one."""

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE integrations
                SET access_token = ?,
                    refresh_token = COALESCE(?, refresh_token),
                    expires_at = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (access_token, refresh_token, _iso_or_none(expires_at), _utc_now_iso(), integration_id),
            )

    def delete_integration(self, user_id: str, provider: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM integrations WHERE user_id = ? AND provider = ?", (user_id, provider))

    # Conversations

    def upsert_conversation(self, conversation_id: str, user_id: str) -> None:
        now = _utc_now_iso()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO conversations(id, user_id, title, created_at, updated_at)
                VALUES (?, ?, NULL, ?, ?)
                ON CONFLICT(id) DO UPDATE SET updated_at=excluded.updated_at
                """,
                (conversation_id, user_id, now, now),
            )

    def add_message(self, conversation_id: str, role: str, content: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO messages(conversation_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (conversation_id, role, content, _utc_now_iso()),
            )

    def get_recent_messages(self, conversation_id: str, limit: int) -> list[dict[str, str]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT role, content
                FROM messages
                WHERE conversation_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (conversation_id, limit),
            ).fetchall()
        ordered = list(reversed(rows))
        return [{"role": row["role"], "content": row["content"]} for row in ordered]

    def get_conversation_title(self, conversation_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT title FROM conversations WHERE id = ?", (conversation_id,)).fetchone()
        return row["title"] if row else None

    def set_conversation_title(self, conversation_id: str, title: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ?",
                (title, _utc_now_iso(), conversation_id),
            )

    def record_usage(self, user_id: str, conversation_id: str, model: str, tool_rounds: int) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO usage_events(user_id, conversation_id, model, tool_rounds, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, conversation_id, model, tool_rounds, _utc_now_iso()),
            )

    def list_usage(self, user_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT conversation_id, model, tool_rounds, created_at FROM usage_events WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def log_tool_execution(
        self,
        user_id: str,
        tool_name: str,
        tool_input: dict[str, Any],
        tool_output: str,
        succeeded: bool,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tool_executions(user_id, tool_name, input_json, output_json, succeeded, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    tool_name,
                    json.dumps(tool_input, default=str),
                    tool_output,
                    int(succeeded),
                    _utc_now_iso(),
                ),
            )

    def list_tool_executions(self, user_id: str) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT tool_name, input_json, output_json, succeeded FROM tool_executions WHERE user_id = ? ORDER BY id",
                (user_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    # Routines

    def create_routine(
        self,
        user_id: str,
        name: str,
        schedule: str,
        steps: list[ToolStep],
        next_run: datetime,
        description: str | None = None,
    ) -> Routine:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO routines(user_id, name, description, schedule, tool_chain_json, enabled, next_run, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    user_id,
                    name,
                    description,
                    schedule,
                    json.dumps([step.to_dict() for step in steps]),
                    _iso(next_run),
                    _utc_now_iso(),
                ),
            )
            routine_id = int(cur.lastrowid)
        return Routine(
            id=routine_id,
            user_id=user_id,
            name=name,
            description=description,
            schedule=schedule,
            steps=steps,
            next_run=next_run,
        )

    def count_routines(self, user_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM routines WHERE user_id = ?", (user_id,)).fetchone()
        return int(row["n"])

    def get_routine(self, routine_id: int) -> Routine | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM routines WHERE id = ?", (routine_id,)).fetchone()
        return _routine_from_row(row) if row else None

    def list_routines(self, user_id: str) -> list[Routine]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM routines WHERE user_id = ? ORDER BY id DESC", (user_id,)
            ).fetchall()
        return [_routine_from_row(row) for row in rows]

    def get_due_routines(self, now: datetime) -> list[Routine]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM routines
                WHERE enabled = 1 AND next_run IS NOT NULL AND next_run <= ?
                ORDER BY next_run ASC
                """,
                (_iso(now),),
            ).fetchall()
        return [_routine_from_row(row) for row in rows]

    def set_routine_enabled(self, routine_id: int, enabled: bool) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE routines SET enabled = ? WHERE id = ?", (int(enabled), routine_id))

    def update_routine_schedule(self, routine_id: int, last_run: datetime, next_run: datetime) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE routines SET last_run = ?, next_run = ? WHERE id = ?",
                (_iso(last_run), _iso(next_run), routine_id),
            )

    def create_routine_execution(self, routine_id: int) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO routine_executions(routine_id, status, started_at) VALUES (?, 'running', ?)",
                (routine_id, _utc_now_iso()),
            )
            return int(cur.lastrowid)

    def finish_routine_execution(
        self,
        execution_id: int,
        status: str,
        results: list[StepResult],
        error: str | None = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE routine_executions
                SET status = ?, result_json = ?, error = ?, finished_at = ?
                WHERE id = ?
                """,
                (
                    status,
                    json.dumps([{"tool": r.tool, "result": r.result} for r in results]),
                    error,
                    _utc_now_iso(),
                    execution_id,
                ),
            )

    def get_routine_execution(self, execution_id: int) -> RoutineExecution | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM routine_executions WHERE id = ?", (execution_id,)).fetchone()
        return _execution_from_row(row) if row else None

    def list_routine_executions(self, routine_id: int, limit: int = 20) -> list[RoutineExecution]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM routine_executions WHERE routine_id = ? ORDER BY id DESC LIMIT ?",
                (routine_id, limit),
            ).fetchall()
        return [_execution_from_row(row) for row in rows]

    # Rate limits

    def increment_rate_limit(self, key: str, window_seconds: int, now: datetime) -> tuple[int, datetime]:
        """Count one hit in the fixed window for ``key`` and return (count, reset_at)."""

        with self._connect() as conn:
            row = conn.execute("SELECT count, reset_at FROM rate_limits WHERE key = ?", (key,)).fetchone()
            if row is None or datetime.fromisoformat(row["reset_at"]) <= now:
                count = 1
                reset_at = now + timedelta(seconds=window_seconds)
            else:
                count = int(row["count"]) + 1
                reset_at = datetime.fromisoformat(row["reset_at"])
            conn.execute(
                """
                INSERT INTO rate_limits(key, count, reset_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET count=excluded.count, reset_at=excluded.reset_at
                """,
                (key, count, _iso(reset_at)),
            )
        return count, reset_at

    def delete_expired_rate_limits(self, now: datetime) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM rate_limits WHERE reset_at <= ?", (_iso(now),))
            return int(cur.rowcount)

    # Calls

    def create_call_record(self, user_id: str, contact_name: str, phone_number: str) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO call_records(user_id, contact_name, phone_number, direction, status, created_at)
                VALUES (?, ?, ?, 'outbound', 'initiated', ?)
                """,
                (user_id, contact_name, phone_number, _utc_now_iso()),
            )
            return int(cur.lastrowid)

    def list_call_records(self, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, contact_name, phone_number, status, duration_seconds, cost_cents, summary, created_at
                FROM call_records
                WHERE user_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]


def _routine_from_row(row: sqlite3.Row) -> Routine:
    return Routine(
        id=int(row["id"]),
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        schedule=row["schedule"],
        steps=[ToolStep.from_dict(step) for step in json.loads(row["tool_chain_json"])],
        enabled=bool(row["enabled"]),
        next_run=_parse_or_none(row["next_run"]),
        last_run=_parse_or_none(row["last_run"]),
    )


def _execution_from_row(row: sqlite3.Row) -> RoutineExecution:
    results = json.loads(row["result_json"]) if row["result_json"] else []
    return RoutineExecution(
        id=int(row["id"]),
        routine_id=int(row["routine_id"]),
        status=row["status"],
        results=[StepResult(tool=r["tool"], result=r["result"]) for r in results],
        error=row["error"],
        started_at=_parse_or_none(row["started_at"]),
        finished_at=_parse_or_none(row["finished_at"]),
    )


def _iso(value: datetime) -> str:
    # Fixed-width UTC timestamps so lexicographic order matches chronological order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _iso_or_none(value: datetime | None) -> str | None:
    return _iso(value) if value is not None else None


def _parse_or_none(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _utc_now_iso() -> str:
    return _iso(datetime.now(timezone.utc))
