"""Command dispatcher for @-prefixed console messages.

Commands manage routines and integrations directly, without a model call.
An unrecognised @command returns None, letting it fall through to the model.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nova.cron import cron_to_human
from nova.integrations import ALL_PROVIDERS, display_name

if TYPE_CHECKING:
    from nova.db import Database
    from nova.routines import RoutineEngine

LOGGER = logging.getLogger(__name__)

_ROUTINE_USAGE = "Usage: @routine <id> on|off"
_HISTORY_USAGE = "Usage: @history <routine id>"


def parse_command(text: str) -> tuple[str, list[str]] | None:
    """Split an @-prefixed message into (command, args).

    Returns:
        A (command, args) tuple where command is lowercased, or None if text
        is not a valid @command.
    """
    text = text.strip()
    if not text.startswith("@"):
        return None
    parts = text[1:].split()
    if not parts:
        return None
    return parts[0].lower(), parts[1:]


class CommandDispatcher:
    """Routes @-prefixed messages to routine and integration management."""

    def __init__(self, db: Database, engine: RoutineEngine) -> None:
        self._db = db
        self._engine = engine

    def dispatch(self, user_id: str, text: str) -> str | None:
        """Return a reply for recognised commands, or None for unknown ones."""

        parsed = parse_command(text)
        if parsed is None:
            return None
        command, args = parsed
        LOGGER.info("Command dispatch: command=%r args=%r", command, args)
        if command == "routines":
            return self._handle_routines(user_id)
        if command == "routine":
            return self._handle_toggle(user_id, args)
        if command == "history":
            return self._handle_history(user_id, args)
        if command == "disconnect":
            return self._handle_disconnect(user_id, args)
        return None

    def _handle_routines(self, user_id: str) -> str:
        routines = self._db.list_routines(user_id)
        if not routines:
            return "You have no routines yet."
        lines = []
        for routine in routines:
            state = "on" if routine.enabled else "off"
            next_run = routine.next_run.isoformat() if routine.next_run and routine.enabled else "-"
            lines.append(
                f"#{routine.id} {routine.name} [{state}] {cron_to_human(routine.schedule)}, next run: {next_run}"
            )
        return "\n".join(lines)

    def _owned_routine_id(self, user_id: str, raw_id: str) -> int | None:
        if not raw_id.lstrip("#").isdigit():
            return None
        routine = self._db.get_routine(int(raw_id.lstrip("#")))
        if routine is None or routine.user_id != user_id:
            return None
        return routine.id

    def _handle_toggle(self, user_id: str, args: list[str]) -> str:
        if len(args) != 2 or args[1].lower() not in ("on", "off"):
            return _ROUTINE_USAGE
        routine_id = self._owned_routine_id(user_id, args[0])
        if routine_id is None:
            return f"Routine {args[0]} not found."
        enabled = args[1].lower() == "on"
        self._db.set_routine_enabled(routine_id, enabled)
        return f"Routine #{routine_id} {'enabled' if enabled else 'disabled'}."

    def _handle_history(self, user_id: str, args: list[str]) -> str:
        if len(args) != 1:
            return _HISTORY_USAGE
        routine_id = self._owned_routine_id(user_id, args[0])
        if routine_id is None:
            return f"Routine {args[0]} not found."
        executions = self._engine.history(routine_id, limit=10)
        if not executions:
            return f"Routine #{routine_id} has not run yet."
        lines = []
        for execution in executions:
            started = execution.started_at.isoformat() if execution.started_at else "?"
            line = f"{started} {execution.status} ({len(execution.results)} steps)"
            if execution.error:
                line += f": {execution.error}"
            lines.append(line)
        return "\n".join(lines)

    def _handle_disconnect(self, user_id: str, args: list[str]) -> str:
        if len(args) != 1 or args[0].lower() not in ALL_PROVIDERS:
            return f"Usage: @disconnect <provider>\nProviders: {', '.join(ALL_PROVIDERS)}"
        provider = args[0].lower()
        self._db.delete_integration(user_id, provider)
        return f"{display_name(provider)} disconnected."
