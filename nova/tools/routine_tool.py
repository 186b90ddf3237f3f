"""Built-in tool that lets the model schedule a routine for the caller."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from nova.cron import cron_to_human, get_next_run, is_valid_cron
from nova.db import Database
from nova.models import ToolStep
from nova.tools.base import Tool, ToolContext


class CreateRoutineTool(Tool):
    name = "create_routine"
    description = (
        "Create an automated routine that runs on a schedule. Use this when the user asks to automate a "
        'recurring task, e.g. "every morning check my calendar and send me a Slack summary". Build a tool '
        "chain of steps that execute sequentially."
    )
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": 'Short name for the routine (e.g. "Morning briefing")'},
            "description": {"type": "string", "description": "What the routine does"},
            "schedule": {
                "type": "string",
                "description": (
                    'Cron expression (5 fields, UTC). Common: "0 8 * * *" = 8 AM daily, '
                    '"0 8 * * 1-5" = weekday mornings, "*/30 * * * *" = every 30 min'
                ),
            },
            "toolChain": {
                "type": "array",
                "description": (
                    "Ordered list of tool steps. Each step runs sequentially; use {{PREVIOUS_RESULT}} in "
                    "args to reference the previous step output."
                ),
                "items": {
                    "type": "object",
                    "properties": {
                        "toolName": {
                            "type": "string",
                            "description": "Name of the tool to run (e.g. google_calendar_list_events, slack_send_dm)",
                        },
                        "args": {
                            "type": "object",
                            "description": (
                                "Arguments for the tool. Use {{PREVIOUS_RESULT}} to pass output from the "
                                "previous step."
                            ),
                        },
                    },
                    "required": ["toolName"],
                },
            },
        },
        "required": ["name", "schedule", "toolChain"],
    }
    status_label = "Creating routine…"

    def __init__(
        self,
        db: Database,
        max_routines: int = 20,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = db
        self._max_routines = max_routines
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run(self, ctx: ToolContext, **kwargs: Any) -> dict[str, Any]:
        schedule = str(kwargs["schedule"]).strip()
        if not is_valid_cron(schedule):
            return {"error": 'Invalid cron schedule. Use 5-field format like "0 8 * * *".'}

        try:
            steps = [ToolStep.from_dict(step) for step in kwargs.get("toolChain") or []]
        except (KeyError, TypeError, AttributeError):
            return {"error": "Each toolChain step needs a toolName."}
        if not steps:
            return {"error": "toolChain must have at least one step."}

        if self._db.count_routines(ctx.caller_id) >= self._max_routines:
            return {
                "error": f"Maximum {self._max_routines} routines reached. Delete one to create a new one."
            }

        next_run = get_next_run(schedule, self._clock())
        routine = self._db.create_routine(
            ctx.caller_id,
            name=str(kwargs["name"]).strip(),
            schedule=schedule,
            steps=steps,
            next_run=next_run,
            description=(kwargs.get("description") or "").strip() or None,
        )
        human = cron_to_human(schedule)
        return {
            "success": True,
            "routine": {
                "id": routine.id,
                "name": routine.name,
                "schedule": human,
                "steps": len(steps),
                "nextRun": next_run.isoformat(),
            },
            "message": (
                f'Routine "{routine.name}" created! It will run {human[0].lower() + human[1:]}, '
                f"starting {next_run.strftime('%Y-%m-%d %H:%M')} UTC."
            ),
        }
