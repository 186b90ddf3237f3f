"""Unattended routine execution and the scheduler loop that triggers it."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from nova.cron import get_next_run
from nova.db import Database
from nova.integrations import CredentialStore
from nova.llm.base import LLMProvider
from nova.models import Routine, RoutineExecution, StepResult
from nova.rate_limit import RateLimiter
from nova.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

PREVIOUS_RESULT = "{{PREVIOUS_RESULT}}"


class RoutineStepError(Exception):
    """A routine step produced an error result."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"Step {tool} failed: {message}")
        self.tool = tool


def substitute_previous_result(value: Any, previous: str) -> Any:
    """Replace every placeholder in ``value`` (recursing into lists and dicts)."""

    if isinstance(value, str):
        return value.replace(PREVIOUS_RESULT, previous)
    if isinstance(value, list):
        return [substitute_previous_result(item, previous) for item in value]
    if isinstance(value, dict):
        return {key: substitute_previous_result(item, previous) for key, item in value.items()}
    return value


def _error_of(result: str) -> str | None:
    try:
        parsed = json.loads(result)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, dict) and "error" in parsed:
        return str(parsed["error"])
    return None


class RoutineEngine:
    """Executes due routines with a fixed low-cost provider."""

    def __init__(
        self,
        db: Database,
        registry: ToolRegistry,
        credentials: CredentialStore,
        llm: LLMProvider,
        max_workers: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db = db
        self._registry = registry
        self._credentials = credentials
        self._llm = llm
        self._semaphore = asyncio.Semaphore(max_workers)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_due(self) -> list[RoutineExecution]:
        """Run every enabled routine whose next run has arrived."""

        now = self._clock()
        due = self._db.get_due_routines(now)
        if not due:
            return []
        LOGGER.info("Running %d due routine(s)", len(due))

        async def _bounded(routine: Routine) -> RoutineExecution:
            async with self._semaphore:
                return await self.execute(routine, now)

        return list(await asyncio.gather(*(_bounded(r) for r in due)))

    async def execute(self, routine: Routine, now: datetime | None = None) -> RoutineExecution:
        """Run one routine's steps in order and record the outcome.

        The schedule always advances, whatever happens to the steps.
        """

        now = now or self._clock()
        execution_id = self._db.create_routine_execution(routine.id)
        results: list[StepResult] = []
        try:
            integrations = await self._credentials.get_connected_integrations(routine.user_id)
            previous = ""
            for step in routine.steps:
                args = substitute_previous_result(step.args, previous)
                result = await self._registry.execute(
                    step.tool_name, args, integrations, caller_id=routine.user_id, llm=self._llm
                )
                error = _error_of(result)
                if error is not None:
                    raise RoutineStepError(step.tool_name, error)
                results.append(StepResult(tool=step.tool_name, result=result))
                previous = result
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Routine %s (%s) failed: %s", routine.id, routine.name, exc)
            self._db.finish_routine_execution(execution_id, "failed", results, error=str(exc))
        else:
            self._db.finish_routine_execution(execution_id, "completed", results)
        finally:
            self._db.update_routine_schedule(
                routine.id, last_run=now, next_run=get_next_run(routine.schedule, now)
            )

        execution = self._db.get_routine_execution(execution_id)
        if execution is None:
            raise RuntimeError(f"Routine execution {execution_id} disappeared before it could be read back")
        return execution

    def history(self, routine_id: int, limit: int = 20) -> list[RoutineExecution]:
        """Return the routine's executions, newest first."""

        return self._db.list_routine_executions(routine_id, limit)


class RoutineScheduler:
    """Polls for due routines and hands them to the engine."""

    def __init__(
        self,
        engine: RoutineEngine,
        rate_limiter: RateLimiter | None = None,
        poll_interval_seconds: float = 60.0,
    ) -> None:
        self._engine = engine
        self._rate_limiter = rate_limiter
        self._poll_interval_seconds = poll_interval_seconds
        self._stop_event = asyncio.Event()

    async def tick(self) -> None:
        try:
            await self._engine.run_due()
        except Exception:  # noqa: BLE001
            LOGGER.error("Routine tick failed", exc_info=True)
        if self._rate_limiter is not None:
            try:
                self._rate_limiter.cleanup()
            except Exception:  # noqa: BLE001
                LOGGER.warning("Rate limit cleanup failed", exc_info=True)

    async def run_forever(self) -> None:
        """Run scheduler loop until stop() is called."""

        while not self._stop_event.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval_seconds)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        """Signal the loop to stop."""

        self._stop_event.set()
