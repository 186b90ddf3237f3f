"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import uuid

from nova.commands import CommandDispatcher
from nova.config import load_settings
from nova.conversation import ConversationLoop
from nova.crypto import TokenCipher
from nova.db import Database
from nova.integrations import CredentialStore, OAuthClient
from nova.llm.catalog import create_provider
from nova.rate_limit import RateLimiter
from nova.routines import RoutineEngine, RoutineScheduler
from nova.tools.catalog import build_tool_registry

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}


async def run() -> None:
    """Initialize app layers, start the routine scheduler and chat on the console."""

    settings = load_settings()

    db = Database(settings.database_path)
    db.initialize()

    credentials = CredentialStore(db, TokenCipher(settings.integration_encryption_key), OAuthClient(settings))
    rate_limiter = RateLimiter(db)
    registry = build_tool_registry(db, settings, rate_limiter)

    providers = {"openai": create_provider("openai", settings)}
    if settings.anthropic_api_key:
        providers["anthropic"] = create_provider("anthropic", settings)

    loop = ConversationLoop(
        db=db,
        registry=registry,
        credentials=credentials,
        providers=providers,
        max_tool_rounds=settings.max_tool_rounds,
        history_window=settings.history_window_messages,
        request_timeout_seconds=settings.request_timeout_seconds,
    )
    engine = RoutineEngine(
        db=db,
        registry=registry,
        credentials=credentials,
        llm=create_provider(settings.routine_provider, settings),
        max_workers=settings.routine_max_workers,
    )
    scheduler = RoutineScheduler(
        engine, rate_limiter=rate_limiter, poll_interval_seconds=settings.routine_poll_interval_seconds
    )
    commands = CommandDispatcher(db, engine)
    scheduler_task = asyncio.create_task(scheduler.run_forever(), name="routine-scheduler")

    conversation_id = uuid.uuid4().hex
    try:
        while True:
            text = (await asyncio.to_thread(input, "you> ")).strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                break
            reply = commands.dispatch(settings.console_user_id, text)
            if reply is not None:
                print(reply, flush=True)
                continue
            async for event in loop.run_turn(
                settings.console_user_id, conversation_id, text, model=settings.default_model
            ):
                if event.type == "status":
                    print(f"[{event.text}]", flush=True)
                elif event.type == "delta":
                    print(event.text, end="", flush=True)
                elif event.type == "error":
                    print(event.text, flush=True)
                else:
                    print(flush=True)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        scheduler.stop()
        await loop.drain_background_tasks()
        scheduler_task.cancel()
        LOGGER.info("Nova shutdown complete")


def main() -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    asyncio.run(run())


if __name__ == "__main__":
    main()
