# src/dayminder/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, loads data, starts the reminder loop,
then runs the console REPL until /exit (or waits for Ctrl+C when the console
is disabled).
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown, startup
from ..config import get_settings
from ..connectors.console_connector import ConsoleMessenger, ConsolePermission, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    permission = ConsolePermission(enabled=bool(getattr(settings, "notifications_enabled", True)))

    try:
        await startup(state, permission, messenger=ConsoleMessenger())

        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Delivering reminders only. Press Ctrl+C to stop.")
            await asyncio.Event().wait()
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/dayminder")
    log_file = setup_logging(log_dir=log_dir, console_level=console_level)
    logger.debug("Full log: %s", log_file)

    logger.info("Starting %s...", getattr(settings, "app_name", "dayminder"))

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")

    logger.info("Bye.")


if __name__ == "__main__":
    main()
