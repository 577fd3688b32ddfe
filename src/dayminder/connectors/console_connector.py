# src/dayminder/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.dates import format_date
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleMessenger:
    """OutboundMessenger that prints reminders into the terminal (with a bell)."""

    def __init__(self, *, bell: bool = True) -> None:
        self._bell = bell

    async def send_text(self, *, text: str, title: str | None = None) -> None:
        _print_ts(f"[REMINDER] {text}")
        if self._bell:
            print("\a", end="", flush=True)


class ConsolePermission:
    """
    PermissionAuthority for the console: the answer comes from settings
    (DAYMINDER_NOTIFICATIONS_ENABLED) instead of an OS prompt.
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled

    async def request_permission(self) -> bool:
        if not self._enabled:
            logger.info("Notifications disabled by settings.")
        return self._enabled


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Type /help for commands. Use /exit to quit.")
    _print_ts(f"[CONSOLE] Selected day: {format_date(state.selected_day)}")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations.
        _print_ts(text)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            user_input = f"/{user_input}"

        try:
            response = await command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            _print_ts(response)
