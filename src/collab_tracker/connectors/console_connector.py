# src/collab_tracker/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    user = state.auth.current_user
    return f"{user.username}> " if user else "> "


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL.

    input() runs in a worker thread so change notifications keep being
    processed on the event loop while the prompt waits.
    """
    logger.info("Console connector started (remote=%s).", state.remote is not None)
    _print_ts("[CONSOLE] Use /help for commands, /login <username> <password> to start, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            line = (await asyncio.to_thread(input, _prompt(state))).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            reply = "Commands start with '/'. Use /help to list them."
        _print_ts(reply)

    logger.info("Console connector finished.")
