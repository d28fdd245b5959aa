# src/collab_tracker/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, checks the remote store, then runs the
console REPL until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        if state.remote is not None:
            await state.remote.check_connection()

        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled; nothing to run.")
    finally:
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
