# src/epic_tracker/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (store + history) from settings,
then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..errors import ManagerLoadError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/tracker")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "epic-tracker"))

    try:
        state = create_initial_state(settings=settings)
    except ManagerLoadError:
        logger.exception("Cannot load task file %s", settings.tasks_file_path)
        return 1

    try:
        run_console_loop(state)
    finally:
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
