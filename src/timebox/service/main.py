# src/timebox/service/main.py

"""
Headless service entrypoint.

Initializes logging, builds AppState, then runs until SIGINT/SIGTERM:
- the expiration sweeper (immediate sweep + fixed interval),
- the notification dispatcher (due notifications go to the log).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..config import get_settings
from ..logging_setup import setup_logging
from ..notify.local_notifier import run_notification_dispatcher
from ..tasks.task_sweeper import run_expiration_sweeper
from .bootstrap import create_initial_state, log_notification

logger = logging.getLogger(__name__)


async def _run(state) -> None:
    settings = state.settings
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) do not support loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    state.lifecycle.reschedule_notifications()

    runners = [
        asyncio.create_task(
            run_expiration_sweeper(state.lifecycle, interval_seconds=settings.sweep_interval_seconds)
        ),
        asyncio.create_task(
            run_notification_dispatcher(
                state.notifier,
                log_notification,
                interval_seconds=settings.notify_interval_seconds,
            )
        ),
    ]

    try:
        await stop.wait()
        logger.info("Stop requested, shutting down...")
    finally:
        for runner in runners:
            runner.cancel()
        await asyncio.gather(*runners, return_exceptions=True)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(
        log_dir=settings.data_dir,
        console_level=console_level,
        log_to_file=settings.log_to_file,
    )

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt, exiting.")
    finally:
        state.task_store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
