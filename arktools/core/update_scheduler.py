"""Run update cycles on a cron schedule."""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Callable, Optional

from croniter import croniter
from croniter.croniter import CroniterBadCronError

from arktools.common.errors import ArkToolsError, SteamCmdCancelledError
from arktools.common.logging_config import get_logger

MAX_SLEEP_INTERVAL_SECONDS = 30


class CronSchedule:
    """Cron schedule helper backed by :mod:`croniter`."""

    def __init__(self, expression: str) -> None:
        self._expression = expression
        self._validate_expression()

    @property
    def expression(self) -> str:
        return self._expression

    def _validate_expression(self) -> None:
        """Eagerly validate cron syntax so we fail fast on start-up."""

        try:
            croniter(self._expression, datetime.now())
        except CroniterBadCronError as exc:
            raise ValueError(str(exc)) from exc

    def next_run(self, reference: datetime) -> datetime:
        """Return the next scheduled time strictly after ``reference``."""

        iterator = croniter(self._expression, reference, ret_type=datetime)
        return iterator.get_next(datetime)


def _sleep_until(target: datetime, stop_event: Optional[threading.Event]) -> bool:
    """Sleep until ``target``. Returns False if ``stop_event`` fired first."""
    while True:
        delta = (target - datetime.now()).total_seconds()
        if delta <= 0:
            return True
        interval = min(delta, MAX_SLEEP_INTERVAL_SECONDS)
        if stop_event is None:
            time.sleep(interval)
        elif stop_event.wait(interval):
            return False


def run_update_scheduler(
    schedule: CronSchedule,
    cycle: Callable[[], None],
    stop_event: Optional[threading.Event] = None,
    max_cycles: Optional[int] = None,
) -> int:
    """Call ``cycle`` at every cron slot until stopped.

    A cycle that raises an :class:`ArkToolsError` is logged and the scheduler
    waits for the next slot; anything else propagates.

    Returns:
        Number of cycles started.
    """
    logger = get_logger(__name__)
    logger.info("Update scheduler active (cron='%s')", schedule.expression)

    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        next_run = schedule.next_run(datetime.now())
        logger.info("Next update check at %s", next_run.strftime("%Y-%m-%d %H:%M"))
        if not _sleep_until(next_run, stop_event):
            logger.info("Update scheduler stopped")
            break

        cycles += 1
        try:
            cycle()
        except SteamCmdCancelledError:
            logger.info("Update cycle cancelled; stopping scheduler")
            raise
        except ArkToolsError as exc:
            logger.error("Update cycle failed: %s", exc)
    return cycles


__all__ = ["CronSchedule", "run_update_scheduler"]
