from __future__ import annotations

import asyncio
import datetime as dt
import logging
import threading
import time

from arenabot.config import Settings
from arenabot.domain import SlotRecord
from arenabot.mail_notifier import send_new_slots
from arenabot.pipeline import discover_new_slots
from arenabot.slot_store import SlotStore

logger = logging.getLogger(__name__)


def run_check_once(settings: Settings, store: SlotStore) -> list[SlotRecord]:
    logger.info("Checking for empty slots... %s", dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    try:
        new_slots = asyncio.run(discover_new_slots(settings, store))
    except Exception as e:
        logger.error("Check failed (%s: %s)", type(e).__name__, e)
        raise

    if not new_slots:
        logger.info("No new slots found... %s", dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
        return new_slots

    # Slots are already stored: a failed send is not retried on the next tick.
    send_new_slots(settings, new_slots)
    return new_slots


class CheckScheduler:
    """Runs one check immediately and then once per interval, never two at a time."""

    def __init__(self, settings: Settings, store: SlotStore) -> None:
        self.settings = settings
        self.store = store
        self._running = threading.Lock()

    def tick(self) -> bool:
        """Run a single check. Returns False when a check is already in flight."""
        if not self._running.acquire(blocking=False):
            logger.warning("Previous check still running, skipping this tick")
            return False

        try:
            run_check_once(self.settings, self.store)
        except Exception as e:
            # Already logged in run_check_once(), no traceback here.
            logger.error("Check failed in scheduler (%s: %s)", type(e).__name__, e)
        finally:
            self._running.release()
        return True

    def run_forever(self) -> None:
        interval = self.settings.check_interval_seconds
        logger.info("Worker started. Interval=%ss", interval)
        while True:
            started = time.monotonic()
            self.tick()
            # Interval is start-to-start; an overrunning check just delays the next one.
            time.sleep(max(0.0, interval - (time.monotonic() - started)))


def run_forever(settings: Settings) -> None:
    store = SlotStore(settings.state_file)
    CheckScheduler(settings, store).run_forever()
