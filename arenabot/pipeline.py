from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Iterable

import httpx

from arenabot.config import Settings
from arenabot.domain import MalformedLinkError, SlotRecord
from arenabot.fetcher import build_client, fetch_slot_links
from arenabot.parser import parse_slot_link
from arenabot.slot_store import SlotStore

logger = logging.getLogger(__name__)


def next_weekday(weekday: int, today: dt.date | None = None) -> dt.date:
    """Next ``weekday`` (Monday=0) strictly after ``today``.

    If today already is that weekday we jump a full week ahead.
    """
    today = today or dt.date.today()
    days_ahead = (weekday - today.weekday()) % 7
    return today + dt.timedelta(days=days_ahead or 7)


def target_dates(weekdays: Iterable[int], today: dt.date | None = None) -> list[dt.date]:
    today = today or dt.date.today()
    return [next_weekday(w, today) for w in weekdays]


def build_day_url(base_url: str, day: dt.date) -> str:
    return f"{base_url}{day.isoformat()}"


def parse_links(links: Iterable[str]) -> list[SlotRecord]:
    records: list[SlotRecord] = []
    for link in links:
        try:
            records.append(parse_slot_link(link))
        except MalformedLinkError as e:
            logger.warning("Skipping link: %s", e)
    return records


async def _fetch_all(client: httpx.AsyncClient, urls: list[str], settings: Settings) -> list[list[str]]:
    results = await asyncio.gather(
        *(fetch_slot_links(client, url, selector=settings.link_selector, marker=settings.slot_marker) for url in urls),
        return_exceptions=True,
    )

    # No isolation: one failed day aborts the run, the next tick retries.
    pages: list[list[str]] = []
    for url, result in zip(urls, results):
        if isinstance(result, BaseException):
            logger.error("Fetching %s failed (%s: %s)", url, type(result).__name__, result)
            raise result
        pages.append(result)
    return pages


async def discover_new_slots(
    settings: Settings,
    store: SlotStore,
    *,
    client: httpx.AsyncClient | None = None,
    today: dt.date | None = None,
) -> list[SlotRecord]:
    """Fetch the target day pages and return the slots the store had not seen yet."""
    urls = [build_day_url(settings.base_url, d) for d in target_dates(settings.target_weekdays, today)]

    if client is None:
        async with build_client(timeout_seconds=settings.fetch_timeout_seconds) as own_client:
            pages = await _fetch_all(own_client, urls, settings)
    else:
        pages = await _fetch_all(client, urls, settings)

    links = [link for page in pages for link in page]
    records = parse_links(links)

    # One write for the whole run: a failed save keeps none of it.
    new_slots = store.insert_all_if_absent(records)

    logger.info("Slots: scraped=%d parsed=%d new=%d", len(links), len(records), len(new_slots))
    return new_slots
