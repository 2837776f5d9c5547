from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from arenabot.config import Settings
from arenabot.domain import SlotRecord
from arenabot.slot_store import SlotStore
from arenabot.worker import CheckScheduler, run_check_once

LINK = "https://x/book?court=3&datum=2024-06-07&startZeit=18%3A00&endZeit=19%3A00"


def _settings(tmp_path) -> Settings:
    # Minimal Settings for run_check_once(); tests never touch the network.
    return Settings(
        base_url="https://x/calendar?datum=",
        mail_from="bot@example.com",
        mail_to=("me@example.com",),
        smtp_host="smtp.invalid",
        check_interval_ms=1,
        fetch_timeout_seconds=1,
        court_capacities={3: 8},
        state_file=str(tmp_path / "arena.json"),
    )


def _fake_client(**_: object) -> httpx.AsyncClient:
    page = f'<table><tr><td><a href="{LINK.replace("&", "&amp;")}">frei</a></td></tr></table>'
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text=page)))


def test_new_slots_are_mailed_once(tmp_path) -> None:
    settings = _settings(tmp_path)
    store = SlotStore(settings.state_file)

    with (
        patch("arenabot.pipeline.build_client", side_effect=_fake_client),
        patch("arenabot.worker.send_new_slots") as send_mail,
    ):
        first = run_check_once(settings, store)
        second = run_check_once(settings, store)

    assert first == [SlotRecord(id=LINK, court=3, date="2024-06-07", start="18:00", end="19:00")]
    assert second == []
    send_mail.assert_called_once_with(settings, first)


def test_no_new_slots_sends_nothing(tmp_path) -> None:
    settings = _settings(tmp_path)

    with (
        patch("arenabot.worker.discover_new_slots", new_callable=AsyncMock, return_value=[]),
        patch("arenabot.worker.send_new_slots") as send_mail,
    ):
        assert run_check_once(settings, SlotStore(settings.state_file)) == []
        send_mail.assert_not_called()


def test_fetch_error_is_reraised_without_mail(tmp_path) -> None:
    settings = _settings(tmp_path)

    with (
        patch("arenabot.worker.discover_new_slots", new_callable=AsyncMock, side_effect=httpx.ConnectError("down")),
        patch("arenabot.worker.send_new_slots") as send_mail,
    ):
        with pytest.raises(httpx.ConnectError):
            run_check_once(settings, SlotStore(settings.state_file))
        send_mail.assert_not_called()


def test_scheduler_tick_survives_failed_check(tmp_path) -> None:
    settings = _settings(tmp_path)
    scheduler = CheckScheduler(settings, SlotStore(settings.state_file))

    with patch("arenabot.worker.run_check_once", side_effect=RuntimeError("boom")) as run_once:
        assert scheduler.tick() is True
        assert scheduler.tick() is True
    assert run_once.call_count == 2


def test_scheduler_skips_tick_while_check_in_flight(tmp_path) -> None:
    settings = _settings(tmp_path)
    scheduler = CheckScheduler(settings, SlotStore(settings.state_file))

    scheduler._running.acquire()
    try:
        with patch("arenabot.worker.run_check_once") as run_once:
            assert scheduler.tick() is False
            run_once.assert_not_called()
    finally:
        scheduler._running.release()


def test_run_forever_checks_immediately_then_per_interval(tmp_path) -> None:
    settings = _settings(tmp_path)
    scheduler = CheckScheduler(settings, SlotStore(settings.state_file))

    with (
        patch.object(scheduler, "tick") as tick,
        patch("arenabot.worker.time.sleep", side_effect=[None, KeyboardInterrupt]) as sleep,
    ):
        with pytest.raises(KeyboardInterrupt):
            scheduler.run_forever()

    assert tick.call_count == 2
    assert sleep.call_count == 2
