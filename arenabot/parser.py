from __future__ import annotations

import datetime as dt
import re
from urllib.parse import unquote

from arenabot.domain import MalformedLinkError, SlotRecord

# e.g. https://host/booking?court=3&datum=2024-06-07&startZeit=18%3A00&endZeit=19%3A00
_TIME = r"\d\d(?::|%3[Aa])\d\d"
_SLOT_LINK_RE = re.compile(
    r"^https?://.+?"
    r"court=(?P<court>[0-9])"
    r"&datum=(?P<date>[0-9-]+)"
    rf"&startZeit=(?P<start>{_TIME})"
    rf"&endZeit=(?P<end>{_TIME})"
)


def parse_slot_link(link: str) -> SlotRecord:
    m = _SLOT_LINK_RE.match(link)
    if m is None:
        raise MalformedLinkError(link)

    date_raw = m.group("date")
    try:
        dt.datetime.strptime(date_raw, "%Y-%m-%d")
    except ValueError as e:
        raise MalformedLinkError(link, reason=f"invalid date {date_raw!r}") from e

    return SlotRecord(
        id=link,
        court=int(m.group("court")),
        date=date_raw,
        start=unquote(m.group("start")),
        end=unquote(m.group("end")),
    )
