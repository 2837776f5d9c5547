from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class SlotRecord:
    """A single open time window on one court for one date.

    ``id`` is the booking link itself, so two scrapes that produce the same
    link describe the same slot.
    """

    id: str
    court: int
    date: str  # YYYY-MM-DD
    start: str  # HH:MM
    end: str  # HH:MM

    @property
    def day(self) -> dt.date:
        return dt.datetime.strptime(self.date, "%Y-%m-%d").date()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SlotRecord":
        return cls(
            id=str(raw["id"]),
            court=int(raw["court"]),
            date=str(raw["date"]),
            start=str(raw["start"]),
            end=str(raw["end"]),
        )


class MalformedLinkError(ValueError):
    """A scraped link does not look like a booking link.

    Usually means the facility changed its page layout or the selector picked
    up an unrelated anchor. Only the offending link is dropped.
    """

    def __init__(self, link: str, reason: str = "does not match the booking link pattern") -> None:
        super().__init__(f"Malformed slot link ({reason}): {link!r}")
        self.link = link
