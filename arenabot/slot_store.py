from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from typing import Iterable

from arenabot.domain import SlotRecord

logger = logging.getLogger(__name__)


def load_records(path: str) -> dict[str, SlotRecord]:
    if not os.path.exists(path):
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        # Corrupted state shouldn't brick the worker; start fresh.
        logger.warning("Slot store %s is unreadable (%s), starting with an empty store", path, type(e).__name__)
        return {}

    if not isinstance(raw, dict):
        logger.warning("Slot store %s is not a JSON object, starting with an empty store", path)
        return {}

    records: dict[str, SlotRecord] = {}
    slots_raw = raw.get("slots", [])
    if not isinstance(slots_raw, list):
        slots_raw = []
    for item in slots_raw:
        try:
            record = SlotRecord.from_dict(item)
        except (KeyError, TypeError, ValueError):
            continue
        records.setdefault(record.id, record)
    return records


def save_records(path: str, records: Iterable[SlotRecord]) -> None:
    data = {
        "slots": [r.to_dict() for r in sorted(records, key=lambda r: (r.date, r.court, r.start, r.id))],
    }

    folder = os.path.dirname(os.path.abspath(path))
    if folder and not os.path.exists(folder):
        os.makedirs(folder, exist_ok=True)

    # Atomic write
    with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp") as tf:
        json.dump(data, tf, ensure_ascii=False, indent=2)
        tmp_name = tf.name

    os.replace(tmp_name, path)


class SlotStore:
    """Append-only set of every slot seen so far, keyed by the booking link.

    Records are never updated or removed here; pruning the file is a manual job.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._records = load_records(path)
        logger.info("Slot store opened: %s (%d known slots)", path, len(self._records))

    def insert_if_absent(self, record: SlotRecord) -> SlotRecord | None:
        """Store ``record`` unless its id is already known.

        Returns the record when it was inserted, ``None`` when it was already present.
        """
        inserted = self.insert_all_if_absent([record])
        return inserted[0] if inserted else None

    def insert_all_if_absent(self, records: Iterable[SlotRecord]) -> list[SlotRecord]:
        """Store every record whose id is not known yet, with a single write.

        Returns the newly stored records in input order. If the write fails
        nothing from this batch is kept, so the next run sees them as new again.
        """
        with self._lock:
            inserted: list[SlotRecord] = []
            for record in records:
                if record.id in self._records:
                    continue
                self._records[record.id] = record
                inserted.append(record)

            if not inserted:
                return inserted

            try:
                save_records(self.path, self._records.values())
            except Exception:
                # Keep memory consistent with disk.
                for record in inserted:
                    del self._records[record.id]
                raise
            return inserted

    def get(self, slot_id: str) -> SlotRecord | None:
        with self._lock:
            return self._records.get(slot_id)

    def all(self) -> list[SlotRecord]:
        with self._lock:
            return list(self._records.values())

    def __contains__(self, slot_id: object) -> bool:
        with self._lock:
            return slot_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
