from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_WEEKDAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

_SMTP_SECURITY_MODES = {"starttls", "ssl", "none"}


def _split_csv(raw: str) -> list[str]:
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]


def _parse_mail_recipients(raw: str) -> tuple[str, ...]:
    # MAIL_TO supports a single address or a comma-separated list.
    seen: set[str] = set()
    result: list[str] = []
    for p in _split_csv(raw):
        if "@" not in p:
            raise RuntimeError(f"Invalid MAIL_TO value: {p!r}. Expected an email address.")
        if p.lower() in seen:
            continue
        seen.add(p.lower())
        result.append(p)

    if not result:
        raise RuntimeError("MAIL_TO is empty. Provide at least one recipient.")

    return tuple(result)


def _parse_weekdays(raw: str) -> tuple[int, ...]:
    # Accepts names ("friday") or Python weekday numbers (Monday=0).
    result: list[int] = []
    for p in _split_csv(raw):
        key = p.lower()
        if key in _WEEKDAY_NAMES:
            day = _WEEKDAY_NAMES[key]
        else:
            try:
                day = int(key)
            except ValueError as e:
                raise RuntimeError(f"Invalid TARGET_WEEKDAYS value: {p!r}") from e
            if not 0 <= day <= 6:
                raise RuntimeError(f"Invalid TARGET_WEEKDAYS value: {p!r}. Expected 0 (Monday) .. 6 (Sunday).")
        if day not in result:
            result.append(day)

    if not result:
        raise RuntimeError("TARGET_WEEKDAYS is empty. Provide at least one weekday.")

    return tuple(result)


def _parse_court_capacities(raw: str) -> dict[int, int]:
    # e.g. COURT_CAPACITIES=1:10,2:10,5:8
    capacities: dict[int, int] = {}
    for p in _split_csv(raw):
        court, sep, people = p.partition(":")
        try:
            if not sep:
                raise ValueError(p)
            capacities[int(court)] = int(people)
        except ValueError as e:
            raise RuntimeError(f"Invalid COURT_CAPACITIES entry: {p!r}. Expected <court>:<people>.") from e
    return capacities


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() not in {"", "0", "false", "no", "off"}


def _int_env(name: str, default: str, *, minimum: int = 1) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True)
class Settings:
    base_url: str

    mail_from: str
    mail_to: tuple[str, ...]

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    # starttls | ssl | none
    smtp_security: str = "starttls"
    smtp_timeout_seconds: int = 30

    check_interval_ms: int = 15 * 60 * 1000
    fetch_timeout_seconds: int = 30

    # Friday, Saturday, Sunday
    target_weekdays: tuple[int, ...] = (4, 5, 6)
    link_selector: str = "td > a"
    slot_marker: str = "frei"

    court_capacities: dict[int, int] = field(default_factory=lambda: {1: 10, 2: 10, 3: 10, 4: 10, 5: 8})

    # Where we store every slot seen so far
    state_file: str = "db/arena.json"

    mail_subject_prefix: str = "Soccarena Update"

    # Log the outgoing mail instead of sending it
    debug: bool = False

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    smtp_security = os.getenv("SMTP_SECURITY", "starttls").strip().lower()
    if smtp_security not in _SMTP_SECURITY_MODES:
        raise RuntimeError(f"Invalid SMTP_SECURITY value: {smtp_security!r}. Expected one of starttls, ssl, none.")

    return Settings(
        base_url=_require("BASE_URL"),
        mail_from=_require("MAIL_FROM"),
        mail_to=_parse_mail_recipients(_require("MAIL_TO")),
        smtp_host=_require("SMTP_HOST"),
        smtp_port=_int_env("SMTP_PORT", "587"),
        smtp_user=os.getenv("SMTP_USER") or None,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_security=smtp_security,
        smtp_timeout_seconds=_int_env("SMTP_TIMEOUT_SECONDS", "30"),
        check_interval_ms=_int_env("CHECK_INTERVAL_MS", str(15 * 60 * 1000)),
        fetch_timeout_seconds=_int_env("FETCH_TIMEOUT_SECONDS", "30"),
        target_weekdays=_parse_weekdays(os.getenv("TARGET_WEEKDAYS", "friday,saturday,sunday")),
        link_selector=os.getenv("LINK_SELECTOR", "td > a"),
        slot_marker=os.getenv("SLOT_MARKER", "frei"),
        court_capacities=_parse_court_capacities(os.getenv("COURT_CAPACITIES", "1:10,2:10,3:10,4:10,5:8")),
        state_file=os.getenv("STATE_FILE", "db/arena.json"),
        mail_subject_prefix=os.getenv("MAIL_SUBJECT_PREFIX", "Soccarena Update"),
        debug=_parse_bool(os.getenv("DEBUG", "0")),
    )
