from __future__ import annotations

import datetime as dt
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Mapping, Sequence

from arenabot.config import Settings
from arenabot.domain import SlotRecord

logger = logging.getLogger(__name__)


def _sorted_by_date(records: Sequence[SlotRecord]) -> list[SlotRecord]:
    if not records:
        raise ValueError("Nothing to render: no slots given")
    # sorted() is stable, equal dates keep their scrape order.
    return sorted(records, key=lambda r: r.day)


def _capacity(court: int, court_capacities: Mapping[int, int]) -> str:
    people = court_capacities.get(court)
    return str(people) if people is not None else "?"


def _human_date(record: SlotRecord) -> str:
    return record.day.strftime("%A, %d %B %Y")


def _headline(count: int) -> str:
    return "I found a slot:" if count == 1 else f"I found {count} slots:"


def _format_slot_html(record: SlotRecord, court_capacities: Mapping[int, int]) -> str:
    return (
        "<p>"
        f"Court: {record.court} ({_capacity(record.court, court_capacities)} people)<br />"
        f"Date: {_human_date(record)}<br />"
        f"{html.escape(record.start)} - {html.escape(record.end)}<br />"
        f"<a href=\"{html.escape(record.id, quote=True)}\">Click here to book</a>"
        "</p>"
    )


def render_html(records: Sequence[SlotRecord], court_capacities: Mapping[int, int]) -> str:
    ordered = _sorted_by_date(records)
    parts = [f"<div><p>{_headline(len(ordered))}</p>"]
    parts.extend(_format_slot_html(r, court_capacities) for r in ordered)
    parts.append("</div>")
    return "".join(parts)


def render_text(records: Sequence[SlotRecord], court_capacities: Mapping[int, int]) -> str:
    ordered = _sorted_by_date(records)
    lines = [_headline(len(ordered)), ""]
    for r in ordered:
        lines.append(f"Court: {r.court} ({_capacity(r.court, court_capacities)} people)")
        lines.append(f"Date: {_human_date(r)}")
        lines.append(f"{r.start} - {r.end}")
        lines.append(f"Book: {r.id}")
        lines.append("")
    return "\n".join(lines).strip()


def build_message(settings: Settings, records: Sequence[SlotRecord], now: dt.datetime | None = None) -> MIMEMultipart:
    now = now or dt.datetime.now()

    msg = MIMEMultipart("alternative")
    msg["From"] = settings.mail_from
    msg["To"] = ", ".join(settings.mail_to)
    msg["Subject"] = f"{settings.mail_subject_prefix}: {now:%Y-%m-%d %H:%M:%S}"

    # Plain text first, mail clients prefer the last alternative.
    msg.attach(MIMEText(render_text(records, settings.court_capacities), "plain", "utf-8"))
    msg.attach(MIMEText(render_html(records, settings.court_capacities), "html", "utf-8"))
    return msg


def _open_smtp(settings: Settings) -> smtplib.SMTP:
    if settings.smtp_security == "ssl":
        return smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds)

    server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds)
    if settings.smtp_security == "starttls":
        server.starttls()
    return server


def send_mail(settings: Settings, msg: MIMEMultipart) -> None:
    with _open_smtp(settings) as server:
        if settings.smtp_user and settings.smtp_password:
            server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.mail_from, list(settings.mail_to), msg.as_string())


def send_new_slots(settings: Settings, records: Sequence[SlotRecord]) -> bool:
    """Mail the new slots. Best-effort: transport errors are logged, never raised."""
    msg = build_message(settings, records)
    logger.info(
        "Sending email: subject=%r to=%s slots=%d",
        msg["Subject"],
        ", ".join(settings.mail_to),
        len(records),
    )

    if settings.debug:
        logger.info("DEBUG is on, mail not sent. Body:\n%s", render_text(records, settings.court_capacities))
        return False

    try:
        send_mail(settings, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email (%s: %s)", type(e).__name__, e)
        return False

    logger.info("Email sent to %s", ", ".join(settings.mail_to))
    return True
