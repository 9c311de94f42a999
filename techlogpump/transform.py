"""Conversion of parsed log entries into ClickHouse rows."""

from __future__ import annotations

import re
from datetime import datetime

from .models import LogEntry, TechLogRow

_HOUR_RE = re.compile(r"[+-]?[0-9]+")
_UINT_RE = re.compile(r"[0-9]+")
_EVENT_TIME_RE = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2}) ([0-9]{1,2}):([0-9]{2}):([0-9]{2})"
    r"(?:[.,]([0-9]+))?"
)
_UINT32_MAX = (1 << 32) - 1


class TransformError(ValueError):
    """Raised when a log entry cannot be turned into a row."""


def _parse_event_time(text: str) -> datetime:
    match = _EVENT_TIME_RE.fullmatch(text)
    if match is None:
        raise TransformError(f"failed to parse event time: {text!r}")
    year, month, day, hour, minute, second, fraction = match.groups()
    micro = int((fraction or "").ljust(6, "0")[:6])
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro
        )
    except ValueError as exc:
        raise TransformError(f"failed to parse event time: {text!r}: {exc}") from exc


def _format_event_time(moment: datetime) -> str:
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    return text


def _duration(parts: list[str]) -> int:
    if len(parts) < 2 or not _UINT_RE.fullmatch(parts[1]):
        return 0
    value = int(parts[1])
    return value if value <= _UINT32_MAX else 0


def transform_log_entry(entry: LogEntry) -> TechLogRow:
    """Build a TechLogRow, taking date and hour from the log file name.

    A file named ``25052607.log`` holds events of 2025-05-26, hour 07.
    """
    ts = entry.timestamp
    if len(ts) < 6:
        raise TransformError(f"invalid timestamp: {ts}")
    event_date = f"20{ts[0:2]}-{ts[2:4]}-{ts[4:6]}"
    hour_text = ts[6:8]
    if len(hour_text) < 2 or not _HOUR_RE.fullmatch(hour_text):
        raise TransformError(f"invalid hour in timestamp: {ts!r}")
    hour = int(hour_text)

    raw_parts = entry.log_timestamp.removeprefix("\ufeff").split("-")
    raw_time = raw_parts[0]
    if len(raw_time.split(":", 1)) != 2:
        raise TransformError(f"invalid log timestamp: {entry.log_timestamp}")

    event_time = _parse_event_time(f"{event_date} {hour:02d}:{raw_time}")

    return TechLogRow(
        event_date=event_date,
        event_time=_format_event_time(event_time),
        event_type=entry.component,
        duration=_duration(raw_parts),
        user=entry.user,
        info_base=entry.database,
        session_id=entry.session_id & _UINT32_MAX,
        client_id=entry.client_id,
        connection_id=entry.connect_id,
        exception_type=None,
        error_text=None,
        sql_text=entry.sql,
        rows=entry.rows,
        rows_affected=entry.rows_affected,
        context=entry.context,
        process_name=entry.process_name,
    )