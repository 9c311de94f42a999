"""Parsing of technological log records into LogEntry values."""

from __future__ import annotations

import re

from .models import LogEntry

_CONTEXT_MARK = ",Context='"
_UINT_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"[+-]?[0-9]+")


def extract_context(s: str) -> str:
    """Return the (possibly multi-line) text of ``,Context='...'``."""
    idx = s.find(_CONTEXT_MARK)
    if idx == -1:
        return ""
    ctx = s[idx + len(_CONTEXT_MARK):]
    end = ctx.rfind("'")
    return ctx if end == -1 else ctx[:end]


def extract_sql(s: str, quote: str) -> tuple[str, str]:
    """Split ``s`` at the first unescaped ``quote``: (sql, rest after quote)."""
    in_escape = False
    for pos, char in enumerate(s):
        if char == quote and not in_escape:
            return s[:pos], s[pos + 1:]
        in_escape = char == "\\" and not in_escape
    return s, ""


def parse_simple_header(header_raw: str) -> dict[str, str]:
    """Parse the comma-separated header: time, component, severity, key=value..."""
    parts = header_raw.split(",")
    result: dict[str, str] = {}
    for key, part in zip(("LogTimestamp", "Component", "Severity"), parts):
        result[key] = part.strip()
    for part in parts[3:]:
        eq = part.find("=")
        if eq > 0:
            result[part[:eq].strip()] = part[eq + 1:].strip(" '")
    return result


def parse_log_record(raw: str) -> tuple[dict[str, str], str, str]:
    """Split raw record text into header fields, SQL text and context."""
    sql_idx = raw.find("Sql=")
    if sql_idx == -1:
        return parse_simple_header(raw), "", extract_context(raw)
    header = parse_simple_header(raw[:sql_idx])
    rest = raw[sql_idx + 4:]
    if not rest:
        return header, "", ""
    sql_text, after = extract_sql(rest[1:], rest[0])
    return header, sql_text, extract_context(after)


def _uint(text: str, bits: int) -> int:
    if not _UINT_RE.fullmatch(text):
        return 0
    return min(int(text), (1 << bits) - 1)


def _int(text: str, bits: int) -> int:
    if not _INT_RE.fullmatch(text):
        return 0
    limit = 1 << (bits - 1)
    return max(-limit, min(int(text), limit - 1))


def parse_line(lines: list[str]) -> LogEntry:
    """Parse the lines of one log record (joined with newlines) into a LogEntry."""
    header, sql, context = parse_log_record("\n".join(lines))
    get = header.get
    return LogEntry(
        timestamp=get("Timestamp", ""),
        log_timestamp=get("LogTimestamp", ""),
        component=get("Component", ""),
        severity=_uint(get("Severity", ""), 8),
        level=get("level", ""),
        process=get("process", ""),
        process_name=get("p:processName", ""),
        os_thread=_uint(get("OSThread", ""), 32),
        client_id=_uint(get("t:clientID", ""), 32),
        application_name=get("t:applicationName", ""),
        computer_name=get("t:computerName", ""),
        connect_id=_uint(get("t:connectID", ""), 32),
        session_id=_uint(get("SessionID", ""), 64),
        user=get("Usr", ""),
        dbms=get("DBMS", ""),
        database=get("DataBase", ""),
        trans=_uint(get("Trans", ""), 32),
        dbpid=_uint(get("dbpid", ""), 32),
        sql=sql,
        rows=_int(get("Rows", ""), 32),
        rows_affected=_int(get("RowsAffected", ""), 32),
        context=context,
        event_type=get("Event", ""),
        file=get("File", ""),
    )