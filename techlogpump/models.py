"""Record types shared by the parser, the transformer and the ClickHouse client."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime

TECH_LOG_COLUMNS = (
    "EventDate",
    "EventTime",
    "EventType",
    "Duration",
    "User",
    "InfoBase",
    "SessionID",
    "ClientID",
    "ConnectionID",
    "ExceptionType",
    "ErrorText",
    "SQLText",
    "Rows",
    "RowsAffected",
    "Context",
    "ProcessName",
)


@dataclass
class LogEntry:
    """One technological log record as parsed from the log text.

    ``timestamp`` holds the log file name (such as ``25052607.log``) and
    ``log_timestamp`` the time stamp that opens the record itself.
    """

    timestamp: str = ""
    log_timestamp: str = ""
    component: str = ""
    severity: int = 0
    level: str = ""
    process: str = ""
    process_name: str = ""
    os_thread: int = 0
    client_id: int = 0
    application_name: str = ""
    computer_name: str = ""
    connect_id: int = 0
    session_id: int = 0
    user: str = ""
    dbms: str = ""
    database: str = ""
    trans: int = 0
    dbpid: int = 0
    sql: str = ""
    rows: int = 0
    rows_affected: int = 0
    context: str = ""
    event_type: str = ""
    file: str = ""
    inserted_at: datetime = field(default_factory=datetime.now)


@dataclass
class TechLogRow:
    """One row of the ClickHouse tech-log table, fields in column order."""

    event_date: str = ""
    event_time: str = ""
    event_type: str = ""
    duration: int = 0
    user: str = ""
    info_base: str = ""
    session_id: int = 0
    client_id: int = 0
    connection_id: int = 0
    exception_type: str | None = None
    error_text: str | None = None
    sql_text: str | None = None
    rows: int | None = None
    rows_affected: int | None = None
    context: str | None = None
    process_name: str = ""

    def as_tuple(self) -> tuple:
        """Return the values in the order of ``TECH_LOG_COLUMNS``."""
        return tuple(getattr(self, f.name) for f in fields(self))