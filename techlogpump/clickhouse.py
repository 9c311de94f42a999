"""ClickHouse client that writes tech-log rows through the HTTP interface."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

import httpx

from .config import ClickHouseConfig
from .models import TECH_LOG_COLUMNS, LogEntry, TechLogRow
from .transform import TransformError, transform_log_entry

_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


class ClickHouseError(RuntimeError):
    """Raised when a batch cannot be prepared or delivered to ClickHouse."""


def _base_url(address: str) -> str:
    address = address.strip()
    if "://" in address:
        return address
    return f"http://{address or 'localhost:8123'}"


def _insert_query(table: str) -> str:
    return f"INSERT INTO {table} ({', '.join(TECH_LOG_COLUMNS)}) FORMAT JSONEachRow"


def _row_json(row: TechLogRow) -> str:
    return json.dumps(dict(zip(TECH_LOG_COLUMNS, row.as_tuple())), ensure_ascii=False)


class ClickHouseClient:
    """Routes entries to tables by Component and inserts them batch by batch."""

    def __init__(
        self,
        cfg: ClickHouseConfig,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.default_table = cfg.default_table
        self.table_map = dict(cfg.table_map)
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._database = cfg.database
        headers = {"X-ClickHouse-User": cfg.username or "default"}
        if cfg.password:
            headers["X-ClickHouse-Key"] = cfg.password
        self._http = httpx.Client(
            base_url=_base_url(cfg.address),
            headers=headers,
            timeout=_TIMEOUT,
            transport=transport,
        )

    def table_for(self, component: str) -> str:
        """Return the table that rows of ``component`` are written to."""
        return self.table_map.get(component, self.default_table)

    def group_by_table(self, entries: Iterable[LogEntry]) -> dict[str, list[LogEntry]]:
        """Group entries by destination table, keeping their order."""
        grouped: dict[str, list[LogEntry]] = {}
        for entry in entries:
            grouped.setdefault(self.table_for(entry.component), []).append(entry)
        return grouped

    def _rows(self, group: list[LogEntry]) -> list[TechLogRow]:
        rows = []
        for entry in group:
            try:
                rows.append(transform_log_entry(entry))
            except TransformError as exc:
                self.logger.error(
                    "transform", extra={"fields": {"error": str(exc), "entry": repr(entry)}}
                )
                raise ClickHouseError(f"transform: {exc}") from exc
        return rows

    def _send(self, table: str, rows: list[TechLogRow]) -> None:
        params = {"query": _insert_query(table)}
        if self._database:
            params["database"] = self._database
        body = "".join(_row_json(row) + "\n" for row in rows).encode("utf-8")
        try:
            response = self._http.post("/", params=params, content=body)
        except httpx.HTTPError as exc:
            self.logger.error(
                "send batch", extra={"fields": {"error": str(exc), "table": table}}
            )
            raise ClickHouseError(f"send batch: {exc}") from exc
        if response.is_error:
            message = f"HTTP {response.status_code}: {response.text.strip()}"
            self.logger.error(
                "send batch", extra={"fields": {"error": message, "table": table}}
            )
            raise ClickHouseError(f"send batch: {message}")

    def insert_tech_log_batch(self, entries: Iterable[LogEntry]) -> None:
        """Transform entries into rows and insert one batch per table."""
        if self._http.is_closed:
            raise ClickHouseError("prepare batch: client is closed")
        for table, group in self.group_by_table(entries).items():
            self._send(table, self._rows(group))

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._http.close()

    def __enter__(self) -> ClickHouseClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()