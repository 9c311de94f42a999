"""Accumulation of log entries into batches sent to ClickHouse."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any

from .clickhouse import ClickHouseError

_POLL_SECONDS = 0.1


class Batcher:
    """Sends entries when ``batch_size`` is reached or ``batch_interval`` seconds pass."""

    def __init__(
        self,
        batch_size: int,
        batch_interval: float,
        logger: logging.Logger | None,
        client: Any,
    ) -> None:
        self.batch_size = batch_size
        self.batch_interval = float(batch_interval)
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.client = client

    def _flush(self, batch: list, reason: str) -> None:
        if not batch:
            return
        count = len(batch)
        self.logger.info(
            "Sending batch to ClickHouse",
            extra={"fields": {"count": count, "reason": reason}},
        )
        try:
            self.client.insert_tech_log_batch(list(batch))
        except ClickHouseError as exc:
            self.logger.error(
                "Failed to send batch to ClickHouse", extra={"fields": {"error": str(exc)}}
            )
        else:
            self.logger.info("Batch sent", extra={"fields": {"count": count}})
        batch.clear()

    def run(self, entries: queue.Queue, stop_event: threading.Event) -> None:
        """Consume ``entries`` until ``stop_event`` is set, then flush what remains."""
        batch: list = []
        deadline = time.monotonic() + self.batch_interval
        while True:
            if stop_event.is_set():
                self._flush(batch, "graceful shutdown")
                return
            remaining = deadline - time.monotonic()
            try:
                entry = entries.get(timeout=max(0.0, min(remaining, _POLL_SECONDS)))
            except queue.Empty:
                if time.monotonic() >= deadline:
                    self._flush(batch, "interval")
                    deadline = time.monotonic() + self.batch_interval
                continue
            batch.append(entry)
            if len(batch) >= self.batch_size:
                self._flush(batch, "batch size reached")
                deadline = time.monotonic() + self.batch_interval