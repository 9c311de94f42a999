"""Discovery and tailing of technological log files."""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import queue
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Config, load_config
from .parser import parse_line

PROCESSED_FILE = "processed_files.json"
_FINAL_PUT_TIMEOUT = 1.0


def is_new_log_record(s: str) -> bool:
    """Tell whether a line opens a new record (``mm:ss.ffffff-duration,...``)."""
    return len(s) >= 10 and s[2] == ":" and s[5] == "." and s.find("-") > 0


def _decode_line(raw: bytes) -> str:
    return raw.rstrip(b"\n").removesuffix(b"\r").decode("utf-8", errors="replace")


def find_resume_offset(path: str | os.PathLike, last_line: str) -> int:
    """Byte offset just after the first line equal to ``last_line``, else 0."""
    offset = 0
    try:
        with open(path, "rb") as fh:
            for raw in fh:
                offset += len(raw)
                if _decode_line(raw) == last_line:
                    return offset
    except OSError:
        pass
    return 0


def _walk_files(directory: str) -> Iterator[tuple[str, float]]:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from _walk_files(entry.path)
            else:
                yield entry.path, entry.stat(follow_symlinks=False).st_mtime
        except OSError:
            continue


def latest_matching_file(directory: str | os.PathLike, pattern: str) -> str | None:
    """Most recently modified file under ``directory`` whose name matches ``pattern``."""
    latest, newest = None, None
    for path, mtime in _walk_files(os.fspath(directory)):
        if fnmatch.fnmatchcase(os.path.basename(path), pattern) and (
            newest is None or mtime > newest
        ):
            latest, newest = path, mtime
    return latest


@dataclass
class WatcherConfig:
    """Service configuration, the path it was read from and the logger to use."""

    config: Config
    config_path: str = "config.yaml"
    logger: logging.Logger | None = None


class _Tail:
    """Follows one file, groups its lines into records and hands them to the watcher."""

    def __init__(self, watcher: Watcher, path: str, offset: int) -> None:
        self.path = path
        self._watcher = watcher
        self._offset = offset
        self.stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"tail:{path}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self.stopped.set()
        self._thread.join()

    def _open(self):
        try:
            fh = open(self.path, "rb")
        except OSError:
            return None
        fh.seek(self._offset)
        self._offset = 0
        return fh

    def _replaced(self, fh) -> bool:
        try:
            current = os.stat(self.path)
        except OSError:
            return False
        opened = os.fstat(fh.fileno())
        if (current.st_ino, current.st_dev) != (opened.st_ino, opened.st_dev):
            return True
        return current.st_size < fh.tell()

    def _flush(self, buffer: list[str], final: bool = False) -> None:
        if buffer:
            self._watcher._emit(self, list(buffer), final)
            buffer.clear()

    def _run(self) -> None:
        buffer: list[str] = []
        partial = b""
        last_line_at = time.monotonic()
        fh = None
        try:
            while not self.stopped.is_set():
                if fh is None:
                    fh = self._open()
                chunk = fh.read() if fh is not None else b""
                if chunk:
                    *lines, partial = (partial + chunk).split(b"\n")
                    for raw in lines:
                        text = _decode_line(raw)
                        if is_new_log_record(text):
                            self._flush(buffer)
                        buffer.append(text)
                        last_line_at = time.monotonic()
                    continue
                if fh is not None and self._replaced(fh):
                    fh.close()
                    fh, partial = None, b""
                    continue
                if buffer and time.monotonic() - last_line_at >= self._watcher.record_idle_seconds:
                    self._flush(buffer)
                self.stopped.wait(self._watcher.poll_interval)
            self._flush(buffer, final=True)
        finally:
            if fh is not None:
                fh.close()


class _ConfigHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher, target: str) -> None:
        self._watcher = watcher
        self._target = os.path.normcase(target)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in ("created", "modified", "moved"):
            return
        changed = event.dest_path if event.event_type == "moved" else event.src_path
        changed = os.fsdecode(changed or "")
        if changed and os.path.normcase(os.path.abspath(changed)) == self._target:
            self._watcher.logger.info(
                "Config changed, reloading", extra={"fields": {"path": self._target}}
            )
            self._watcher.reload_config()


class _DirectoryHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher) -> None:
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        path = os.fsdecode(event.src_path)
        if not event.is_directory and os.path.splitext(path)[1] == ".log":
            self._watcher.start_tail(path)


class Watcher:
    """Tails the newest log file of every configured directory and any new ones."""

    record_idle_seconds = 2.0
    poll_interval = 0.1

    def __init__(
        self,
        cfg: WatcherConfig,
        entries: queue.Queue,
        processed_path: str | os.PathLike = PROCESSED_FILE,
    ) -> None:
        self.cfg = cfg
        self.entries = entries
        self.processed_path = Path(processed_path)
        self.logger = cfg.logger or logging.getLogger(__name__)
        self.processed: dict[str, str] = {}
        self._tails: dict[str, _Tail] = {}
        self._lock = threading.Lock()
        self.load_processed()

    def load_processed(self) -> None:
        """Merge the saved last-line-per-file map, ignoring a missing or bad file."""
        try:
            data = json.loads(self.processed_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return
        if isinstance(data, dict):
            with self._lock:
                self.processed.update({k: v for k, v in data.items() if isinstance(v, str)})

    def save_processed(self) -> None:
        """Write the processed map atomically through a temporary file."""
        with self._lock:
            text = json.dumps(self.processed, ensure_ascii=False, sort_keys=True)
        tmp = self.processed_path.with_name(self.processed_path.name + ".tmp")
        try:
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.processed_path)
        except OSError as exc:
            self.logger.error(
                "Failed to write processed file", extra={"fields": {"error": str(exc)}}
            )

    def scan_initial_files(self) -> list[str]:
        """Start tailing the newest matching file of each directory; return those started."""
        with self._lock:
            config = self.cfg.config
        started = []
        for directory in config.log_directory_map.values():
            latest = latest_matching_file(directory, config.file_pattern)
            if latest is not None and self.start_tail(latest):
                started.append(os.path.abspath(latest))
        return started

    def reload_config(self) -> bool:
        """Re-read the configuration file; keep the old one if that fails."""
        try:
            new_config = load_config(self.cfg.config_path)
        except (OSError, ValueError) as exc:
            self.logger.error("Failed to load config", extra={"fields": {"error": str(exc)}})
            return False
        with self._lock:
            self.cfg.config = new_config
        return True

    def start_tail(self, path: str | os.PathLike) -> bool:
        """Follow ``path`` from just after its last processed line; False if already followed."""
        path = os.path.abspath(os.fspath(path))
        with self._lock:
            if path in self._tails:
                return False
            last = self.processed.get(path)
            tail = _Tail(self, path, find_resume_offset(path, last) if last is not None else 0)
            self._tails[path] = tail
            tail.start()
        self.logger.info("Started tailing file", extra={"fields": {"file": path}})
        return True

    def stop_tail(self, path: str | os.PathLike) -> bool:
        """Stop following ``path`` and save progress; False if it was not followed."""
        with self._lock:
            tail = self._tails.pop(os.path.abspath(os.fspath(path)), None)
        if tail is None:
            return False
        tail.stop()
        self.save_processed()
        return True

    def _emit(self, tail: _Tail, lines: list[str], final: bool) -> None:
        entry = parse_line(lines)
        entry.timestamp = os.path.basename(tail.path)
        while True:
            try:
                timeout = _FINAL_PUT_TIMEOUT if final else self.poll_interval
                self.entries.put(entry, timeout=timeout)
                break
            except queue.Full:
                if final:
                    self.logger.warning(
                        "Dropped record: queue is full", extra={"fields": {"file": tail.path}}
                    )
                    return
                final = tail.stopped.is_set()
        with self._lock:
            self.processed[tail.path] = lines[-1]

    def _observe(self, handler: FileSystemEventHandler, directories: list[str], recursive: bool):
        observer = Observer()
        observer.start()
        for directory in directories:
            try:
                observer.schedule(handler, directory, recursive=recursive)
            except OSError as exc:
                self.logger.error(
                    "Failed to watch directory",
                    extra={"fields": {"path": directory, "error": str(exc)}},
                )
        return observer

    def start(self, stop_event: threading.Event) -> None:
        """Run until ``stop_event`` is set, then stop every tail and save progress."""
        config_path = os.path.abspath(self.cfg.config_path)
        observers = [
            self._observe(_ConfigHandler(self, config_path), [os.path.dirname(config_path)], False)
        ]
        self.logger.info("Watching config file", extra={"fields": {"path": self.cfg.config_path}})
        self.scan_initial_files()
        with self._lock:
            directories = list(self.cfg.config.log_directory_map.values())
        observers.append(self._observe(_DirectoryHandler(self), directories, True))
        self.logger.info("Watching log directories")

        stop_event.wait()
        self.logger.info("Watcher stopped on shutdown signal")
        for observer in observers:
            observer.stop()
            observer.join()
        with self._lock:
            tails = list(self._tails.values())
            self._tails.clear()
        for tail in tails:
            tail.stop()
        self.save_processed()