"""Service entry point: tail technological logs and pump them into ClickHouse."""

from __future__ import annotations

import argparse
import queue
import signal
import threading
import time

from .batch import Batcher
from .clickhouse import ClickHouseClient
from .config import load_config
from .logger import init_logging
from .watcher import Watcher, WatcherConfig


def main(argv=None) -> int:
    """Run the service until SIGINT or SIGTERM; return the exit status."""
    parser = argparse.ArgumentParser(
        prog="techlogpump", description="Ship technological log records to ClickHouse."
    )
    parser.add_argument("-c", "--config", default="config.yaml", help="YAML config file")
    args = parser.parse_args(argv)

    log = init_logging().getChild("main")
    log.info("Service is starting")
    try:
        cfg = load_config(args.config)
    except (OSError, ValueError) as exc:
        log.critical("Failed to load config", extra={"fields": {"error": str(exc)}})
        return 1
    log.info("Config loaded")

    stop = threading.Event()
    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, lambda signum, frame: stop.set())
        except (ValueError, OSError):
            continue
    try:
        with ClickHouseClient(cfg.clickhouse, log.getChild("clickhouse")) as client:
            entries: queue.Queue = queue.Queue(maxsize=max(cfg.batch_size * 2, 0))
            watcher = Watcher(
                WatcherConfig(config=cfg, config_path=args.config, logger=log.getChild("watcher")),
                entries,
            )
            batcher = Batcher(cfg.batch_size, cfg.batch_interval, log.getChild("batcher"), client)
            batcher_stop = threading.Event()
            watcher_thread = threading.Thread(target=watcher.start, args=(stop,), name="watcher")
            batcher_thread = threading.Thread(
                target=batcher.run, args=(entries, batcher_stop), name="batcher"
            )
            watcher_thread.start()
            batcher_thread.start()

            while not stop.wait(0.2):
                pass
            log.info("Stop signal received, shutting down")
            watcher_thread.join()
            while not entries.empty() and batcher_thread.is_alive():
                time.sleep(0.05)
            batcher_stop.set()
            batcher_thread.join()
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
    log.info("Service stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())