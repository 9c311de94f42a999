import json
import os
import queue
import threading
import time

import pytest

from techlogpump.config import Config
from techlogpump.watcher import (
    Watcher,
    WatcherConfig,
    find_resume_offset,
    is_new_log_record,
    latest_matching_file,
)

RECORD1 = (
    "00:03.310025-1327862,DBMSSQL,4,process=rphost,p:processName=base1,"
    "Usr=Admin,Sql='SELECT 1',Rows=1,Context='Form.Open'"
)
RECORD2 = [
    "00:04.100000-15,SDBL,3,process=rphost,Usr=Admin,Sql='SELECT",
    "  2',Context='Module'",
]


def make_watcher(tmp_path, entries, config=None, config_path=None):
    cfg = WatcherConfig(
        config=config or Config(),
        config_path=str(config_path or tmp_path / "config.yaml"),
    )
    watcher = Watcher(cfg, entries, processed_path=tmp_path / "processed.json")
    watcher.record_idle_seconds = 0.2
    watcher.poll_interval = 0.02
    return watcher


@pytest.mark.parametrize(
    "line, expected",
    [
        ("00:03.310025-1327862,DBMSSQL,4", True),
        (RECORD2[0], True),
        ("00:03.3100", False),
        ("short", False),
        ("00:03.310025,DBMSSQL,4", False),
        ("-0:03.310025,DBMSSQL", False),
        (RECORD2[1], False),
    ],
)
def test_is_new_log_record(line, expected):
    assert is_new_log_record(line) is expected


def test_find_resume_offset(tmp_path):
    content = "first\r\nsecond\nthird\n"
    path = tmp_path / "a.log"
    path.write_bytes(content.encode())
    assert find_resume_offset(path, "second") == len("first\r\nsecond\n")
    assert find_resume_offset(path, "first") == len("first\r\n")
    assert find_resume_offset(path, "absent") == 0
    assert find_resume_offset(tmp_path / "missing.log", "first") == 0


def test_latest_matching_file(tmp_path):
    sub = tmp_path / "rphost_1"
    sub.mkdir()
    old = tmp_path / "25052606.log"
    new = sub / "25052607.log"
    other = tmp_path / "notes.txt"
    for path, stamp in ((old, 1000), (new, 2000), (other, 3000)):
        path.write_text("x")
        os.utime(path, (stamp, stamp))
    assert latest_matching_file(tmp_path, "*.log") == str(new)
    assert latest_matching_file(tmp_path, "*.txt") == str(other)
    assert latest_matching_file(tmp_path, "*.xml") is None
    assert latest_matching_file(tmp_path / "missing", "*.log") is None


def test_processed_round_trip(tmp_path):
    watcher = make_watcher(tmp_path, queue.Queue())
    watcher.processed["/logs/a.log"] = RECORD1
    watcher.save_processed()
    assert json.loads((tmp_path / "processed.json").read_text()) == {"/logs/a.log": RECORD1}
    assert not (tmp_path / "processed.json.tmp").exists()
    again = make_watcher(tmp_path, queue.Queue())
    assert again.processed == {"/logs/a.log": RECORD1}


def test_load_processed_ignores_bad_file(tmp_path):
    (tmp_path / "processed.json").write_text("{not json")
    watcher = make_watcher(tmp_path, queue.Queue())
    assert watcher.processed == {}


def test_start_tail_emits_records_and_stop_saves_progress(tmp_path):
    log = tmp_path / "25052607.log"
    log.write_text("\n".join([RECORD1, *RECORD2]) + "\n")
    entries = queue.Queue()
    watcher = make_watcher(tmp_path, entries)
    assert watcher.start_tail(str(log)) is True
    assert watcher.start_tail(str(log)) is False
    first = entries.get(timeout=5)
    second = entries.get(timeout=5)
    assert watcher.stop_tail(str(log)) is True
    assert first.timestamp == "25052607.log"
    assert first.component == "DBMSSQL"
    assert first.sql == "SELECT 1"
    assert second.sql == "SELECT\n  2"
    assert second.timestamp == "25052607.log"
    saved = json.loads((tmp_path / "processed.json").read_text())
    assert saved[str(log)] == RECORD2[-1]


def test_start_tail_resumes_after_processed_line(tmp_path):
    log = tmp_path / "25052607.log"
    log.write_text("\n".join([RECORD1, *RECORD2]) + "\n")
    (tmp_path / "processed.json").write_text(json.dumps({str(log): RECORD1}))
    entries = queue.Queue()
    watcher = make_watcher(tmp_path, entries)
    watcher.start_tail(log)
    entry = entries.get(timeout=5)
    watcher.stop_tail(log)
    assert entry.sql == "SELECT\n  2"
    assert entries.empty()


def test_tail_waits_for_missing_file_and_follows_appends(tmp_path):
    log = tmp_path / "25052608.log"
    entries = queue.Queue()
    watcher = make_watcher(tmp_path, entries)
    watcher.start_tail(log)
    time.sleep(0.1)
    with open(log, "w", encoding="utf-8") as fh:
        fh.write(RECORD1 + "\n")
    entry = entries.get(timeout=5)
    with open(log, "a", encoding="utf-8") as fh:
        fh.write("\n".join(RECORD2) + "\n")
    later = entries.get(timeout=5)
    watcher.stop_tail(log)
    assert entry.sql == "SELECT 1"
    assert later.sql == "SELECT\n  2"


def test_stop_tail_of_unknown_file(tmp_path):
    watcher = make_watcher(tmp_path, queue.Queue())
    assert watcher.stop_tail(tmp_path / "none.log") is False


def test_reload_config(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("BatchSize: 7\nFilePattern: '*.log'\n")
    watcher = make_watcher(tmp_path, queue.Queue(), config_path=config_path)
    assert watcher.reload_config() is True
    assert watcher.cfg.config.batch_size == 7
    config_path.write_text("BatchSize: [1\n")
    assert watcher.reload_config() is False
    assert watcher.cfg.config.batch_size == 7


def test_scan_initial_files_tails_newest_per_directory(tmp_path):
    first_dir = tmp_path / "one"
    second_dir = tmp_path / "two"
    first_dir.mkdir()
    second_dir.mkdir()
    old = first_dir / "25052606.log"
    new = first_dir / "25052607.log"
    only = second_dir / "25052609.log"
    for path, stamp in ((old, 1000), (new, 2000), (only, 1500)):
        path.write_text("")
        os.utime(path, (stamp, stamp))
    config = Config(
        log_directory_map={"a": str(first_dir), "b": str(second_dir)},
        file_pattern="*.log",
    )
    watcher = make_watcher(tmp_path, queue.Queue(), config=config)
    started = watcher.scan_initial_files()
    for path in started:
        watcher.stop_tail(path)
    assert sorted(started) == sorted([str(new), str(only)])


def test_start_picks_up_new_log_files(tmp_path):
    logs = tmp_path / "logs"
    sub = logs / "rphost_1"
    sub.mkdir(parents=True)
    config = Config(log_directory_map={"main": str(logs)}, file_pattern="*.log")
    entries = queue.Queue()
    watcher = make_watcher(tmp_path, entries, config=config)
    stop = threading.Event()
    thread = threading.Thread(target=watcher.start, args=(stop,))
    thread.start()
    try:
        time.sleep(0.5)
        new_file = sub / "25052608.log"
        new_file.write_text(RECORD1 + "\n")
        entry = entries.get(timeout=10)
    finally:
        stop.set()
        thread.join(10)
    assert entry.timestamp == "25052608.log"
    assert entry.sql == "SELECT 1"
    saved = json.loads((tmp_path / "processed.json").read_text())
    assert saved[str(new_file)] == RECORD1