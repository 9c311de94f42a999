# techlogpump

`techlogpump` is a small service. It follows the technological log of a
1C:Enterprise server, splits the log into records and parses each record.
It then sends the results to ClickHouse in batches through the ClickHouse
HTTP interface.

## What it does

- **Picks a starting file.** In every directory listed in `LogDirectoryMap`,
  subdirectories included, it takes the most recently modified file whose name
  matches `FilePattern`. It follows that file as it grows. If the file is
  truncated or replaced, it opens it again.
- **Watches for new files.** Whenever a new `.log` file is created in those
  directories, it starts following that file too.
- **Builds records.** A line that starts with `mm:ss.ffffff-` opens a new
  record. Lines that follow, such as multi-line SQL text or `Context='...'`,
  belong to the open record. A record is complete when the next one starts or
  after two seconds with no new lines.
- **Remembers its position.** For each file it keeps the last line it handed
  on, in `processed_files.json` in the working directory. The file is written
  when the service stops. After a restart it carries on just after that line.
- **Routes rows to tables.** The record's component selects the table through
  `ClickHouse.TableMap`. A component with no entry goes to `DefaultTable`.
- **Sends batches.** A batch is sent when it holds `BatchSize` entries or when
  `BatchInterval` seconds have passed, whichever comes first. Entries still
  waiting are sent at shutdown.
- **Reloads its configuration.** It re-reads `config.yaml` when the file is
  created, modified or moved into place. If the new file cannot be loaded, the
  previous configuration stays in effect.

## Installation

```
pip install .
```

For the test suite, install the `test` extra:

```
pip install .[test]
```

## Configuration

By default the service reads `config.yaml` from the working directory:

```yaml
LogDirectoryMap:
  main: /var/log/1c/techlog
FilePattern: "*.log"
BatchSize: 1000
BatchInterval: 5
ClickHouse:
  Address: localhost:8123
  Username: default
  Password: password
  Database: techlog
  DefaultTable: tech_log
  TableMap:
    DBMSSQL: tech_log_sql
    EXCP: tech_log_excp
```

How the loader treats the file:

- It removes a leading UTF-8 byte-order mark.
- It replaces tabs with two spaces.
- It ignores unknown keys.
- It reads missing values as empty strings, zero or empty mappings.
- It raises `ValueError` for invalid YAML and for values of the wrong type.

How the ClickHouse settings are used:

- `Address` may be `host:port` or a full `http://` or `https://` URL. If it is
  empty, `localhost:8123` is used.
- `Username` and `Password` are sent as ClickHouse HTTP headers. If
  `Username` is empty, `default` is sent.
- `Database` is passed as the `database` query parameter.

Each target table needs these columns. Rows are inserted with
`FORMAT JSONEachRow`.

- `EventDate`
- `EventTime`
- `EventType`
- `Duration`
- `User`
- `InfoBase`
- `SessionID`
- `ClientID`
- `ConnectionID`
- `ExceptionType`
- `ErrorText`
- `SQLText`
- `Rows`
- `RowsAffected`
- `Context`
- `ProcessName`

The date and the hour of every event come from the log file name. A file
named `25052607.log` holds events of 2025-05-26, hour 07.

## Running

```
techlogpump
techlogpump --config /etc/techlogpump/config.yaml
```

The service logs to standard output. Each line holds the time, a coloured
level, the logger name, the source location, the message and any structured
fields as JSON, separated by tabs.

It runs until it receives SIGINT or SIGTERM. On stop it does the following, in
order:

1. Stops following files.
2. Waits for queued entries to be taken.
3. Sends the pending batch.
4. Saves its progress.

The exit status is 1 if the configuration cannot be loaded at startup, and
0 otherwise.

## Using it as a library

The parsing and transformation steps can be called directly:

```python
from techlogpump.parser import parse_line
from techlogpump.transform import transform_log_entry

entry = parse_line(["00:03.310025-1327,DBMSSQL,4,Usr=admin,Sql='SELECT 1'"])
entry.timestamp = "25052607.log"
row = transform_log_entry(entry)
print(row.event_time, row.duration, row.sql_text)
# 2025-05-26 07:00:03.310025 1327 SELECT 1
```

Modules:

- `techlogpump.parser`: `parse_line`, `parse_log_record`,
  `parse_simple_header`, `extract_sql`, `extract_context`.
- `techlogpump.transform`: `transform_log_entry`. It raises `TransformError`
  when the file name or the record time stamp cannot be read.
- `techlogpump.models`: the `LogEntry` and `TechLogRow` dataclasses and
  `TECH_LOG_COLUMNS`.
- `techlogpump.config`: `load_config`, `parse_config`, `Config`,
  `ClickHouseConfig`.
- `techlogpump.clickhouse`: `ClickHouseClient`. It is a context manager and
  offers `table_for`, `group_by_table`, `insert_tech_log_batch` and `close`.
  It raises `ClickHouseError`. An `httpx` transport can be passed in for
  testing.
- `techlogpump.batch`: `Batcher`. Its `run(entries, stop_event)` consumes a
  `queue.Queue`.
- `techlogpump.watcher`: `Watcher`, `WatcherConfig`, `is_new_log_record`,
  `find_resume_offset`, `latest_matching_file`.
- `techlogpump.logconfig`: dataclasses and the parsers `parse_log`,
  `parse_onec_log_cfg` and `parse_simple_log_cfg`, for the XML structures of
  log configuration files (`logcfg.xml`).
- `techlogpump.logger`: `init_logging` and `ColorLevelFormatter`.

## What it does not do

- **Only the HTTP interface.** It talks to ClickHouse only over HTTP. The
  native protocol and compression are not supported. The `Protocol` setting is
  read but has no effect.
- **No retries.** A batch that fails to transform or to send is logged and
  dropped.
- **Deleted files are not dropped.** Files that are deleted are not stopped
  automatically. `Watcher.stop_tail` does this when called directly.
- **Older files are not read at startup.** At startup only the newest
  matching file of each directory is followed.
- **XML settings are not used by the service.** The `logconfig` parsers are
  not used by the running service. Its settings come from `config.yaml` alone.
- **No table management.** It does not create ClickHouse tables.