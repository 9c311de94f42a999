import json

import httpx
import pytest

from techlogpump.clickhouse import ClickHouseClient, ClickHouseError
from techlogpump.config import ClickHouseConfig
from techlogpump.models import TECH_LOG_COLUMNS, LogEntry
from techlogpump.transform import transform_log_entry


def _entry(component="DBMSSQL", user="admin"):
    return LogEntry(
        timestamp="25052607.log",
        log_timestamp="00:03.310025-1327862",
        component=component,
        user=user,
        sql="SELECT 1",
    )


def _make(handler=None, **overrides):
    requests = []

    def default(request):
        requests.append(request)
        return httpx.Response(200, text="")

    password = "password"
    cfg = ClickHouseConfig(
        address="localhost:8123",
        username="loader",
        password=password,
        database="techlog",
        default_table="tech_log",
        protocol="http",
        table_map={"EXCP": "exceptions"},
    )
    for key, value in overrides.items():
        setattr(cfg, key, value)
    transport = httpx.MockTransport(handler or default)
    return ClickHouseClient(cfg, None, transport), requests


def _rows(request):
    return [json.loads(line) for line in request.content.decode().splitlines()]


def test_table_for_uses_map_then_default():
    client, _ = _make()
    assert client.table_for("EXCP") == "exceptions"
    assert client.table_for("DBMSSQL") == "tech_log"


def test_group_by_table_keeps_order():
    client, _ = _make()
    a, b, c = _entry("DBMSSQL", "a"), _entry("EXCP", "b"), _entry("CALL", "c")
    grouped = client.group_by_table([a, b, c])
    assert list(grouped) == ["tech_log", "exceptions"]
    assert grouped["tech_log"] == [a, c]
    assert grouped["exceptions"] == [b]


def test_insert_sends_rows_as_json_each_row():
    client, requests = _make()
    entry = _entry()
    client.insert_tech_log_batch([entry])
    assert len(requests) == 1
    request = requests[0]
    query = request.url.params["query"]
    assert query.startswith("INSERT INTO tech_log (")
    assert query.endswith("FORMAT JSONEachRow")
    assert all(column in query for column in TECH_LOG_COLUMNS)
    assert request.url.params["database"] == "techlog"
    expected = dict(zip(TECH_LOG_COLUMNS, transform_log_entry(entry).as_tuple()))
    assert _rows(request) == [expected]


def test_insert_one_request_per_table():
    client, requests = _make()
    client.insert_tech_log_batch([_entry("DBMSSQL"), _entry("EXCP"), _entry("DBMSSQL")])
    tables = sorted(r.url.params["query"].split()[2] for r in requests)
    assert tables == ["exceptions", "tech_log"]
    sizes = {r.url.params["query"].split()[2]: len(_rows(r)) for r in requests}
    assert sizes == {"tech_log": 2, "exceptions": 1}


def test_credentials_go_in_headers():
    client, requests = _make()
    client.insert_tech_log_batch([_entry()])
    password = "password"
    assert requests[0].headers["X-ClickHouse-User"] == "loader"
    assert requests[0].headers["X-ClickHouse-Key"] == password


def test_empty_batch_sends_nothing():
    client, requests = _make()
    client.insert_tech_log_batch([])
    assert requests == []


def test_server_error_raises():
    def failing(request):
        return httpx.Response(500, text="Code: 60. Table does not exist")

    client, _ = _make(failing)
    with pytest.raises(ClickHouseError, match="send batch"):
        client.insert_tech_log_batch([_entry()])


def test_transport_error_raises():
    def broken(request):
        raise httpx.ConnectError("refused", request=request)

    client, _ = _make(broken)
    with pytest.raises(ClickHouseError, match="send batch"):
        client.insert_tech_log_batch([_entry()])


def test_transform_error_prevents_request():
    client, requests = _make()
    bad = _entry()
    bad.timestamp = "25"
    with pytest.raises(ClickHouseError, match="transform"):
        client.insert_tech_log_batch([bad])
    assert requests == []


def test_closed_client_raises():
    client, requests = _make()
    with client:
        client.insert_tech_log_batch([_entry()])
    with pytest.raises(ClickHouseError):
        client.insert_tech_log_batch([_entry()])
    assert len(requests) == 1