import pytest

from techlogpump.config import ClickHouseConfig, Config, load_config, parse_config

YAML_TEXT = """LogDirectoryMap:
  main: /var/log/1c
FilePattern: "*.log"
BatchSize: 500
BatchInterval: 5
ClickHouse:
  Address: localhost:9000
  Username: default
  Password: password
  Database: techlog
  DefaultTable: tech_log
  Protocol: http
  TableMap:
    DBMSSQL: tech_log_sql
Unknown: 1
"""


def test_parse_config_reads_all_fields():
    cfg = parse_config(YAML_TEXT)
    assert cfg.log_directory_map == {"main": "/var/log/1c"}
    assert cfg.file_pattern == "*.log"
    assert cfg.batch_size == 500
    assert cfg.batch_interval == 5
    assert cfg.clickhouse.address == "localhost:9000"
    assert cfg.clickhouse.password == "password"
    assert cfg.clickhouse.default_table == "tech_log"
    assert cfg.clickhouse.protocol == "http"
    assert cfg.clickhouse.table_map == {"DBMSSQL": "tech_log_sql"}


def test_bom_and_tabs_are_tolerated():
    with_bom = b"\xef\xbb\xbf" + YAML_TEXT.replace("  ", "\t").encode("utf-8")
    assert parse_config(with_bom) == parse_config(YAML_TEXT)


def test_tab_indentation_in_text():
    cfg = parse_config("ClickHouse:\n\tAddress: host\n")
    assert cfg.clickhouse.address == "host"


def test_empty_document_gives_defaults():
    assert parse_config("") == Config()
    assert parse_config("ClickHouse:\n").clickhouse == ClickHouseConfig()


def test_scalar_is_read_into_string_field():
    cfg = parse_config("ClickHouse:\n  Username: 12345\n")
    assert cfg.clickhouse.username == "12345"


@pytest.mark.parametrize(
    "text",
    ["- a\n- b\n", "BatchSize: many\n", "BatchSize: true\n", "ClickHouse: [1]\n", "a: [\n"],
)
def test_invalid_documents_raise(text):
    with pytest.raises(ValueError):
        parse_config(text)


def test_load_config_from_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(YAML_TEXT, encoding="utf-8")
    assert load_config(path) == parse_config(YAML_TEXT)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")