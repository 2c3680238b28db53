"""Unit tests for configuration loading and resolution."""

import argparse
from pathlib import Path

import pytest

from schemadrift.config import (
    CONNECTION_FIELDS,
    build_target,
    deep_get,
    get_env_var,
    load_config,
    read_options,
    read_table_filter,
    resolve_path,
)

NO_OVERRIDES = {field: None for field in CONNECTION_FIELDS}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for field in CONNECTION_FIELDS:
        monkeypatch.delenv(f"SCHEMADRIFT_{field.upper()}", raising=False)


class TestDeepGet:
    """Tests for the deep_get helper."""

    def test_simple_key(self) -> None:
        assert deep_get({"a": 1}, ["a"]) == 1

    def test_nested_key(self) -> None:
        assert deep_get({"a": {"b": {"c": 42}}}, ["a", "b", "c"]) == 42

    def test_missing_key_returns_default(self) -> None:
        assert deep_get({"a": 1}, ["b"], "default") == "default"

    def test_non_dict_intermediate(self) -> None:
        assert deep_get({"a": "string"}, ["a", "b"], "default") == "default"

    def test_empty_keys_returns_dict(self) -> None:
        d = {"a": 1}
        assert deep_get(d, []) == d


class TestLoadConfig:
    """Tests for YAML config loading."""

    def test_valid_config(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "schemadrift.yml"
        cfg_file.write_text("snapshot: shop.json\nconnection:\n  host: db.internal\n  port: 3307\n")
        cfg = load_config(cfg_file)
        assert cfg["snapshot"] == "shop.json"
        assert cfg["connection"]["port"] == 3307

    def test_missing_config_raises(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit, match="config not found"):
            load_config(tmp_path / "nonexistent.yml")

    def test_empty_config_returns_empty_dict(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "empty.yml"
        cfg_file.write_text("")
        assert load_config(cfg_file) == {}

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "broken.yml"
        cfg_file.write_text("connection: [unclosed\n")
        with pytest.raises(SystemExit, match="invalid YAML in config"):
            load_config(cfg_file)

    def test_list_at_top_level_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "list.yml"
        cfg_file.write_text("- a\n- b\n")
        with pytest.raises(SystemExit, match="mapping"):
            load_config(cfg_file)


class TestBuildTarget:
    """Connection fields resolve env > CLI > config > defaults."""

    def test_defaults(self) -> None:
        target = build_target({}, {**NO_OVERRIDES, "database": "shop"})
        assert target.host == "localhost"
        assert target.port == 3306
        assert target.user == "root"
        assert target.password == ""
        assert target.database == "shop"
        assert target.label == "current"

    def test_from_config(self) -> None:
        cfg = {"connection": {"host": "db.internal", "port": 3307, "user": "readonly", "database": "shop"}}
        target = build_target(cfg, NO_OVERRIDES)
        assert (target.host, target.port, target.user, target.database) == ("db.internal", 3307, "readonly", "shop")

    def test_cli_overrides_config(self) -> None:
        cfg = {"connection": {"host": "db.internal", "database": "shop"}}
        target = build_target(cfg, {**NO_OVERRIDES, "host": "replica", "port": "3310"})
        assert target.host == "replica"
        assert target.port == 3310
        assert target.database == "shop"

    def test_env_overrides_cli(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHEMADRIFT_PASSWORD", "from-env")
        monkeypatch.setenv("SCHEMADRIFT_DATABASE", "shop_env")
        target = build_target({}, {**NO_OVERRIDES, "password": "from-cli", "database": "shop_cli"})
        assert target.password == "from-env"
        assert target.database == "shop_env"

    def test_empty_env_var_is_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHEMADRIFT_HOST", "")
        target = build_target({}, {**NO_OVERRIDES, "host": "db", "database": "shop"})
        assert target.host == "db"

    def test_missing_database(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            build_target({}, NO_OVERRIDES)
        message = str(excinfo.value.code)
        assert "missing connection.database" in message
        assert "SCHEMADRIFT_DATABASE" in message
        assert "--database" in message

    def test_invalid_port(self) -> None:
        with pytest.raises(SystemExit, match="invalid port"):
            build_target({}, {**NO_OVERRIDES, "port": "mysql", "database": "shop"})

    def test_label(self) -> None:
        target = build_target({}, {**NO_OVERRIDES, "database": "shop"}, label="baseline")
        assert target.describe().startswith("BASELINE:")


class TestGetEnvVar:
    def test_reads_prefixed_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHEMADRIFT_HOST", "db.internal")
        assert get_env_var("host") == "db.internal"

    def test_unset_returns_none(self) -> None:
        assert get_env_var("host") is None


class TestReadOptions:
    def test_defaults(self) -> None:
        options = read_options({}, argparse.Namespace())
        assert options.case_sensitive is True
        assert options.report_reorder is True

    def test_from_config(self) -> None:
        cfg = {"options": {"case_sensitive": False, "report_reorder": False}}
        options = read_options(cfg, argparse.Namespace(case_insensitive=False, ignore_reorder=False))
        assert options.case_sensitive is False
        assert options.report_reorder is False

    def test_cli_flags_turn_off(self) -> None:
        options = read_options({}, argparse.Namespace(case_insensitive=True, ignore_reorder=True))
        assert options.case_sensitive is False
        assert options.report_reorder is False


class TestReadTableFilter:
    def test_cli_appends_to_config(self) -> None:
        cfg = {"table_filter": {"include": ["order%"], "exclude": ["tmp_%"], "case_sensitive": True}}
        args = argparse.Namespace(include=["cust%"], exclude=[])
        table_filter = read_table_filter(cfg, args)
        assert table_filter.include == ["order%", "cust%"]
        assert table_filter.exclude == ["tmp_%"]
        assert table_filter.case_sensitive is True
        assert table_filter.active

    def test_single_string_pattern(self) -> None:
        cfg = {"table_filter": {"include": "order%", "exclude": "tmp_%"}}
        table_filter = read_table_filter(cfg, argparse.Namespace(include=[], exclude=["bak_%"]))
        assert table_filter.include == ["order%"]
        assert table_filter.exclude == ["tmp_%", "bak_%"]

    def test_empty(self) -> None:
        table_filter = read_table_filter({}, argparse.Namespace())
        assert table_filter.include == []
        assert table_filter.exclude == []
        assert not table_filter.active


class TestResolvePath:
    def test_cli_wins(self) -> None:
        assert str(resolve_path("cli.json", {"snapshot": "cfg.json"}, "snapshot", "default.json")) == "cli.json"

    def test_config_then_default(self) -> None:
        assert str(resolve_path(None, {"snapshot": "cfg.json"}, "snapshot", "default.json")) == "cfg.json"
        assert str(resolve_path(None, {}, "snapshot", "default.json")) == "default.json"
