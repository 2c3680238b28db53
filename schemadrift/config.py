"""
config
======

Configuration for the ``schemadrift`` CLI.

Settings come from three places, highest priority first:

1. environment variables ``SCHEMADRIFT_<FIELD>`` (connection fields only)
2. CLI flags
3. an optional YAML config file

Example ``schemadrift.yml``::

    snapshot: snapshots/shop.json
    report: out/validateResult.xlsx

    connection:
      host: db.internal
      port: 3306
      user: readonly
      database: shop
      # password: prefer SCHEMADRIFT_PASSWORD

    options:
      case_sensitive: true
      report_reorder: true

    table_filter:
      include: ["order%"]
      exclude: ["tmp_%", "re:^zz_"]
      case_sensitive: false

Missing required values stop the CLI with ``SystemExit`` and a message naming
every way to supply them.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .collectors import TableFilter
from .connection import MySqlTarget
from .diffing import DiffOptions

ENV_PREFIX = "SCHEMADRIFT"

CONNECTION_FIELDS = ("host", "port", "user", "password", "database")

CONNECTION_DEFAULTS: Dict[str, str] = {
    "host": "localhost",
    "port": "3306",
    "user": "root",
    "password": "",
}

DEFAULT_SNAPSHOT = "schema_snapshot.json"
DEFAULT_REPORT = "validateResult.xlsx"


def load_config(path: Path) -> Dict[str, Any]:
    """Load a YAML config file; an empty file yields ``{}``."""
    if not path.exists():
        raise SystemExit(f"ERROR: config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise SystemExit(f"ERROR: invalid YAML in config {path}: {exc}") from None
    if not isinstance(data, dict):
        raise SystemExit(f"ERROR: config must be a mapping at the top level: {path}")
    return data


def deep_get(d: Dict[str, Any], keys: List[str], default: Any = None) -> Any:
    """Safely get nested dict value with default."""
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def get_env_var(field: str) -> Optional[str]:
    """Return ``SCHEMADRIFT_<FIELD>`` if set, else None."""
    return os.environ.get(f"{ENV_PREFIX}_{field.upper()}")


def build_target(
    cfg: Dict[str, Any],
    overrides: Mapping[str, Optional[Any]],
    label: str = "current",
) -> MySqlTarget:
    """Build the connection target from env vars, CLI overrides and config.

    Parameters
    ----------
    cfg:
        Parsed config file (may be empty).
    overrides:
        CLI values keyed by field name; ``None`` means "not given".
    label:
        Label for the resulting target.
    """
    section = cfg.get("connection", {}) or {}
    values: Dict[str, str] = {}

    for field in CONNECTION_FIELDS:
        candidates = (get_env_var(field), overrides.get(field), section.get(field))
        value = next((v for v in candidates if v is not None and v != ""), None)
        if value is None:
            value = CONNECTION_DEFAULTS.get(field)
        if value is None:
            flag = f"--{field}"
            raise SystemExit(
                f"ERROR: missing connection.{field}; set {ENV_PREFIX}_{field.upper()}, "
                f"pass {flag}, or add connection.{field} to the config file"
            )
        values[field] = str(value)

    try:
        port = int(values["port"])
    except ValueError:
        raise SystemExit(f"ERROR: invalid port: {values['port']!r}") from None

    return MySqlTarget(
        host=values["host"],
        port=port,
        user=values["user"],
        password=values["password"],
        database=values["database"],
        label=label,
    )


def read_options(cfg: Dict[str, Any], args: argparse.Namespace) -> DiffOptions:
    """Read diff switches from config; CLI flags can only turn them off."""
    case_sensitive = bool(deep_get(cfg, ["options", "case_sensitive"], True))
    report_reorder = bool(deep_get(cfg, ["options", "report_reorder"], True))

    if getattr(args, "case_insensitive", False):
        case_sensitive = False
    if getattr(args, "ignore_reorder", False):
        report_reorder = False

    return DiffOptions(case_sensitive=case_sensitive, report_reorder=report_reorder)


def _patterns(value: Any) -> List[str]:
    """A single pattern may be written as a plain string instead of a list."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def read_table_filter(cfg: Dict[str, Any], args: argparse.Namespace) -> TableFilter:
    """Read include/exclude patterns; CLI patterns are appended to config patterns."""
    cfg_includes = _patterns(deep_get(cfg, ["table_filter", "include"]))
    cfg_excludes = _patterns(deep_get(cfg, ["table_filter", "exclude"]))
    case_sensitive = bool(deep_get(cfg, ["table_filter", "case_sensitive"], False))
    return TableFilter(
        include=list(cfg_includes) + list(getattr(args, "include", None) or []),
        exclude=list(cfg_excludes) + list(getattr(args, "exclude", None) or []),
        case_sensitive=case_sensitive,
    )


def resolve_path(cli_value: Optional[str], cfg: Dict[str, Any], key: str, default: str) -> Path:
    """Pick a file path from the CLI, then the config, then *default*."""
    value = cli_value or cfg.get(key) or default
    return Path(value)
