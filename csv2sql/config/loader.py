from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from csv2sql.db.dialects import dialect_for_scheme

"""Config loader.

Resolution order (later wins):
1. optional YAML file (``--config``), same keys as the schema
2. command-line flags that were actually given
3. ``DATABASE_URL`` from the environment, only when ``db`` is still unset

The merged mapping is validated against ``import_schema.json``; then the
ignore / remap strings are parsed. All of this happens before any file or
database I/O.
"""

SCHEMA_PATH = Path(__file__).with_name("import_schema.json")

DEFAULTS: dict[str, Any] = {
    "delimiter": ",",
    "concurrency": 1,
    "batch_size": 1,
    "squash_consecutive_duplicates": False,
    "squash_all_duplicates_per_batch": False,
    "ignore_columns": "",
    "remap_columns": "",
    "ignore_errors": False,
    "encoding": "utf-8-sig",
    "status_interval": 1.0,
    "error_log_dir": "logs",
    "dry_run": False,
}

# "\t" をシェルから渡しにくいので別名を許可
DELIMITER_ALIASES = {"\\t": "\t", "tab": "\t", "TAB": "\t"}

REMAP_SYNTAX = "column_x=column_y,column_a=column_b,..."


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class ImportConfig:
    table: str
    file: str
    db: str
    delimiter: str = ","
    concurrency: int = 1
    batch_size: int = 1
    squash_consecutive_duplicates: bool = False
    squash_all_duplicates_per_batch: bool = False
    ignore_columns: tuple[str, ...] = ()
    remap_columns: dict[str, str] = field(default_factory=dict)
    ignore_errors: bool = False  # True: 列数不一致の行をスキップ / False: 致命エラー
    encoding: str = "utf-8-sig"
    status_interval: float = 1.0
    error_log_dir: str = "logs"
    dry_run: bool = False


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate merged config data against the JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{where}: " if where else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file must contain a mapping, got {type(data).__name__}")
    return data


def parse_ignore_columns(value: str | list[str]) -> tuple[str, ...]:
    """``"a, b,,c"`` -> ``("a", "b", "c")``."""
    items = value.split(",") if isinstance(value, str) else value
    return tuple(name.strip() for name in items if name.strip())


def parse_remap_columns(value: str | Mapping[str, str]) -> dict[str, str]:
    """``"x=y,i=j"`` -> ``{"x": "y", "i": "j"}``.

    Raises:
        ConfigError: an entry without ``=``, an empty side, or a repeated source column
    """
    if isinstance(value, Mapping):
        return {str(k).strip(): str(v).strip() for k, v in value.items()}

    mapping: dict[str, str] = {}
    for entry in value.split(","):
        if not entry.strip():
            continue
        old, sep, new = entry.partition("=")
        old, new = old.strip(), new.strip()
        if not sep or not old or not new:
            raise ConfigError(f"remap columns: invalid entry '{entry}' (syntax: {REMAP_SYNTAX})")
        if old in mapping:
            raise ConfigError(f"remap columns: column '{old}' mapped more than once")
        mapping[old] = new
    return mapping


def load_config(
    cli_values: Mapping[str, Any] | None = None,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ImportConfig:
    """Merge YAML file, CLI values and environment into a validated ImportConfig."""
    env = os.environ if environ is None else environ

    data: dict[str, Any] = _read_yaml(config_path) if config_path is not None else {}
    for key, value in (cli_values or {}).items():
        if value is not None:
            data[key] = value
    if not data.get("db") and env.get("DATABASE_URL"):
        data["db"] = env["DATABASE_URL"]

    if isinstance(data.get("delimiter"), str):
        data["delimiter"] = DELIMITER_ALIASES.get(data["delimiter"], data["delimiter"])

    _validate_config_schema(data)

    merged = {**DEFAULTS, **data}
    try:
        dialect_for_scheme(urlsplit(merged["db"]).scheme)
    except ValueError as e:
        raise ConfigError(f"db: {e}") from e

    return ImportConfig(
        table=merged["table"],
        file=merged["file"],
        db=merged["db"],
        delimiter=merged["delimiter"],
        concurrency=merged["concurrency"],
        batch_size=merged["batch_size"],
        squash_consecutive_duplicates=merged["squash_consecutive_duplicates"],
        squash_all_duplicates_per_batch=merged["squash_all_duplicates_per_batch"],
        ignore_columns=parse_ignore_columns(merged["ignore_columns"]),
        remap_columns=parse_remap_columns(merged["remap_columns"]),
        ignore_errors=merged["ignore_errors"],
        encoding=merged["encoding"],
        status_interval=float(merged["status_interval"]),
        error_log_dir=merged["error_log_dir"],
        dry_run=merged["dry_run"],
    )
