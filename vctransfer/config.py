# vctransfer/config.py
"""
Configuration loading for vctransfer.

Values come from a YAML file (default: config/local.yaml) and can be
overridden by environment variables, which are read after load_dotenv() so a
local .env file works too:

    SOURCE_DB, SOURCE_TABLE, DESTINATION_DB, DESTINATION_TABLE, CONDITION, DUMP_DIR

The result is an immutable TransferConfig passed explicitly into every
operation; nothing here is global.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import psycopg2
import yaml
from dotenv import load_dotenv
from psycopg2.extensions import make_dsn, parse_dsn
from pydantic import ValidationError

from schemas.transfer_config import DatabaseTarget, TransferConfig
from vctransfer.errors import ConfigError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "local.yaml"
DUMP_FILE_TEMPLATE = "dump-{table}.bin"

# env var -> (section, key); section None means top level
ENV_OVERRIDES = {
    "SOURCE_DB": ("source", "db"),
    "SOURCE_TABLE": ("source", "table"),
    "DESTINATION_DB": ("destination", "db"),
    "DESTINATION_TABLE": ("destination", "table"),
    "CONDITION": (None, "condition"),
    "DUMP_DIR": (None, "dump_dir"),
}


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug(f"Config file not found, relying on environment: {path}")
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping at the top level: {path}")
    return data


def _apply_env(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = dict(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value is None or value == "":
            continue
        if section is None:
            merged[key] = value
        else:
            block = dict(merged.get(section) or {})
            block[key] = value
            merged[section] = block
    return merged


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TransferConfig:
    """
    Build the TransferConfig for one invocation.

    Args:
        path: YAML file to read (default: config/local.yaml). A missing file is
            fine as long as the environment supplies the required values.
        environ: Mapping used for overrides (default: os.environ).

    Raises:
        ConfigError: unreadable file or values that fail validation.
    """
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    environ = os.environ if environ is None else environ

    data = _apply_env(_read_yaml(path), environ)

    # An empty condition means "no filter"
    condition = data.get("condition")
    if condition is None or not str(condition).strip():
        data.pop("condition", None)

    try:
        cfg = TransferConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration ({path}): {e}") from e

    logger.debug(
        f"Config loaded: source={mask_dsn(cfg.source.db)}/{cfg.source.table} "
        f"destination={mask_dsn(cfg.destination.db)}/{cfg.destination.table}"
    )
    return cfg


def dump_path(cfg: TransferConfig) -> Path:
    """Absolute path of the dump file; named after the source table."""
    return (cfg.dump_dir / DUMP_FILE_TEMPLATE.format(table=cfg.source.table)).resolve()


def mask_dsn(dsn: str) -> str:
    """
    Hide the password of a connection string for logging.

    libpq itself parses the string, so URI and key/value forms (including
    ?password= query parameters and spaces around '=') are all covered. A
    string with a password comes back in key/value form.
    """
    try:
        params = parse_dsn(dsn)
    except psycopg2.ProgrammingError:
        # Not a valid connection string; never echo it back
        return "<invalid dsn>"
    if "password" not in params:
        return dsn
    params["password"] = "***"
    return make_dsn(**params)


def describe_target(target: DatabaseTarget) -> str:
    return f"{mask_dsn(target.db)} [{target.table}]"
