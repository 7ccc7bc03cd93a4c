from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

from .sources import DEFAULT_ENCODING

LOGGER = logging.getLogger(__name__)

_CONFIG_ENV = "DESSEM_RECORDS_CONFIG"
_ENCODING_ENV = "DESSEM_RECORDS_ENCODING"
_LOG_LEVEL_ENV = "DESSEM_RECORDS_LOG_LEVEL"
_DEFAULT_CONFIG_NAME = "dessem_records.toml"


@dataclass
class DecoderSettings:
    encoding: str = DEFAULT_ENCODING
    log_level: str = "INFO"


def _candidate_config_files() -> list[Path]:
    candidates: list[Path] = []
    explicit_file = os.getenv(_CONFIG_ENV)
    if explicit_file:
        candidates.append(Path(explicit_file).expanduser())
    candidates.append(Path.cwd() / _DEFAULT_CONFIG_NAME)
    return candidates


def _load_file_values() -> dict[str, str]:
    for file_path in _candidate_config_files():
        if not file_path.exists():
            continue
        try:
            with file_path.open("rb") as handle:
                payload = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError) as error:
            LOGGER.warning("Unable to read config file %s: %s", file_path, error)
            continue
        section = payload.get("dessem_records", payload)
        return {key: str(value) for key, value in section.items() if isinstance(value, (str, int))}
    return {}


def load_settings() -> DecoderSettings:
    """Settings from the TOML file, overridden by environment variables."""
    values = _load_file_values()
    encoding = os.getenv(_ENCODING_ENV) or values.get("encoding") or DEFAULT_ENCODING
    log_level = os.getenv(_LOG_LEVEL_ENV) or values.get("log_level") or "INFO"
    return DecoderSettings(encoding=encoding.strip(), log_level=log_level.strip().upper())
