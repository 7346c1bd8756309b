"""
YAML loader for LedgerSettings.

Reads a settings file with PyYAML, overlays environment variables, and
validates every value before building the frozen LedgerSettings.

* Missing file      -> ``FileNotFoundError`` propagates.
* Malformed YAML    -> ``yaml.YAMLError`` propagates.
* Unknown key       -> ``ValueError``.
* Out-of-range value -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from ledger_config.schema import LedgerSettings
from ledger_kernel.domain.enums import OverpaymentPolicy

DATABASE_URL_ENV = "LEDGER_DATABASE_URL"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_KNOWN_KEYS = frozenset(LedgerSettings.__dataclass_fields__)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _positive_int(data: Mapping[str, Any], key: str, *, allow_zero: bool = False) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def _positive_seconds(data: Mapping[str, Any], key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number of seconds, got {value!r}")
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return float(value)


def parse_settings(data: Mapping[str, Any]) -> LedgerSettings:
    """
    Validate a settings mapping and build LedgerSettings.

    Keys absent from ``data`` keep their dataclass defaults.
    """
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown ledger settings: {', '.join(sorted(unknown))}")

    merged: dict[str, Any] = {
        name: getattr(LedgerSettings(), name) for name in _KNOWN_KEYS
    }
    merged.update(data)

    database_url = merged["database_url"]
    if not isinstance(database_url, str) or "://" not in database_url:
        raise ValueError(f"database_url must be a database URL, got {database_url!r}")

    echo = merged["echo"]
    if not isinstance(echo, bool):
        raise ValueError(f"echo must be true or false, got {echo!r}")

    try:
        policy = OverpaymentPolicy(merged["overpayment_policy"])
    except ValueError as e:
        allowed = ", ".join(p.value for p in OverpaymentPolicy)
        raise ValueError(
            f"overpayment_policy must be one of {allowed}, "
            f"got {merged['overpayment_policy']!r}"
        ) from e

    log_level = str(merged["log_level"]).upper()
    if log_level not in _VALID_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(_VALID_LOG_LEVELS)}")

    return LedgerSettings(
        database_url=database_url,
        pool_size=_positive_int(merged, "pool_size"),
        max_overflow=_positive_int(merged, "max_overflow", allow_zero=True),
        pool_timeout=_positive_int(merged, "pool_timeout"),
        echo=echo,
        per_student_timeout_seconds=_positive_seconds(
            merged, "per_student_timeout_seconds"
        ),
        payment_timeout_seconds=_positive_seconds(merged, "payment_timeout_seconds"),
        overpayment_policy=policy,
        log_level=log_level,
    )


def load_settings(
    path: Path,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from ``path`` and apply environment overrides.

    ``LEDGER_DATABASE_URL``, when set and non-empty, replaces database_url.
    """
    environ = os.environ if environ is None else environ
    data = load_yaml_file(path)
    env_url = environ.get(DATABASE_URL_ENV)
    if env_url:
        data["database_url"] = env_url
    settings = parse_settings(data)
    logging.getLogger("ledger_kernel.config").debug(
        "ledger_settings_loaded",
        extra={
            "path": str(path),
            "database_url_from_env": bool(env_url),
            "overpayment_policy": settings.overpayment_policy.value,
        },
    )
    return settings
