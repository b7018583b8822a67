"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads YAML documents and parses them into the frozen ``LedgerConfig``
dataclass.  The single public entry point for runtime config is
``ledger_config.get_active_config()``; this module is its internal
machinery.

Invariants enforced
-------------------
* Unknown keys raise ``ValueError``.  A typo in a config file must not be
  silently ignored.
* Money settings are parsed as ``Decimal`` from their string form.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings for the config trace.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import CONFIG_FIELDS, LedgerConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def parse_decimal(key: str, value: Any) -> Decimal:
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from None
    if not parsed.is_finite():
        raise ValueError(f"{key}: must be finite, got {value!r}")
    return parsed


def _parse_int(key: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key}: must be >= {minimum}, got {value}")
    return value


def _parse_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected true or false, got {value!r}")
    return value


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Later layers win key by key.  Unknown keys are rejected."""
    merged: dict[str, Any] = {}
    for layer in layers:
        unknown = sorted(set(layer) - CONFIG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        merged.update(layer)
    return merged


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a merged settings dict into a LedgerConfig.

    Raises:
        ValueError: unknown key, missing database_url, or invalid value.
    """
    merge_layers(data)
    if not data.get("database_url"):
        raise ValueError("database_url is required")

    minor_unit = parse_decimal("currency_minor_unit", data.get("currency_minor_unit", "0.01"))
    if minor_unit <= 0:
        raise ValueError(f"currency_minor_unit: must be > 0, got {minor_unit}")

    backoff = data.get("transient_retry_backoff_seconds", 0.5)
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ValueError(f"transient_retry_backoff_seconds: must be >= 0, got {backoff!r}")

    timeout = data.get("statement_timeout_ms", 5000)
    if timeout is not None:
        timeout = _parse_int("statement_timeout_ms", timeout, 0) or None

    return LedgerConfig(
        database_url=str(data["database_url"]),
        currency_minor_unit=minor_unit,
        suggestion_threshold_multiplier=_parse_int(
            "suggestion_threshold_multiplier",
            data.get("suggestion_threshold_multiplier", 10),
            0,
        ),
        invitation_ttl_hours=_parse_int(
            "invitation_ttl_hours", data.get("invitation_ttl_hours", 168), 1
        ),
        strict_settlement_audit=_parse_bool(
            "strict_settlement_audit", data.get("strict_settlement_audit", False)
        ),
        transient_retry_attempts=_parse_int(
            "transient_retry_attempts", data.get("transient_retry_attempts", 3), 1
        ),
        transient_retry_backoff_seconds=float(backoff),
        statement_timeout_ms=timeout,
        pool_size=_parse_int("pool_size", data.get("pool_size", 20), 1),
        echo_sql=_parse_bool("echo_sql", data.get("echo_sql", False)),
    )


def compute_checksum(config: LedgerConfig) -> str:
    """
    SHA-256 of the effective settings, excluding the database URL (which
    may carry credentials).
    """
    payload = asdict(config)
    payload.pop("database_url")
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
