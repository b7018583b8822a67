"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Sources, later wins:
    1. ``defaults.yaml`` packaged with this module.
    2. A YAML file: the ``config_file`` argument, else ``LEDGER_CONFIG_FILE``.
    3. ``DATABASE_URL`` from the environment.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; the facade passes individual settings down.

Failure modes:
    - ``FileNotFoundError`` -- an explicitly named file does not exist.
    - ``ValueError`` -- unknown key or invalid value.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the settings checksum and the
    sources that contributed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import (
    compute_checksum,
    load_yaml_file,
    merge_layers,
    parse_config,
)
from ledger_config.schema import LedgerConfig

_logger = logging.getLogger("ledger_kernel.config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"
CONFIG_FILE_ENV = "LEDGER_CONFIG_FILE"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(
    config_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_file: YAML file layered over the packaged defaults.
            Defaults to the path in ``LEDGER_CONFIG_FILE``, if set.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        A frozen LedgerConfig.
    """
    env = os.environ if environ is None else environ
    layers = [load_yaml_file(DEFAULTS_FILE)]
    sources = [str(DEFAULTS_FILE.name)]

    override = config_file or env.get(CONFIG_FILE_ENV)
    if override:
        layers.append(load_yaml_file(Path(override)))
        sources.append(str(override))

    if env.get(DATABASE_URL_ENV):
        layers.append({"database_url": env[DATABASE_URL_ENV]})
        sources.append(DATABASE_URL_ENV)

    config = parse_config(merge_layers(*layers))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_checksum": compute_checksum(config),
            "config_sources": sources,
            "strict_settlement_audit": config.strict_settlement_audit,
            "suggestion_threshold": str(config.suggestion_threshold),
        },
    )
    return config


__all__ = ["LedgerConfig", "get_active_config"]
