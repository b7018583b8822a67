"""
LedgerConfig schema.

The typed runtime settings of the ledger.  YAML documents are parsed into
this frozen dataclass by ``ledger_config.loader``; nothing else in the
system reads configuration files or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerConfig:
    """
    Runtime settings.

    Guarantees:
        - ``suggestion_threshold`` = ``currency_minor_unit`` x
          ``suggestion_threshold_multiplier`` and is not overridable per
          call.
        - ``invitation_ttl_hours`` > 0, ``transient_retry_attempts`` >= 1.
    """

    database_url: str
    currency_minor_unit: Decimal = Decimal("0.01")
    suggestion_threshold_multiplier: int = 10
    invitation_ttl_hours: int = 168
    strict_settlement_audit: bool = False
    transient_retry_attempts: int = 3
    transient_retry_backoff_seconds: float = 0.5
    statement_timeout_ms: int | None = 5000
    pool_size: int = 20
    echo_sql: bool = False

    @property
    def suggestion_threshold(self) -> Decimal:
        """Smallest transfer the settlement planner will suggest."""
        return self.currency_minor_unit * self.suggestion_threshold_multiplier


CONFIG_FIELDS: frozenset[str] = frozenset(LedgerConfig.__dataclass_fields__)
