"""
Pure calculation engines for the group ledger.

Engines take values and return values.  They never open a session, read
the clock, or log anything beyond their trace record.
"""

from ledger_engines.settlement_planner import (
    SettlementPlanner,
    SuggestedTransfer,
    apply_transfers,
)
from ledger_engines.split_allocation import (
    SplitAllocation,
    SplitAllocationEngine,
    SplitLine,
    SplitMethod,
    SplitShare,
)
from ledger_engines.tracer import traced_engine

__all__ = [
    "SettlementPlanner",
    "SuggestedTransfer",
    "apply_transfers",
    "SplitAllocationEngine",
    "SplitAllocation",
    "SplitLine",
    "SplitMethod",
    "SplitShare",
    "traced_engine",
]
