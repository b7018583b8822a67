"""
Ledger Kernel - group expense ledger and settlement core

A derived-balance ledger over expense splits with:
- Balances computed on demand, never stored
- Atomic, lock-protected settlement of whole splits
- Idempotent invitation acceptance
- Append-only settlement audit trail
"""

__version__ = "0.1.0"
