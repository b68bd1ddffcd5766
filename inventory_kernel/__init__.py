"""
Inventory Kernel

An append-only stock ledger and balance engine for consumables with:
- One immutable journal entry per stock movement
- Never-negative, lock-protected materialized balances
- Lot / expiry provenance and container sub-quantities
- Unit-of-measure normalization within unit groups
- Replay-based reconciliation of balances against the journal
"""

__version__ = "0.1.0"
