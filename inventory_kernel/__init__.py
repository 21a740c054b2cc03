"""
Inventory Kernel - dishware ledger and allocation engine

An event-sourced, append-only stock ledger with:
- Derived per-item balances kept in lockstep with the ledger
- Lifecycle gating of items (draft / active / discontinued / archived)
- Allocation tracking per subscription or event
- Monthly physical-audit reconciliation with an approval gate
"""

__version__ = "0.1.0"
