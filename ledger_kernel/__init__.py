"""
Ledger Kernel

Multi-tenant general ledger posting and balance-invariant engine:
- Deterministic posting rules per document type
- Account resolution with override hierarchy
- Atomic, balanced posting batches
- Compensating reversals (never in-place edits)
- Write-time and audit-time balance verification
"""

__version__ = "0.1.0"
