"""
Viatico Kernel

Per-diem ("viatico") request workflow with:
- Immutable request versions forked on correction
- Retroactive proration of mid-month rate changes
- Per-worker balance ledger with store-enforced entry keys
- Rendition tracking with half-day consumption
- Hash-chained audit trail
"""

__version__ = "0.1.0"
