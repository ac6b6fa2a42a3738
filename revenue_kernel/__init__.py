"""
Revenue Kernel - payment correction and revenue integrity engine.

Records membership payments for a multi-tenant gym back office with:
- Exactly one auditable correction per payment
- Optimistic versioning on corrections
- Per-branch month locks that freeze historical revenue
- Timezone-correct revenue aggregation with fixed-point money
"""

__version__ = "0.1.0"
