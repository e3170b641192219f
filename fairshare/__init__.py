"""
FairShare - Source Package

The financial core of a household shared-expense tracker: two partners log
expenses and income streams on any recurrence schedule, and every cost is
split in proportion to who benefits and who earns.

DESIGN PRINCIPLES:
1. Computation is pure and total - bad input degrades, it never raises
2. Derived figures are recomputed, never cached stale
3. Edits are optimistic; failures are surfaced, not hidden
4. Storage is someone else's job - we only talk to narrow interfaces
5. Every write is auditable
"""

__version__ = "1.0.0"
__author__ = "FairShare Team"
