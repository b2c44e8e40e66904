"""
Settlements App - Group Debt Settlement

This app turns a group's split bills into net balances and a minimal set of
payments that settles them, and tracks each participant's share as it is
paid or rejected.

Key Features:
- Exact integer splitting in minor units (equal, percentage, custom)
- Net balance per member, conserved to zero
- Greedy minimum-transaction settlement plan
- Mark-paid / reject transitions safe under concurrent requests
- Cached reads, invalidated on every write

Architecture:
- Models: Expense, SplitBill, SplitBillParticipant
- Domain: immutable snapshots consumed by the ledger and planner
- Services: ledger, planner, participant_state, queries, split_bills, expenses
- Views: RESTful API with ViewSets plus function views for group reads
- Permissions: bill party and share-marking checks
"""

__version__ = '1.0.0'
