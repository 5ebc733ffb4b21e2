"""Services Layer — challenge lookup, ledger store, participant registry, purchase coordinator.

Invariants:
    - Only PurchaseCoordinator begins, commits or rolls back a unit of work
    - Store/registry methods flush but never commit

Design Decisions:
    - One class per component for locality; collaborators injected through the constructor
"""
