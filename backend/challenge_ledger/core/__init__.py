"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, infrastructure/, models/, or db/
    - All functions are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell: the payout formula and
      access rules are testable without a database
"""
