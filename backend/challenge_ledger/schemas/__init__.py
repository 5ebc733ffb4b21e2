"""Pydantic Schemas — input validation and response contracts for the outer routing layer.

Invariants:
    - Schemas validate at the system boundary (challenge creation input, ledger views)
    - Domain enums from core/ used for tier and distribution type fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
