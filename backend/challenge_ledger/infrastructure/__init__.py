"""Infrastructure — database session management and structured logging.

Invariants:
    - Single async engine per process (initialized via init_db)
    - All SQLAlchemy exceptions mapped to ledger errors at the session boundary
"""
