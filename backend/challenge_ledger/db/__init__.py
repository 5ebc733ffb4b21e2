"""Database Metadata — declarative Base shared by models and alembic.

Design Decisions:
    - Engine and session construction live in infrastructure/database.py;
      this package only owns table metadata
"""
