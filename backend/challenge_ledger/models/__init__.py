"""ORM Models — SQLAlchemy declarative models for all ledger entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Challenge is the aggregate root; every other row is scoped by challenge_id
    - No model is updated or deleted by the core once written

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all / alembic
"""

from challenge_ledger.models.challenge import Challenge  # noqa: F401
from challenge_ledger.models.participant_entry import ParticipantEntry  # noqa: F401
from challenge_ledger.models.purchase_record import PurchaseRecord  # noqa: F401
from challenge_ledger.models.distribution_entry import DistributionEntry  # noqa: F401
