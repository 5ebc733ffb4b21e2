"""PurchaseCoordinator — end-to-end purchase, join and projection tests.

Tests cover:
    - Scenario A: three participants, U5 purchase writes the position-weighted split
    - Scenario B: creator cannot buy own challenge, nothing written
    - Scenario C: free-tier join with has_access=False succeeds
    - purchase rejections: free tier, duplicate, unknown challenge
    - join gating: paid tier requires a recorded purchase, creator exempt
    - atomicity: distribution failure rolls back the purchase record
    - deadline: a stalled unit of work is rolled back with DeadlineExceededError;
      a slow COMMIT is awaited, a driver timeout is not a deadline expiry
    - challenge creation: tier price and title rules
    - earnings and challenge revenue derived from the distribution ledger
"""

import asyncio
import uuid
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from challenge_ledger.core.domain_types import DistributionType, EmptyPoolPolicy, PriceTier
from challenge_ledger.core.errors import (
    ConflictError, DeadlineExceededError, NotFoundError, PersistenceError,
    ValidationError,
)
from challenge_ledger.models.challenge import Challenge
from challenge_ledger.models.purchase_record import PurchaseRecord
from challenge_ledger.schemas.challenge import ChallengeView
from challenge_ledger.services.ledger_store import LedgerStore
from challenge_ledger.services.participant_registry import ParticipantRegistry
from challenge_ledger.services.purchase_coordinator import PurchaseCoordinator


async def _buy_and_join(coordinator, challenge_id, user_id):
    await coordinator.purchase(challenge_id, user_id)
    return await coordinator.join(challenge_id, user_id, has_access=True)


def _shares(entries, type_: DistributionType):
    return [e for e in entries if e.type == type_.value]


# ─── Scenario A ──────────────────────────────────────────────────

async def test_scenario_a_split_with_three_participants(coordinator, make_challenge):
    u1, u2, u3, u4, u5 = (uuid.uuid4() for _ in range(5))
    challenge = await make_challenge("premium", "1.00", creator_id=u1)
    for user in (u2, u3, u4):
        await _buy_and_join(coordinator, challenge.id, user)

    outcome = await coordinator.purchase(challenge.id, u5)

    entries = await coordinator.distributions(outcome.purchase.id)
    assert [e.type for e in entries] == [
        "creator_share", "participant_share", "participant_share",
        "participant_share", "platform_fee",
    ]
    creator = _shares(entries, DistributionType.CREATOR_SHARE)[0]
    assert creator.user_id == u1
    assert creator.amount == Decimal("0.60")
    assert _shares(entries, DistributionType.PLATFORM_FEE)[0].amount == Decimal("0.15")

    participant = {
        e.user_id: (e.position, e.amount)
        for e in _shares(entries, DistributionType.PARTICIPANT_SHARE)
    }
    assert participant[u2] == (1, Decimal("0.125"))
    assert participant[u3] == (2, Decimal("0.116667"))
    assert participant[u4] == (3, Decimal("0.108333"))
    assert outcome.plan.drift == Decimal("0.10")


async def test_purchase_outcome_carries_record_and_entries(coordinator, make_challenge):
    challenge = await make_challenge("exclusive", "5.00")
    buyer = uuid.uuid4()

    outcome = await coordinator.purchase(challenge.id, buyer)

    assert outcome.purchase.challenge_id == challenge.id
    assert outcome.purchase.user_id == buyer
    assert outcome.purchase.amount == Decimal("5.00")
    assert outcome.purchase.status == "completed"
    assert len(outcome.distribution_entries) == 2
    assert {e.purchase_id for e in outcome.distribution_entries} == {outcome.purchase.id}


async def test_empty_roster_writes_creator_and_platform_only(
    coordinator, make_challenge, ledger_rows,
):
    challenge = await make_challenge("premium", "2.00")
    await coordinator.purchase(challenge.id, uuid.uuid4())

    rows = await ledger_rows.distributions(challenge.id)
    assert sorted(e.type for e in rows) == ["creator_share", "platform_fee"]
    assert sum(Decimal(str(e.amount)) for e in rows) == Decimal("1.50")


async def test_empty_roster_to_platform_policy(db_manager, make_challenge):
    coordinator = PurchaseCoordinator(
        db_manager, timeout_seconds=30.0, empty_pool=EmptyPoolPolicy.TO_PLATFORM,
    )
    challenge = await make_challenge("premium", "2.00")

    outcome = await coordinator.purchase(challenge.id, uuid.uuid4())

    fee = _shares(outcome.distribution_entries, DistributionType.PLATFORM_FEE)[0]
    assert fee.amount == Decimal("0.80")
    assert outcome.plan.drift == 0


# ─── purchase rejections ─────────────────────────────────────────

async def test_scenario_b_self_purchase_rejected(coordinator, make_challenge, ledger_rows):
    creator = uuid.uuid4()
    challenge = await make_challenge("premium", "1.50", creator_id=creator)

    with pytest.raises(ValidationError) as exc:
        await coordinator.purchase(challenge.id, creator)

    assert exc.value.reason == "self_purchase"
    assert await ledger_rows.purchases(challenge.id) == []
    assert await ledger_rows.distributions(challenge.id) == []


async def test_free_tier_purchase_rejected(coordinator, make_challenge, ledger_rows):
    challenge = await make_challenge("free", None)

    with pytest.raises(ValidationError) as exc:
        await coordinator.purchase(challenge.id, uuid.uuid4())

    assert exc.value.reason == "free_tier"
    assert await ledger_rows.purchases(challenge.id) == []


async def test_second_purchase_is_conflict(coordinator, make_challenge, ledger_rows):
    challenge = await make_challenge()
    buyer = uuid.uuid4()
    await coordinator.purchase(challenge.id, buyer)

    with pytest.raises(ConflictError) as exc:
        await coordinator.purchase(challenge.id, buyer)

    assert exc.value.reason == "already_purchased"
    assert len(await ledger_rows.purchases(challenge.id)) == 1
    assert len(await ledger_rows.distributions(challenge.id)) == 2


async def test_unknown_challenge_not_found(coordinator):
    with pytest.raises(NotFoundError):
        await coordinator.purchase(uuid.uuid4(), uuid.uuid4())


# ─── join gating ─────────────────────────────────────────────────

async def test_scenario_c_free_join_without_access(coordinator, make_challenge):
    challenge = await make_challenge("free", None)
    user = uuid.uuid4()

    entry = await coordinator.join(challenge.id, user, has_access=False)

    assert entry.user_id == user
    assert entry.position == 1


async def test_paid_join_without_access_rejected(coordinator, make_challenge, ledger_rows):
    challenge = await make_challenge()

    with pytest.raises(ValidationError) as exc:
        await coordinator.join(challenge.id, uuid.uuid4(), has_access=False)

    assert exc.value.reason == "access_required"
    assert await ledger_rows.participants(challenge.id) == []


async def test_access_flag_without_purchase_rejected(coordinator, make_challenge):
    challenge = await make_challenge()

    with pytest.raises(ValidationError) as exc:
        await coordinator.join(challenge.id, uuid.uuid4(), has_access=True)

    assert exc.value.reason == "access_required"


async def test_creator_joins_own_paid_challenge(coordinator, make_challenge):
    creator = uuid.uuid4()
    challenge = await make_challenge("exclusive", "9.99", creator_id=creator)

    entry = await coordinator.join(challenge.id, creator, has_access=True)

    assert entry.position == 1


async def test_duplicate_join_is_conflict(coordinator, make_challenge, ledger_rows):
    challenge = await make_challenge("free", None)
    user = uuid.uuid4()
    await coordinator.join(challenge.id, user, has_access=False)

    with pytest.raises(ConflictError) as exc:
        await coordinator.join(challenge.id, user, has_access=False)

    assert exc.value.reason == "already_joined"
    assert len(await ledger_rows.participants(challenge.id)) == 1


async def test_positions_follow_join_order(coordinator, make_challenge):
    challenge = await make_challenge("free", None)
    users = [uuid.uuid4() for _ in range(4)]
    for user in users:
        await coordinator.join(challenge.id, user, has_access=False)

    roster = await coordinator.participants(challenge.id)

    assert [p.user_id for p in roster] == users
    assert [p.position for p in roster] == [1, 2, 3, 4]


async def test_participants_of_unknown_challenge(coordinator):
    with pytest.raises(NotFoundError):
        await coordinator.participants(uuid.uuid4())


# ─── atomicity and deadline ──────────────────────────────────────

async def test_distribution_failure_rolls_back_purchase(
    coordinator, make_challenge, ledger_rows, monkeypatch,
):
    challenge = await make_challenge()
    buyer = uuid.uuid4()

    async def failing_write(self, entries):
        raise PersistenceError("disk full", "record_distribution")

    with monkeypatch.context() as m:
        m.setattr(LedgerStore, "record_distribution", failing_write)
        with pytest.raises(PersistenceError):
            await coordinator.purchase(challenge.id, buyer)

    assert await ledger_rows.purchases(challenge.id) == []
    assert await ledger_rows.distributions(challenge.id) == []

    # Nothing was recorded, so the buyer can retry
    outcome = await coordinator.purchase(challenge.id, buyer)
    assert len(outcome.distribution_entries) == 2


async def test_deadline_rolls_back_unit(db_manager, make_challenge, ledger_rows, monkeypatch):
    challenge = await make_challenge()
    slow = PurchaseCoordinator(db_manager, timeout_seconds=0.2)

    async def stalled_snapshot(self, challenge_id):
        await asyncio.sleep(5)
        return []

    monkeypatch.setattr(ParticipantRegistry, "list_ordered", stalled_snapshot)

    with pytest.raises(DeadlineExceededError) as exc:
        await slow.purchase(challenge.id, uuid.uuid4())

    assert exc.value.reason == "deadline_exceeded"
    assert exc.value.http_status == 503
    assert await ledger_rows.count(PurchaseRecord) == 0


# ─── projections ─────────────────────────────────────────────────

async def test_earnings_summed_from_ledger(coordinator, make_challenge):
    creator, early, late = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    challenge = await make_challenge("premium", "1.00", creator_id=creator)
    await _buy_and_join(coordinator, challenge.id, early)
    await coordinator.purchase(challenge.id, late)

    creator_earnings = await coordinator.earnings(creator)
    early_earnings = await coordinator.earnings(early)
    late_earnings = await coordinator.earnings(late)

    assert creator_earnings.total == Decimal("1.20")
    assert creator_earnings.by_type[DistributionType.CREATOR_SHARE] == Decimal("1.20")
    # sole participant on a 1.00 purchase: 0.25 * 1.5
    assert early_earnings.total == Decimal("0.375")
    assert early_earnings.by_type[DistributionType.PARTICIPANT_SHARE] == Decimal("0.375")
    assert late_earnings.total == 0
    assert late_earnings.by_type[DistributionType.PLATFORM_FEE] == 0


async def test_challenge_revenue_summary(coordinator, make_challenge):
    challenge = await make_challenge("premium", "2.00")
    buyer = uuid.uuid4()
    await _buy_and_join(coordinator, challenge.id, buyer)
    await coordinator.purchase(challenge.id, uuid.uuid4())

    revenue = await coordinator.challenge_revenue(challenge.id)

    assert revenue["challenge_id"] == str(challenge.id)
    assert revenue["purchase_count"] == 2
    assert revenue["gross_revenue"] == Decimal("4.00")
    assert revenue["distributed"]["creator_share"] == Decimal("2.40")
    assert revenue["distributed"]["platform_fee"] == Decimal("0.60")
    assert revenue["distributed"]["participant_share"] == Decimal("0.75")


# ─── challenge creation ──────────────────────────────────────────

async def test_create_challenge_normalizes_free_price(coordinator):
    challenge = await coordinator.create_challenge(uuid.uuid4(), "free", "3.00")
    assert challenge.price == Decimal("0.00")
    assert challenge.price_tier == "free"


@pytest.mark.parametrize("tier,price,reason", [
    ("premium", "5.00", "invalid_price"),
    ("exclusive", None, "invalid_price"),
    ("gold", "1.00", "invalid_tier"),
])
async def test_create_challenge_rejects_bad_pricing(coordinator, tier, price, reason):
    with pytest.raises(ValidationError) as exc:
        await coordinator.create_challenge(uuid.uuid4(), tier, price)
    assert exc.value.reason == reason


async def test_drift_logged_as_warning(coordinator, make_challenge, caplog):
    challenge = await make_challenge()
    for _ in range(2):
        await _buy_and_join(coordinator, challenge.id, uuid.uuid4())

    with caplog.at_level("WARNING", logger="challenge_ledger.services.purchase_coordinator"):
        await coordinator.purchase(challenge.id, uuid.uuid4())

    drift = [r for r in caplog.records if "drift" in r.getMessage()]
    assert drift and drift[0].levelname == "WARNING"


async def test_slow_commit_is_not_a_deadline_expiry(
    db_manager, make_challenge, ledger_rows, monkeypatch,
):
    challenge = await make_challenge()
    tight = PurchaseCoordinator(db_manager, timeout_seconds=0.2)
    real_commit = AsyncSession.commit

    async def slow_commit(self):
        await asyncio.sleep(0.4)
        await real_commit(self)

    monkeypatch.setattr(AsyncSession, "commit", slow_commit)

    outcome = await tight.purchase(challenge.id, uuid.uuid4())

    assert [p.id for p in await ledger_rows.purchases(challenge.id)] == [outcome.purchase.id]


async def test_driver_timeout_is_persistence_error(
    coordinator, make_challenge, ledger_rows, monkeypatch,
):
    challenge = await make_challenge()

    async def timed_out_snapshot(self, challenge_id):
        raise TimeoutError("statement timeout")

    monkeypatch.setattr(ParticipantRegistry, "list_ordered", timed_out_snapshot)

    with pytest.raises(PersistenceError) as exc:
        await coordinator.purchase(challenge.id, uuid.uuid4())

    assert not isinstance(exc.value, DeadlineExceededError)
    assert exc.value.reason == "driver_timeout"
    assert await ledger_rows.purchases(challenge.id) == []


@pytest.mark.parametrize("title", ["ab", "   ", "x" * 150])
async def test_create_challenge_rejects_bad_title(coordinator, ledger_rows, title):
    with pytest.raises(ValidationError) as exc:
        await coordinator.create_challenge(uuid.uuid4(), "premium", "1.00", title=title)

    assert exc.value.reason == "invalid_title"
    assert exc.value.http_status == 400
    assert await ledger_rows.count(Challenge) == 0


async def test_create_challenge_strips_title(coordinator):
    challenge = await coordinator.create_challenge(
        uuid.uuid4(), "premium", "1.00", title="  Ice bath month  ",
    )
    assert challenge.title == "Ice bath month"


async def test_create_challenge_without_title(coordinator):
    challenge = await coordinator.create_challenge(uuid.uuid4(), "free")
    assert challenge.title is None


async def test_created_challenge_renders_as_view(coordinator):
    creator = uuid.uuid4()
    challenge = await coordinator.create_challenge(
        creator, "exclusive", "5.00", title="Cold plunge",
    )

    view = ChallengeView.model_validate(challenge).model_dump()

    assert view["id"] == challenge.id
    assert view["creator_id"] == creator
    assert view["price_tier"] == PriceTier.EXCLUSIVE
    assert view["price"] == Decimal("5.00")
