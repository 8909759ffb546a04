"""Unit tests for the points ledger.

Tests call ledger functions directly against a SQLite database.
No HTTP layer involved.
"""

import asyncio

import pytest
from services.loyalty_service.errors import (
    AlreadyRedeemed,
    CustomerNotFound,
    InsufficientPoints,
    InvalidRedemption,
    PersistenceFailure,
)
from services.loyalty_service.models import (
    AuditEntry,
    CustomerProfile,
    RewardCategory,
    TransactionType,
)
from services.loyalty_service.services.ledger import (
    apply_redemption,
    parse_redemption,
    record_purchase,
    redeem_reward,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _audit_entries(session_factory, customer_id):
    async with session_factory() as session:
        result = await session.execute(
            select(AuditEntry).where(AuditEntry.customer_id == customer_id)
        )
        return list(result.scalars().all())


async def _load_profile(session_factory, customer_id):
    async with session_factory() as session:
        return await session.get(CustomerProfile, customer_id)


# ---------------------------------------------------------------------------
# parse_redemption
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_parse_redemption_accepts_valid_pairs():
    assert parse_redemption("coffee", 30).threshold == 30
    assert parse_redemption("meal", 50.0).category is RewardCategory.MEAL


@pytest.mark.unit
@pytest.mark.parametrize(
    "category,points",
    [
        ("tea", 10),
        (None, 10),
        ("COFFEE", 10),
        ("coffee", 15),
        ("meal", 20),
        ("coffee", 0),
        ("coffee", -10),
        ("coffee", 10.5),
        ("coffee", "10"),
        ("coffee", True),
        ("coffee", None),
        ("coffee", float("nan")),
    ],
)
def test_parse_redemption_rejects_bad_input(category, points):
    with pytest.raises(InvalidRedemption) as exc_info:
        parse_redemption(category, points)
    assert exc_info.value.status_code == 400


# ---------------------------------------------------------------------------
# redeem_reward
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_coffee_records_threshold_without_deducting(
    db_session, session_factory, make_profile
):
    """Balance 25 with coffee 10 redeemed: coffee 20 succeeds, balance stays 25."""
    customer_id = await make_profile(
        points_balance=25, redeemed_rewards={"coffees": [10], "meals": []}
    )

    profile = await redeem_reward(
        db_session, customer_id=customer_id, category="coffee", points=20
    )

    assert profile.points_balance == 25
    assert profile.redeemed_rewards == {"coffees": [10, 20], "meals": []}

    stored = await _load_profile(session_factory, customer_id)
    assert stored.redeemed_rewards == {"coffees": [10, 20], "meals": []}
    assert stored.points_balance == 25

    entries = await _audit_entries(session_factory, customer_id)
    assert len(entries) == 1
    assert entries[0].type == TransactionType.REDEMPTION_COFFEE
    assert entries[0].points_change == 0
    assert entries[0].points_balance_after == 25
    assert entries[0].reward_points_threshold == 20


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_meal_then_duplicate_is_rejected(db_session, make_profile):
    customer_id = await make_profile(
        points_balance=25, redeemed_rewards={"coffees": [10, 20], "meals": []}
    )

    profile = await redeem_reward(
        db_session, customer_id=customer_id, category="meal", points=25
    )
    assert profile.redeemed_rewards["meals"] == [25]

    with pytest.raises(AlreadyRedeemed) as exc_info:
        await redeem_reward(
            db_session, customer_id=customer_id, category="meal", points=25
        )
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_same_coffee_twice_succeeds_once(
    db_session, session_factory, make_profile
):
    customer_id = await make_profile(points_balance=12)

    await redeem_reward(db_session, customer_id=customer_id, category="coffee", points=10)
    with pytest.raises(AlreadyRedeemed):
        await redeem_reward(
            db_session, customer_id=customer_id, category="coffee", points=10
        )

    stored = await _load_profile(session_factory, customer_id)
    assert stored.redeemed_rewards["coffees"] == [10]
    assert len(await _audit_entries(session_factory, customer_id)) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_with_insufficient_points_states_shortfall(
    db_session, session_factory, make_profile
):
    customer_id = await make_profile(points_balance=5)

    with pytest.raises(InsufficientPoints) as exc_info:
        await redeem_reward(
            db_session, customer_id=customer_id, category="coffee", points=10
        )

    exc = exc_info.value
    assert exc.status_code == 400
    assert exc.balance == 5
    assert exc.required == 10
    assert exc.shortfall == 5
    assert "have 5, need 10" in exc.detail
    assert await _audit_entries(session_factory, customer_id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_unknown_customer_is_not_found(db_session):
    with pytest.raises(CustomerNotFound) as exc_info:
        await redeem_reward(
            db_session, customer_id="missing", category="coffee", points=10
        )
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_threshold_checked_before_customer_lookup(db_session):
    """Shape errors win even when the customer does not exist."""
    with pytest.raises(InvalidRedemption):
        await redeem_reward(
            db_session, customer_id="missing", category="coffee", points=15
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_already_redeemed_checked_before_balance(db_session, make_profile):
    """A redeemed threshold reports AlreadyRedeemed even if the balance dropped."""
    customer_id = await make_profile(
        points_balance=5, redeemed_rewards={"coffees": [10], "meals": []}
    )

    with pytest.raises(AlreadyRedeemed):
        await redeem_reward(
            db_session, customer_id=customer_id, category="coffee", points=10
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redeem_cleans_junk_from_stored_history(db_session, make_profile):
    customer_id = await make_profile(
        points_balance=30,
        redeemed_rewards={"coffees": ["10", "junk", None], "meals": [float("nan")]},
    )

    profile = await redeem_reward(
        db_session, customer_id=customer_id, category="coffee", points=20
    )

    assert profile.redeemed_rewards == {"coffees": [10, 20], "meals": []}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_duplicate_redemption_succeeds_once(
    session_factory, make_profile
):
    customer_id = await make_profile(points_balance=10)

    async def _attempt():
        async with session_factory() as session:
            return await redeem_reward(
                session, customer_id=customer_id, category="coffee", points=10
            )

    results = await asyncio.gather(_attempt(), _attempt(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyRedeemed)

    stored = await _load_profile(session_factory, customer_id)
    assert stored.redeemed_rewards["coffees"] == [10]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_store_failure_is_persistence_failure(
    db_session, make_profile, monkeypatch
):
    customer_id = await make_profile(points_balance=10)

    async def _broken_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", _broken_commit)

    with pytest.raises(PersistenceFailure) as exc_info:
        await redeem_reward(
            db_session, customer_id=customer_id, category="coffee", points=10
        )
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
@pytest.mark.unit
async def test_audit_failure_does_not_fail_redemption(
    db_session, session_factory, make_profile, monkeypatch
):
    customer_id = await make_profile(points_balance=10)
    original_commit = db_session.commit
    calls = {"count": 0}

    async def _commit_then_fail():
        calls["count"] += 1
        if calls["count"] > 1:
            raise SQLAlchemyError("audit table missing")
        await original_commit()

    monkeypatch.setattr(db_session, "commit", _commit_then_fail)

    profile = await redeem_reward(
        db_session, customer_id=customer_id, category="coffee", points=10
    )

    assert profile.redeemed_rewards["coffees"] == [10]
    stored = await _load_profile(session_factory, customer_id)
    assert stored.redeemed_rewards["coffees"] == [10]
    assert await _audit_entries(session_factory, customer_id) == []


# ---------------------------------------------------------------------------
# record_purchase
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_purchase_adds_one_point_and_one_purchase(
    db_session, session_factory, make_profile
):
    customer_id = await make_profile(points_balance=3, total_purchases=3)

    result = await record_purchase(db_session, customer_id=customer_id)

    assert result.profile.points_balance == 4
    assert result.profile.total_purchases == 4
    assert result.points_earned == 1
    assert result.rewards_earned == ()

    entries = await _audit_entries(session_factory, customer_id)
    assert len(entries) == 1
    assert entries[0].type == TransactionType.PURCHASE
    assert entries[0].points_change == 1
    assert entries[0].points_balance_after == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_purchase_landing_on_threshold_reports_reward(db_session, make_profile):
    customer_id = await make_profile(points_balance=49)

    result = await record_purchase(
        db_session, customer_id=customer_id, employee_id="emp-7"
    )

    assert result.profile.points_balance == 50
    assert result.rewards_earned == (RewardCategory.MEAL, RewardCategory.COFFEE)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_purchase_records_employee_on_audit(
    db_session, session_factory, make_profile
):
    customer_id = await make_profile(points_balance=0)

    await record_purchase(db_session, customer_id=customer_id, employee_id="emp-7")

    entries = await _audit_entries(session_factory, customer_id)
    assert entries[0].employee_id == "emp-7"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_purchase_unknown_customer(db_session):
    with pytest.raises(CustomerNotFound):
        await record_purchase(db_session, customer_id="missing")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_apply_redemption_takes_parsed_request(db_session, make_profile):
    customer_id = await make_profile(points_balance=25)

    profile = await apply_redemption(
        db_session,
        customer_id=customer_id,
        redemption=parse_redemption("meal", 25),
    )

    assert profile.redeemed_rewards == {"coffees": [], "meals": [25]}
    assert profile.points_balance == 25
