"""Unit tests for audit trail entries."""

import pytest
from services.loyalty_service.models import AuditEntry, RewardCategory, TransactionType
from services.loyalty_service.services.audit import (
    purchase_entry,
    record_audit_entry,
    redemption_entry,
)
from services.loyalty_service.services.profiles import ProfileSnapshot
from sqlalchemy import select

PROFILE = ProfileSnapshot(id="cust-0001-aaaa-bbbb", points_balance=25)


@pytest.mark.unit
def test_purchase_entry():
    entry = purchase_entry(PROFILE, points_change=1, employee_id="emp-7")

    assert entry.type is TransactionType.PURCHASE
    assert entry.points_change == 1
    assert entry.points_balance_after == 25
    assert entry.reward_points_threshold is None
    assert entry.employee_id == "emp-7"


@pytest.mark.unit
@pytest.mark.parametrize(
    "category,expected",
    [
        (RewardCategory.COFFEE, TransactionType.REDEMPTION_COFFEE),
        (RewardCategory.MEAL, TransactionType.REDEMPTION_MEAL),
    ],
)
def test_redemption_entry_does_not_move_balance(category, expected):
    entry = redemption_entry(PROFILE, category=category, threshold=20)

    assert entry.type is expected
    assert entry.points_change == 0
    assert entry.points_balance_after == 25
    assert entry.reward_points_threshold == 20
    assert entry.employee_id is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_record_audit_entry_persists(db_session):
    assert await record_audit_entry(db_session, purchase_entry(PROFILE, points_change=1))

    rows = (await db_session.execute(select(AuditEntry))).scalars().all()
    assert len(rows) == 1
    assert rows[0].customer_id == PROFILE.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_record_audit_entry_swallows_failures(db_session, monkeypatch):
    async def failing_commit():
        raise RuntimeError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    assert (
        await record_audit_entry(db_session, purchase_entry(PROFILE, points_change=1))
        is False
    )
