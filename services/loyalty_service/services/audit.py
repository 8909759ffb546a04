"""Best-effort audit trail for balance-affecting events."""

from typing import Optional

from libs.common.logging import get_logger
from services.loyalty_service.models import AuditEntry, RewardCategory, TransactionType
from services.loyalty_service.services.profiles import ProfileSnapshot
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def purchase_entry(
    profile: ProfileSnapshot, *, points_change: int, employee_id: Optional[str] = None
) -> AuditEntry:
    return AuditEntry(
        customer_id=profile.id,
        employee_id=employee_id,
        type=TransactionType.PURCHASE,
        points_change=points_change,
        points_balance_after=profile.points_balance,
        reward_points_threshold=None,
    )


def redemption_entry(
    profile: ProfileSnapshot,
    *,
    category: RewardCategory,
    threshold: int,
    employee_id: Optional[str] = None,
) -> AuditEntry:
    # Redemption never moves the balance
    return AuditEntry(
        customer_id=profile.id,
        employee_id=employee_id,
        type=TransactionType.for_redemption(category),
        points_change=0,
        points_balance_after=profile.points_balance,
        reward_points_threshold=threshold,
    )


async def record_audit_entry(db: AsyncSession, entry: AuditEntry) -> bool:
    """Append ``entry`` in its own commit.

    Must run after the ledger mutation has committed. A failure here is
    logged and rolled back but never reaches the caller: the ledger result
    does not depend on the audit trail.
    """
    try:
        db.add(entry)
        await db.commit()
    except Exception:
        logger.exception(
            "Audit logging failed (non-critical) for customer %s type=%s",
            entry.customer_id,
            entry.type.value,
        )
        try:
            await db.rollback()
        except Exception:
            logger.exception("Rollback after audit failure also failed")
        return False

    logger.info(
        "Audit %s for customer %s: %+d points, balance after %d",
        entry.type.value,
        entry.customer_id,
        entry.points_change,
        entry.points_balance_after,
    )
    return True
