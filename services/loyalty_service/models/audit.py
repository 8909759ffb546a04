"""AuditEntry model: append-only record of balance-affecting events."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.loyalty_service.models.enums import TransactionType, enum_values
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column


class AuditEntry(Base):
    """One row per purchase or redemption. Never updated or deleted."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    customer_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    employee_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    points_change: Mapped[int] = mapped_column(Integer, nullable=False)
    points_balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_points_threshold: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditEntry {self.id} {self.type.value} {self.points_change:+d}>"
