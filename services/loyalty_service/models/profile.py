"""CustomerProfile model: points balance and redeemed reward thresholds."""

from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column


def empty_redeemed_rewards() -> dict:
    return {"coffees": [], "meals": []}


class CustomerProfile(Base):
    """Loyalty profile. One per customer, keyed by the external customer id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    points_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_purchases: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    redeemed_rewards: Mapped[dict] = mapped_column(
        JSON, default=empty_redeemed_rewards, nullable=False
    )
    # Optimistic concurrency counter; every UPDATE is conditional on it
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_profile_points_non_negative"),
        CheckConstraint(
            "total_purchases >= 0", name="ck_profile_purchases_non_negative"
        ),
    )

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip() or "Customer"

    def __repr__(self) -> str:
        return f"<CustomerProfile {self.id} points={self.points_balance}>"
