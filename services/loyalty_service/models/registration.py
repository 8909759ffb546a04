"""PassRegistration model: Apple Wallet device registrations."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column


class PassRegistration(Base):
    """A device that added a customer's pass and can receive update pushes.

    Written only by the PassKit web service; read by wallet sync.
    """

    __tablename__ = "pass_registrations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    device_library_identifier: Mapped[str] = mapped_column(String, nullable=False)
    pass_type_identifier: Mapped[str] = mapped_column(String, nullable=False)
    serial_number: Mapped[str] = mapped_column(String, index=True, nullable=False)
    push_token: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "device_library_identifier",
            "pass_type_identifier",
            "serial_number",
            name="uq_pass_registration_device_pass_serial",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PassRegistration {self.device_library_identifier} "
            f"serial={self.serial_number}>"
        )
