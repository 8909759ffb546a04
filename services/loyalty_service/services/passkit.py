"""PassKit web service: device registrations for Apple Wallet passes.

Devices register when a pass is added and unregister when it is removed.
These rows are what the Apple adapter pushes to and what presence detection
reads.
"""

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from libs.common.datetime_utils import as_utc
from libs.common.logging import get_logger
from services.loyalty_service.models import CustomerProfile, PassRegistration
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

AUTH_SCHEME = "ApplePass"
AUTH_TOKEN_LENGTH = 32


def pass_auth_token(serial_number: str, secret: str) -> str:
    """Authentication token embedded in the pass as ``authenticationToken``."""
    digest = hmac.new(
        secret.encode("utf-8"), serial_number.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return digest[:AUTH_TOKEN_LENGTH]


def extract_auth_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme != AUTH_SCHEME or not token.strip():
        return None
    return token.strip()


def is_authorized(authorization: Optional[str], serial_number: str, secret: str) -> bool:
    token = extract_auth_token(authorization)
    if token is None:
        return False
    return hmac.compare_digest(token, pass_auth_token(serial_number, secret))


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TAG_RESOLUTION = timedelta(microseconds=1)


def _update_tag(value: Optional[datetime]) -> Optional[str]:
    # Microseconds since the epoch, so a tag never hides a later change
    if value is None:
        return None
    return str((as_utc(value) - _EPOCH) // _TAG_RESOLUTION)


def _parse_update_tag(tag: Optional[str]) -> Optional[datetime]:
    if not tag:
        return None
    try:
        return _EPOCH + int(tag) * _TAG_RESOLUTION
    except (ValueError, OverflowError):
        logger.warning("Ignoring malformed passesUpdatedSince tag %r", tag)
        return None


async def register_device(
    db: AsyncSession,
    *,
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
    push_token: str,
) -> bool:
    """Store a registration. Returns True when a new row was created.

    Re-registering refreshes the push token.
    """
    result = await db.execute(
        select(PassRegistration).where(
            PassRegistration.device_library_identifier == device_library_identifier,
            PassRegistration.pass_type_identifier == pass_type_identifier,
            PassRegistration.serial_number == serial_number,
        )
    )
    registration = result.scalar_one_or_none()
    if registration is not None:
        if registration.push_token != push_token:
            registration.push_token = push_token
            await db.commit()
            logger.info(
                "Refreshed push token for device %s pass %s",
                device_library_identifier,
                serial_number,
            )
        return False

    db.add(
        PassRegistration(
            device_library_identifier=device_library_identifier,
            pass_type_identifier=pass_type_identifier,
            serial_number=serial_number,
            push_token=push_token,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        # Apple retried the same registration concurrently
        await db.rollback()
        return False

    logger.info(
        "Registered device %s for pass %s", device_library_identifier, serial_number
    )
    return True


async def unregister_device(
    db: AsyncSession,
    *,
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
) -> bool:
    """Remove a registration. Returns True when a row was deleted."""
    result = await db.execute(
        delete(PassRegistration).where(
            PassRegistration.device_library_identifier == device_library_identifier,
            PassRegistration.pass_type_identifier == pass_type_identifier,
            PassRegistration.serial_number == serial_number,
        )
    )
    await db.commit()
    deleted = (result.rowcount or 0) > 0
    if deleted:
        logger.info(
            "Unregistered device %s from pass %s",
            device_library_identifier,
            serial_number,
        )
    return deleted


async def serial_numbers_for_device(
    db: AsyncSession,
    *,
    device_library_identifier: str,
    pass_type_identifier: str,
    passes_updated_since: Optional[str] = None,
) -> tuple[list[str], Optional[str]]:
    """Serial numbers registered on a device, with the newest update tag.

    When ``passes_updated_since`` is given, only passes whose profile changed
    after that tag are returned.
    """
    stmt = (
        select(PassRegistration.serial_number, CustomerProfile.updated_at)
        .outerjoin(CustomerProfile, CustomerProfile.id == PassRegistration.serial_number)
        .where(
            PassRegistration.device_library_identifier == device_library_identifier,
            PassRegistration.pass_type_identifier == pass_type_identifier,
        )
        .order_by(PassRegistration.serial_number)
    )
    since = _parse_update_tag(passes_updated_since)
    if since is not None:
        stmt = stmt.where(CustomerProfile.updated_at > since)

    rows = (await db.execute(stmt)).all()
    serial_numbers = [row.serial_number for row in rows]
    updated = [row.updated_at for row in rows if row.updated_at is not None]
    last_updated = _update_tag(max(updated, key=as_utc)) if updated else None
    return serial_numbers, last_updated
