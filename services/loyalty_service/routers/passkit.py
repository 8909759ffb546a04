"""PassKit web service endpoints called by Apple Wallet on devices.

Passes are issued with ``webServiceURL`` pointing at ``/pass``, so Apple
calls ``/pass/v1/...``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from libs.common.config import Settings, get_settings
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.loyalty_service.schemas import (
    DeviceLogRequest,
    DeviceRegistrationRequest,
    SerialNumbersResponse,
)
from services.loyalty_service.services.passkit import (
    extract_auth_token,
    is_authorized,
    register_device,
    serial_numbers_for_device,
    unregister_device,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/pass/v1", tags=["passkit"])

REGISTRATION_PATH = (
    "/devices/{device_library_identifier}/registrations/"
    "{pass_type_identifier}/{serial_number}"
)


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def _require_pass_auth(
    authorization: Optional[str], serial_number: str, settings: Settings
) -> None:
    if not is_authorized(authorization, serial_number, settings.PASS_AUTH_SECRET):
        logger.warning("Rejected PassKit request for pass %s: bad token", serial_number)
        raise _unauthorized()


def _require_known_pass_type(pass_type_identifier: str, settings: Settings) -> None:
    if pass_type_identifier != settings.PASS_TYPE_ID:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Unknown pass type"
        )


@router.post(REGISTRATION_PATH)
async def register_device_for_pass(
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
    body: DeviceRegistrationRequest,
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_async_db),
):
    """Register a device to receive update pushes for a pass."""
    _require_pass_auth(authorization, serial_number, settings)
    _require_known_pass_type(pass_type_identifier, settings)
    created = await register_device(
        db,
        device_library_identifier=device_library_identifier,
        pass_type_identifier=pass_type_identifier,
        serial_number=serial_number,
        push_token=body.push_token,
    )
    return Response(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK
    )


@router.delete(REGISTRATION_PATH)
async def unregister_device_for_pass(
    device_library_identifier: str,
    pass_type_identifier: str,
    serial_number: str,
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_async_db),
):
    """Stop pushing updates for a pass to a device. Idempotent."""
    _require_pass_auth(authorization, serial_number, settings)
    await unregister_device(
        db,
        device_library_identifier=device_library_identifier,
        pass_type_identifier=pass_type_identifier,
        serial_number=serial_number,
    )
    return Response(status_code=status.HTTP_200_OK)


@router.get(
    "/devices/{device_library_identifier}/registrations/{pass_type_identifier}",
    response_model=SerialNumbersResponse,
    responses={204: {"description": "No matching passes"}},
)
async def list_registered_serial_numbers(
    device_library_identifier: str,
    pass_type_identifier: str,
    passes_updated_since: Optional[str] = Query(None, alias="passesUpdatedSince"),
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_async_db),
):
    """Serial numbers of passes on a device that changed since a tag."""
    # No serial number to check the token against, so only its shape is enforced
    if extract_auth_token(authorization) is None:
        raise _unauthorized()
    serial_numbers, last_updated = await serial_numbers_for_device(
        db,
        device_library_identifier=device_library_identifier,
        pass_type_identifier=pass_type_identifier,
        passes_updated_since=passes_updated_since,
    )
    if not serial_numbers:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return SerialNumbersResponse(
        serial_numbers=serial_numbers, last_updated=last_updated
    )


@router.post("/log")
async def log_device_messages(body: DeviceLogRequest):
    """Apple Wallet reports web service errors here."""
    for message in body.logs:
        logger.warning("PassKit device log: %s", message)
    return Response(status_code=status.HTTP_200_OK)
