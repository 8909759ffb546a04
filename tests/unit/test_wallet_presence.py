"""Unit tests for wallet presence detection."""

import asyncio

import pytest
from services.loyalty_service.models import PassRegistration
from services.loyalty_service.services.wallets.presence import (
    WalletPresence,
    WalletPresenceDetector,
)

PASS_TYPE_ID = "pass.com.vigocoffee.loyalty"

CUSTOMER_ID = "cust-0001-aaaa-bbbb"


class FakeGoogle:
    def __init__(self, exists=True, delay=0.0, error=None):
        self.exists = exists
        self.delay = delay
        self.error = error
        self.calls = []

    async def object_exists(self, customer_id):
        self.calls.append(customer_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.exists


async def _register(session_factory, pass_type_id=PASS_TYPE_ID):
    async with session_factory() as session:
        session.add(
            PassRegistration(
                device_library_identifier="device-a",
                pass_type_identifier=pass_type_id,
                serial_number=CUSTOMER_ID,
                push_token="token-aaaaaaaa",
            )
        )
        await session.commit()


def _detector(session_factory, google=None, probe_timeout=2.0):
    return WalletPresenceDetector(
        session_factory=session_factory,
        pass_type_id=PASS_TYPE_ID,
        google=google,
        probe_timeout=probe_timeout,
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_registered_device_means_apple_present(session_factory):
    await _register(session_factory)

    presence = await _detector(session_factory).detect(CUSTOMER_ID)

    assert presence == WalletPresence(has_apple=True, has_google=False)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_registration_for_other_pass_type_is_ignored(session_factory):
    await _register(session_factory, pass_type_id="pass.com.example.other")

    assert await _detector(session_factory).has_apple(CUSTOMER_ID) is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_google_object_found(session_factory):
    google = FakeGoogle(exists=True)

    presence = await _detector(session_factory, google=google).detect(CUSTOMER_ID)

    assert presence == WalletPresence(has_apple=False, has_google=True)
    assert google.calls == [CUSTOMER_ID]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_slow_google_probe_reads_as_absent(session_factory):
    google = FakeGoogle(exists=True, delay=1.0)
    detector = _detector(session_factory, google=google, probe_timeout=0.05)

    assert await detector.has_google(CUSTOMER_ID) is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failing_google_probe_reads_as_absent(session_factory):
    google = FakeGoogle(error=RuntimeError("boom"))

    assert await _detector(session_factory, google=google).has_google(CUSTOMER_ID) is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_database_failure_reads_as_apple_absent():
    def broken_factory():
        raise RuntimeError("database unavailable")

    detector = WalletPresenceDetector(
        session_factory=broken_factory, pass_type_id=PASS_TYPE_ID
    )

    assert await detector.has_apple(CUSTOMER_ID) is False
