"""Which wallets currently hold a customer's pass."""

import asyncio
from dataclasses import dataclass
from typing import Optional

from libs.common.logging import get_logger
from services.loyalty_service.models import PassRegistration
from services.loyalty_service.services.identity import derive_apple_serial
from services.loyalty_service.services.wallets.google import GoogleWalletAdapter
from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


@dataclass(frozen=True)
class WalletPresence:
    has_apple: bool = False
    has_google: bool = False


class WalletPresenceDetector:
    """Checks both wallets concurrently. Any failure reads as "not present"."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        pass_type_id: str,
        google: Optional[GoogleWalletAdapter] = None,
        probe_timeout: float = 2.0,
    ) -> None:
        self._session_factory = session_factory
        self._pass_type_id = pass_type_id
        self._google = google
        self._probe_timeout = probe_timeout

    async def has_apple(self, customer_id: str) -> bool:
        serial_number = derive_apple_serial(customer_id)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(
                        exists().where(
                            PassRegistration.serial_number == serial_number,
                            PassRegistration.pass_type_identifier
                            == self._pass_type_id,
                        )
                    )
                )
                return bool(result.scalar())
        except Exception:
            logger.warning(
                "Apple Wallet presence check failed for %s", customer_id, exc_info=True
            )
            return False

    async def has_google(self, customer_id: str) -> bool:
        if self._google is None:
            return False
        try:
            return await asyncio.wait_for(
                self._google.object_exists(customer_id), timeout=self._probe_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Google Wallet presence probe for %s timed out after %.1fs",
                customer_id,
                self._probe_timeout,
            )
        except Exception:
            logger.warning(
                "Google Wallet presence probe failed for %s", customer_id, exc_info=True
            )
        return False

    async def detect(self, customer_id: str) -> WalletPresence:
        has_apple, has_google = await asyncio.gather(
            self.has_apple(customer_id), self.has_google(customer_id)
        )
        return WalletPresence(has_apple=has_apple, has_google=has_google)
