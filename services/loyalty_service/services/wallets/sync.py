"""Fan a committed profile change out to Apple and Google Wallet.

Sync is best-effort: it only ever runs after the ledger commit, each wallet
is isolated from the other, and nothing here raises to the caller. The
returned summary is diagnostic.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Optional

from libs.common.config import Settings
from libs.common.logging import get_logger
from services.loyalty_service.services.profiles import ProfileSnapshot
from services.loyalty_service.services.wallets.apple import ApplePushAdapter
from services.loyalty_service.services.wallets.google import GoogleWalletAdapter
from services.loyalty_service.services.wallets.presence import (
    WalletPresence,
    WalletPresenceDetector,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

NOT_CONFIGURED = "not configured"


@dataclass
class AppleSyncReport:
    attempted: bool = False
    notified_count: int = 0
    error: Optional[str] = None


@dataclass
class GoogleSyncReport:
    attempted: bool = False
    updated: bool = False
    outcome: Optional[str] = None
    error: Optional[str] = None


@dataclass
class WalletSyncSummary:
    apple: AppleSyncReport = field(default_factory=AppleSyncReport)
    google: GoogleSyncReport = field(default_factory=GoogleSyncReport)

    def as_dict(self) -> dict:
        return {"apple": asdict(self.apple), "google": asdict(self.google)}


class WalletSyncOrchestrator:
    def __init__(
        self,
        *,
        presence: WalletPresenceDetector,
        apple: Optional[ApplePushAdapter] = None,
        google: Optional[GoogleWalletAdapter] = None,
    ) -> None:
        self.presence = presence
        self.apple = apple
        self.google = google

    async def _detect(self, customer_id: str) -> WalletPresence:
        try:
            return await self.presence.detect(customer_id)
        except Exception:
            logger.exception("Wallet presence detection failed for %s", customer_id)
            return WalletPresence()

    async def _sync_apple(
        self, customer_id: str, presence: WalletPresence, force: bool
    ) -> AppleSyncReport:
        if self.apple is None:
            return AppleSyncReport(error=NOT_CONFIGURED)
        if not (force or presence.has_apple):
            return AppleSyncReport()
        try:
            notified = await self.apple.notify(customer_id)
        except Exception as exc:
            logger.exception("Apple Wallet sync failed for %s", customer_id)
            return AppleSyncReport(attempted=True, error=str(exc) or type(exc).__name__)
        return AppleSyncReport(attempted=True, notified_count=notified)

    async def _sync_google(
        self,
        customer_id: str,
        profile: ProfileSnapshot,
        presence: WalletPresence,
        force: bool,
    ) -> GoogleSyncReport:
        if self.google is None:
            return GoogleSyncReport(error=NOT_CONFIGURED)
        if not (force or presence.has_google):
            return GoogleSyncReport()
        try:
            result = await self.google.sync_object(customer_id, profile)
        except Exception as exc:
            logger.exception("Google Wallet sync failed for %s", customer_id)
            return GoogleSyncReport(attempted=True, error=str(exc) or type(exc).__name__)
        return GoogleSyncReport(
            attempted=True,
            updated=result.updated,
            outcome=result.outcome.value,
            error=None if result.updated else f"sync stopped at {result.outcome.value}",
        )

    async def sync_all(
        self, customer_id: str, profile: ProfileSnapshot, force: bool = False
    ) -> WalletSyncSummary:
        """Push ``profile`` to every wallet that holds the customer's pass.

        With ``force`` both wallets are attempted whatever detection says.
        """
        presence = await self._detect(customer_id)
        apple, google = await asyncio.gather(
            self._sync_apple(customer_id, presence, force),
            self._sync_google(customer_id, profile, presence, force),
        )
        summary = WalletSyncSummary(apple=apple, google=google)
        logger.info(
            "Wallet sync for %s: apple attempted=%s notified=%d, "
            "google attempted=%s updated=%s outcome=%s",
            customer_id,
            apple.attempted,
            apple.notified_count,
            google.attempted,
            google.updated,
            google.outcome,
        )
        return summary


def build_wallet_sync(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> WalletSyncOrchestrator:
    """Wire adapters for whichever wallets are configured.

    Raises WalletConfigurationError when a configured wallet has unusable
    credentials; that is a deployment problem and should stop startup.
    """
    google = None
    if settings.google_wallet_configured:
        google = GoogleWalletAdapter.from_settings(settings)
    else:
        logger.info("Google Wallet not configured; Google sync disabled")

    apple = None
    if settings.apple_wallet_configured:
        apple = ApplePushAdapter.from_settings(settings, session_factory)
    else:
        logger.info("APNs not configured; Apple Wallet pushes disabled")

    presence = WalletPresenceDetector(
        session_factory=session_factory,
        pass_type_id=settings.PASS_TYPE_ID,
        google=google,
        probe_timeout=settings.GOOGLE_WALLET_PROBE_TIMEOUT_SECONDS,
    )
    return WalletSyncOrchestrator(presence=presence, apple=apple, google=google)
