"""Apple Wallet pass update pushes over APNs.

Apple Wallet passes are pull-based: the push carries no pass data, it only
tells each registered device to fetch the latest pass from our PassKit web
service.
"""

import asyncio
import time
from pathlib import Path
from typing import Optional

import httpx
from jose import JOSEError, jwt
from libs.common.config import Settings
from libs.common.logging import get_logger
from services.loyalty_service.errors import WalletConfigurationError
from services.loyalty_service.models import PassRegistration
from services.loyalty_service.services.identity import derive_apple_serial
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

APNS_PRODUCTION_HOST = "https://api.push.apple.com"
APNS_SANDBOX_HOST = "https://api.sandbox.push.apple.com"

# APNs accepts a provider token for an hour; re-sign a little earlier
_PROVIDER_TOKEN_TTL_SECONDS = 50 * 60


class ApplePushAdapter:
    """Sends empty PassKit update pushes to every device holding a pass."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        pass_type_id: str,
        team_id: str,
        key_id: str,
        key_path: Optional[str] = None,
        signing_key: Optional[str] = None,
        production: bool = False,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not (pass_type_id and team_id and key_id):
            raise WalletConfigurationError(
                "PASS_TYPE_ID, APNS_TEAM_ID and APNS_KEY_ID are required for APNs"
            )
        if not (key_path or signing_key):
            raise WalletConfigurationError("APNS_KEY_PATH is required for APNs")
        self._session_factory = session_factory
        self.pass_type_id = pass_type_id
        self._team_id = team_id
        self._key_id = key_id
        self._key_path = key_path
        self._signing_key = signing_key
        self.host = APNS_PRODUCTION_HOST if production else APNS_SANDBOX_HOST
        self._timeout = timeout
        self._http_client = http_client
        self._provider_token: Optional[str] = None
        self._provider_token_issued_at = 0.0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "ApplePushAdapter":
        """Build from settings, signing one provider token so a bad key fails now."""
        adapter = cls(
            session_factory=session_factory,
            pass_type_id=settings.PASS_TYPE_ID,
            team_id=settings.APNS_TEAM_ID,
            key_id=settings.APNS_KEY_ID,
            key_path=settings.APNS_KEY_PATH,
            production=settings.APNS_PRODUCTION,
            timeout=settings.APNS_TIMEOUT_SECONDS,
            http_client=http_client,
        )
        adapter.provider_token()
        return adapter

    def _read_signing_key(self) -> str:
        if self._signing_key is None:
            try:
                self._signing_key = Path(self._key_path).read_text()
            except OSError as exc:
                raise WalletConfigurationError(
                    f"Cannot read APNs signing key at {self._key_path}"
                ) from exc
        return self._signing_key

    def provider_token(self) -> str:
        """ES256 provider token, re-signed once it is close to expiry."""
        now = time.time()
        if (
            self._provider_token
            and now - self._provider_token_issued_at < _PROVIDER_TOKEN_TTL_SECONDS
        ):
            return self._provider_token
        try:
            token = jwt.encode(
                {"iss": self._team_id, "iat": int(now)},
                self._read_signing_key(),
                algorithm="ES256",
                headers={"kid": self._key_id},
            )
        except JOSEError as exc:
            raise WalletConfigurationError("APNs signing key is not a valid ES256 key") from exc
        self._provider_token = token
        self._provider_token_issued_at = now
        return token

    async def registered_push_tokens(self, serial_number: str) -> list[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(PassRegistration.push_token)
                .where(
                    PassRegistration.serial_number == serial_number,
                    PassRegistration.pass_type_identifier == self.pass_type_id,
                    PassRegistration.push_token.is_not(None),
                )
                .distinct()
            )
            return [token for token in result.scalars().all() if token]

    async def _push(
        self, client: httpx.AsyncClient, push_token: str, authorization: str
    ) -> bool:
        url = f"{self.host}/3/device/{push_token}"
        headers = {
            "authorization": f"bearer {authorization}",
            "apns-topic": self.pass_type_id,
            "apns-priority": "5",
        }
        try:
            response = await client.post(url, json={}, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("APNs push to %s... failed: %s", push_token[:8], exc)
            return False

        if response.status_code == 200:
            return True
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            reason = payload.get("reason", "")
        else:
            reason = response.text[:200]
        logger.warning(
            "APNs rejected push to %s...: %s %s",
            push_token[:8],
            response.status_code,
            reason,
        )
        return False

    async def _push_all(
        self, client: httpx.AsyncClient, push_tokens: list[str], authorization: str
    ) -> list[bool]:
        return await asyncio.gather(
            *(self._push(client, token, authorization) for token in push_tokens)
        )

    async def notify(self, customer_id: str) -> int:
        """Push to every device registered for the customer's pass.

        Returns the number of pushes APNs accepted. Device failures are
        logged and skipped.
        """
        serial_number = derive_apple_serial(customer_id)
        push_tokens = await self.registered_push_tokens(serial_number)
        if not push_tokens:
            logger.info("No registered devices found for pass %s", serial_number)
            return 0

        authorization = self.provider_token()
        if self._http_client is not None:
            results = await self._push_all(self._http_client, push_tokens, authorization)
        else:
            async with httpx.AsyncClient(http2=True, timeout=self._timeout) as client:
                results = await self._push_all(client, push_tokens, authorization)

        notified = sum(results)
        logger.info(
            "Notified %d/%d devices for pass %s",
            notified,
            len(push_tokens),
            serial_number,
        )
        return notified
