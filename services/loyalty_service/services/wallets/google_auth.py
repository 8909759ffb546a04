"""OAuth2 access tokens for the Google Wallet API.

Uses the service-account JWT bearer grant: an RS256 assertion signed with the
service account's private key is exchanged for a short-lived access token.
"""

import asyncio
import base64
import binascii
import json
import time
from typing import Optional

import httpx
from jose import JOSEError, jwt
from libs.common.config import Settings
from libs.common.logging import get_logger
from services.loyalty_service.errors import WalletConfigurationError

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
WALLET_SCOPE = "https://www.googleapis.com/auth/wallet_object.issuer"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Refresh this many seconds before Google's stated expiry
_EXPIRY_MARGIN_SECONDS = 60
_ASSERTION_LIFETIME_SECONDS = 3600


class GoogleAuthError(Exception):
    """The token endpoint refused or could not be reached."""


def load_service_account_key(key_base64: str) -> dict:
    """Decode the base64-encoded service account JSON key file."""
    try:
        decoded = base64.b64decode(key_base64, validate=False).decode("utf-8")
        key = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise WalletConfigurationError(
            "GOOGLE_WALLET_SERVICE_ACCOUNT_KEY_BASE64 is not a base64 JSON key"
        ) from exc
    if not isinstance(key, dict) or not key.get("private_key"):
        raise WalletConfigurationError("Service account key has no private_key")
    return key


class ServiceAccountTokenSource:
    """Caches one access token and refreshes it under a lock."""

    def __init__(
        self,
        *,
        client_email: str,
        private_key: str,
        token_url: str = GOOGLE_TOKEN_URL,
        scope: str = WALLET_SCOPE,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not client_email or not private_key:
            raise WalletConfigurationError(
                "Google service account email and private key are required"
            )
        self._client_email = client_email
        # Keys pasted into env files often carry literal "\n"
        self._private_key = private_key.replace("\\n", "\n")
        self._token_url = token_url
        self._scope = scope
        self._timeout = timeout
        self._http_client = http_client
        self._lock = asyncio.Lock()
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "ServiceAccountTokenSource":
        key = load_service_account_key(settings.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY_BASE64)
        source = cls(
            client_email=key.get("client_email")
            or settings.GOOGLE_WALLET_SERVICE_ACCOUNT_EMAIL,
            private_key=key["private_key"],
            token_url=key.get("token_uri") or GOOGLE_TOKEN_URL,
            timeout=settings.GOOGLE_WALLET_TIMEOUT_SECONDS,
            http_client=http_client,
        )
        # Raises WalletConfigurationError when the key cannot sign
        source._assertion(int(time.time()))
        return source

    def _assertion(self, now: int) -> str:
        claims = {
            "iss": self._client_email,
            "scope": self._scope,
            "aud": self._token_url,
            "iat": now,
            "exp": now + _ASSERTION_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(claims, self._private_key, algorithm="RS256")
        except JOSEError as exc:
            raise WalletConfigurationError(
                "Google service account private key cannot sign tokens"
            ) from exc

    async def _exchange(self, assertion: str) -> httpx.Response:
        data = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        if self._http_client is not None:
            return await self._http_client.post(
                self._token_url, data=data, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._token_url, data=data)

    async def get_token(self) -> str:
        async with self._lock:
            if self._access_token and time.time() < self._expires_at:
                return self._access_token

            now = int(time.time())
            try:
                response = await self._exchange(self._assertion(now))
            except httpx.HTTPError as exc:
                raise GoogleAuthError(f"Token endpoint unreachable: {exc}") from exc

            if response.status_code != 200:
                logger.error(
                    "Google token exchange failed with %s: %s",
                    response.status_code,
                    response.text[:200],
                )
                raise GoogleAuthError(
                    f"Token exchange failed with status {response.status_code}"
                )

            try:
                payload = response.json()
                access_token = payload["access_token"]
                expires_in = int(payload.get("expires_in", _ASSERTION_LIFETIME_SECONDS))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.error(
                    "Google token endpoint returned an unusable body: %s",
                    response.text[:200],
                )
                raise GoogleAuthError("Token response has no usable access_token") from exc
            if not isinstance(access_token, str) or not access_token:
                raise GoogleAuthError("Token response has no usable access_token")

            self._access_token = access_token
            self._expires_at = now + expires_in - _EXPIRY_MARGIN_SECONDS
            logger.debug("Refreshed Google Wallet access token (expires in %ss)", expires_in)
            return self._access_token
