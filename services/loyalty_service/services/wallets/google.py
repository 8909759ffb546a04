"""Google Wallet loyalty objects, written directly through the REST API.

The sync is a small state machine driven by ``WalletObjectOutcome``:

    probe FOUND           -> no-op if nothing visible changed, else update
    probe NOT_FOUND,
          PERMISSION_DENIED,
          BAD_REQUEST     -> insert; insert ALREADY_EXISTS -> update
    CLASS_NOT_APPROVED    -> stop (the issuer class needs console approval)
    TRANSIENT_ERROR       -> stop, the next balance change retries

Nothing here raises for an API-side condition; callers get a result with the
outcome tag and the failure is logged.
"""

import enum
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from libs.common.config import Settings
from libs.common.logging import get_logger
from services.loyalty_service.services.identity import (
    derive_google_object_id,
    google_class_id,
    validate_google_resource_id,
)
from services.loyalty_service.services.profiles import ProfileSnapshot
from services.loyalty_service.services.rewards import (
    REWARD_STRUCTURE_TEXT,
    compute_reward_state,
)
from services.loyalty_service.services.wallets.google_auth import (
    GoogleAuthError,
    ServiceAccountTokenSource,
)

logger = get_logger(__name__)

LOYALTY_OBJECT_URL = (
    "https://walletobjects.googleapis.com/walletobjects/v1/loyaltyObject"
)


class WalletObjectOutcome(str, enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CLASS_NOT_APPROVED = "class_not_approved"
    ALREADY_EXISTS = "already_exists"
    BAD_REQUEST = "bad_request"
    TRANSIENT_ERROR = "transient_error"
    WRITTEN = "written"


# A probe that fails with one of these may still be followed by an insert
_INSERTABLE = {
    WalletObjectOutcome.NOT_FOUND,
    WalletObjectOutcome.PERMISSION_DENIED,
    WalletObjectOutcome.BAD_REQUEST,
}


@dataclass(frozen=True)
class GoogleWalletSyncResult:
    updated: bool
    outcome: WalletObjectOutcome
    object_id: Optional[str] = None


@dataclass(frozen=True)
class ApiResult:
    outcome: WalletObjectOutcome
    status_code: Optional[int] = None
    body: Optional[dict] = None
    message: str = ""


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or "")
    return str(error or "")


def classify_response(status_code: int, message: str = "") -> WalletObjectOutcome:
    """Map a non-2xx Wallet API response to an outcome tag."""
    lowered = message.lower()
    if status_code in (400, 404) and (
        "not approved" in lowered or "classnotfound" in lowered
    ):
        return WalletObjectOutcome.CLASS_NOT_APPROVED
    if status_code == 404:
        return WalletObjectOutcome.NOT_FOUND
    if status_code == 403:
        return WalletObjectOutcome.PERMISSION_DENIED
    if status_code == 409:
        return WalletObjectOutcome.ALREADY_EXISTS
    if status_code == 400:
        return WalletObjectOutcome.BAD_REQUEST
    # 401, 429, 5xx and anything unexpected: worth retrying later
    return WalletObjectOutcome.TRANSIENT_ERROR


def build_loyalty_object(
    profile: ProfileSnapshot, *, object_id: str, class_id: str
) -> dict[str, Any]:
    """Full loyalty object body for insert and update."""
    state = compute_reward_state(profile.points_balance, profile.redeemed_rewards)
    member_name = profile.member_name
    return {
        "id": object_id,
        "classId": class_id,
        "state": "ACTIVE",
        "accountName": member_name,
        "accountId": profile.id,
        "loyaltyPoints": {
            "balance": {"int": profile.points_balance},
            "label": "Points",
        },
        "barcode": {
            "type": "QR_CODE",
            "value": profile.id,
            "alternateText": f"{profile.id[:8]}...",
        },
        "textModulesData": [
            {"id": "member", "header": "MEMBER", "body": member_name},
            {"id": "reward", "header": state.label, "body": state.message},
            {
                "id": "rewardStructure",
                "header": "Reward Structure",
                "body": REWARD_STRUCTURE_TEXT,
            },
        ],
    }


def _balance_of(loyalty_object: dict) -> Optional[int]:
    balance = (loyalty_object.get("loyaltyPoints") or {}).get("balance") or {}
    value = balance.get("int")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _reward_module(loyalty_object: dict) -> Optional[tuple]:
    for module in loyalty_object.get("textModulesData") or []:
        if module.get("id") == "reward":
            return module.get("header"), module.get("body")
    return None


def is_unchanged(existing: dict, desired: dict) -> bool:
    """True when balance and reward text already match what we would write."""
    return _balance_of(existing) == _balance_of(desired) and _reward_module(
        existing
    ) == _reward_module(desired)


class GoogleWalletAdapter:
    """Keeps one customer's loyalty object in line with the ledger."""

    def __init__(
        self,
        *,
        issuer_id: str,
        class_suffix: str,
        token_source: ServiceAccountTokenSource,
        timeout: float = 10.0,
        base_url: str = LOYALTY_OBJECT_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        # An issuer id that cannot form a valid resource id is fatal
        validate_google_resource_id(f"{issuer_id}.probe")
        self.issuer_id = issuer_id
        self.class_id = google_class_id(issuer_id, class_suffix)
        self._token_source = token_source
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "GoogleWalletAdapter":
        return cls(
            issuer_id=settings.GOOGLE_WALLET_ISSUER_ID,
            class_suffix=settings.GOOGLE_WALLET_CLASS_ID,
            token_source=ServiceAccountTokenSource.from_settings(
                settings, http_client=http_client
            ),
            timeout=settings.GOOGLE_WALLET_TIMEOUT_SECONDS,
            http_client=http_client,
        )

    def object_id_for(self, customer_id: str) -> str:
        return derive_google_object_id(customer_id, self.issuer_id)

    async def _send(
        self, method: str, url: str, headers: dict, json: Optional[dict]
    ) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(
                method, url, headers=headers, json=json, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, headers=headers, json=json)

    async def _call(
        self,
        method: str,
        path: str = "",
        *,
        json: Optional[dict] = None,
        success: WalletObjectOutcome,
    ) -> ApiResult:
        try:
            token = await self._token_source.get_token()
        except GoogleAuthError as exc:
            logger.warning("Google Wallet auth failed: %s", exc)
            return ApiResult(WalletObjectOutcome.TRANSIENT_ERROR, message=str(exc))

        url = f"{self._base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await self._send(method, url, headers, json)
        except httpx.TimeoutException:
            logger.warning("Google Wallet %s %s timed out", method, url)
            return ApiResult(WalletObjectOutcome.TRANSIENT_ERROR, message="timeout")
        except httpx.HTTPError as exc:
            logger.warning("Google Wallet %s %s failed: %s", method, url, exc)
            return ApiResult(WalletObjectOutcome.TRANSIENT_ERROR, message=str(exc))

        if response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            return ApiResult(success, response.status_code, body)

        message = _error_message(response)
        outcome = classify_response(response.status_code, message)
        logger.info(
            "Google Wallet %s %s -> %s (%s): %s",
            method,
            path or "/",
            response.status_code,
            outcome.value,
            message,
        )
        return ApiResult(outcome, response.status_code, message=message)

    async def fetch_object(self, object_id: str) -> ApiResult:
        return await self._call(
            "GET", f"/{object_id}", success=WalletObjectOutcome.FOUND
        )

    async def object_exists(self, customer_id: str) -> bool:
        result = await self.fetch_object(self.object_id_for(customer_id))
        return result.outcome is WalletObjectOutcome.FOUND

    async def _insert(self, payload: dict) -> ApiResult:
        return await self._call("POST", json=payload, success=WalletObjectOutcome.WRITTEN)

    async def _update(self, payload: dict) -> ApiResult:
        return await self._call(
            "PUT", f"/{payload['id']}", json=payload, success=WalletObjectOutcome.WRITTEN
        )

    def _finish(
        self, customer_id: str, object_id: str, result: ApiResult
    ) -> GoogleWalletSyncResult:
        updated = result.outcome is WalletObjectOutcome.WRITTEN
        if result.outcome is WalletObjectOutcome.CLASS_NOT_APPROVED:
            logger.error(
                "Google Wallet class %s is not approved; object %s not written",
                self.class_id,
                object_id,
            )
        elif not updated:
            logger.warning(
                "Google Wallet sync for customer %s stopped at %s",
                customer_id,
                result.outcome.value,
            )
        return GoogleWalletSyncResult(updated, result.outcome, object_id)

    async def sync_object(
        self, customer_id: str, profile: ProfileSnapshot
    ) -> GoogleWalletSyncResult:
        object_id = self.object_id_for(customer_id)
        payload = build_loyalty_object(
            profile, object_id=object_id, class_id=self.class_id
        )

        probe = await self.fetch_object(object_id)
        if probe.outcome is WalletObjectOutcome.FOUND:
            if probe.body is not None and is_unchanged(probe.body, payload):
                logger.debug("Google Wallet object %s already current", object_id)
                return GoogleWalletSyncResult(True, WalletObjectOutcome.FOUND, object_id)
            return self._finish(customer_id, object_id, await self._update(payload))

        if probe.outcome in _INSERTABLE:
            inserted = await self._insert(payload)
            if inserted.outcome is WalletObjectOutcome.ALREADY_EXISTS:
                inserted = await self._update(payload)
            return self._finish(customer_id, object_id, inserted)

        return self._finish(customer_id, object_id, probe)

    async def sync(self, customer_id: str, profile: ProfileSnapshot) -> bool:
        result = await self.sync_object(customer_id, profile)
        return result.updated
