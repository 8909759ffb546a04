"""Loyalty Service schemas package.

Re-exports all schemas so routers can import from one place.

IMPORTANT: Every schema class must be listed here.
"""

from services.loyalty_service.schemas.loyalty import (  # noqa: F401
    AppleSyncOut,
    AvailableRewardsOut,
    CustomerOut,
    GoogleSyncOut,
    PurchaseCustomerOut,
    PurchaseRequest,
    PurchaseResponse,
    RedeemedRewardsOut,
    RedeemRequest,
    RedeemResponse,
    RewardStateResponse,
    WalletSyncOut,
)
from services.loyalty_service.schemas.passkit import (  # noqa: F401
    DeviceLogRequest,
    DeviceRegistrationRequest,
    SerialNumbersResponse,
)

__all__ = [
    # Loyalty
    "AppleSyncOut",
    "AvailableRewardsOut",
    "CustomerOut",
    "GoogleSyncOut",
    "PurchaseCustomerOut",
    "PurchaseRequest",
    "PurchaseResponse",
    "RedeemedRewardsOut",
    "RedeemRequest",
    "RedeemResponse",
    "RewardStateResponse",
    "WalletSyncOut",
    # PassKit
    "DeviceLogRequest",
    "DeviceRegistrationRequest",
    "SerialNumbersResponse",
]
