"""Loyalty ledger request/response schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    """Reward redemption. ``type`` and ``category`` are accepted synonyms.

    ``points`` stays untyped here so the ledger can reject booleans and
    numeric strings with its own messages.
    """

    customer_id: str = Field(alias="customerId", min_length=1)
    type: Optional[str] = None
    category: Optional[str] = None
    points: Any = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def reward_category(self) -> Optional[str]:
        return self.type if self.type is not None else self.category


class PurchaseRequest(BaseModel):
    customer_id: str = Field(alias="customerId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class RedeemedRewardsOut(BaseModel):
    coffees: list[int] = []
    meals: list[int] = []


class CustomerOut(BaseModel):
    id: str
    name: str
    points: int
    redeemed_rewards: RedeemedRewardsOut = Field(alias="redeemedRewards")

    model_config = ConfigDict(populate_by_name=True)


class PurchaseCustomerOut(BaseModel):
    id: str
    name: str
    total_purchases: int = Field(alias="totalPurchases")
    points_balance: int = Field(alias="pointsBalance")

    model_config = ConfigDict(populate_by_name=True)


class AppleSyncOut(BaseModel):
    attempted: bool
    notified_count: int = Field(0, alias="notifiedCount")
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class GoogleSyncOut(BaseModel):
    attempted: bool
    updated: bool = False
    outcome: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WalletSyncOut(BaseModel):
    apple: AppleSyncOut
    google: GoogleSyncOut

    model_config = ConfigDict(from_attributes=True)


class RedeemResponse(BaseModel):
    success: bool = True
    message: str
    customer: CustomerOut
    wallet_sync: Optional[WalletSyncOut] = Field(None, alias="walletSync")

    model_config = ConfigDict(populate_by_name=True)


class PurchaseResponse(BaseModel):
    success: bool = True
    customer: PurchaseCustomerOut
    points_earned: int = Field(alias="pointsEarned")
    reward_earned: bool = Field(alias="rewardEarned")
    reward_type: Optional[str] = Field(None, alias="rewardType")
    earned_meal: bool = Field(alias="earnedMeal")
    earned_coffee: bool = Field(alias="earnedCoffee")
    wallet_sync: Optional[WalletSyncOut] = Field(None, alias="walletSync")

    model_config = ConfigDict(populate_by_name=True)


class AvailableRewardsOut(BaseModel):
    coffees: list[int] = []
    meals: list[int] = []


class RewardStateResponse(BaseModel):
    customer_id: str = Field(alias="customerId")
    points: int
    available: AvailableRewardsOut
    redeemed_rewards: RedeemedRewardsOut = Field(alias="redeemedRewards")
    reward_type: Optional[str] = Field(None, alias="rewardType")
    message: str
    label: str

    model_config = ConfigDict(populate_by_name=True)
