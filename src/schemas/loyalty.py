"""Pydantic schemas for loyalty points and redemption."""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class LoyaltySnapshot(BaseModel):
    """Cached projection of the customer's loyalty account."""

    model_config = ConfigDict(frozen=True)

    points: int = 0
    total_earned: int = 0
    rewards_available: int = 0
    refer_code: str = ""
    level_id: str = "0"


class RedeemResult(BaseModel):
    """Outcome of a points redemption."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str | None = None
    coupon_code: str | None = None
    discount_amount: Decimal | None = None
    remaining_points: int | None = None
    error: str | None = None


class RedeemEligibility(BaseModel):
    """Whether the customer currently has enough points to redeem."""

    model_config = ConfigDict(frozen=True)

    eligible: bool = False
    can_redeem_times: int = 0
    current_points: int = 0
