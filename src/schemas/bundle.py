"""Pydantic schemas for the personalised bundle offer."""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

BundleStatus = Literal["viewed", "added_to_cart", "rejected"]


class BundleOffer(BaseModel):
    """A bundle offer as returned by the intelligence service. Extra fields pass through."""

    model_config = ConfigDict(frozen=True, extra="allow")

    offer_id: str | int
    bundle: Any = None


class BundlePopupStatus(BaseModel):
    """Persisted visibility of the bundle popup for the current device session."""

    model_config = ConfigDict(frozen=True)

    is_visible: bool = False
    is_minimized: bool = False
