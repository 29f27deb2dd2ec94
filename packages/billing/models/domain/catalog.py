"""
Domain models for the plan catalog.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel


class Feature(BaseModel):
    code: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class Plan(BaseModel):
    """
    A purchasable plan with its features resolved in display order.

    ``price`` is per seat per month.
    """

    id: str
    name: str
    price: Decimal
    tier_level: int
    max_seats_included: Optional[int] = None
    active: bool = True
    features: List[Feature] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def feature_codes(self) -> List[str]:
        return [feature.code for feature in self.features]

    def has_feature(self, code: str) -> bool:
        return code in self.feature_codes

    def allows_seats(self, seat_count: int) -> bool:
        """False when seat_count is above the plan's cap (None means unlimited)."""
        return self.max_seats_included is None or seat_count <= self.max_seats_included

    def ranks_above(self, other: "Plan") -> bool:
        """Total order used for upgrade/downgrade decisions: tier, then price."""
        return (self.tier_level, self.price) > (other.tier_level, other.price)
