"""
Typed subscription claims carried in the access token.

Decoded once per request at the HTTP boundary. They are a stale-tolerant
hint: the ledger wins whenever the two disagree.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import SubscriptionStatus


class SubscriptionClaims(BaseModel):
    status: Optional[SubscriptionStatus] = None
    expires_at: Optional[datetime] = None
    features: List[str] = []

    @classmethod
    def from_token_payload(cls, payload: dict) -> "SubscriptionClaims":
        """Build claims from a decoded JWT; missing or malformed claims yield an empty hint."""
        raw_expiry = payload.get("subscription_expires_at")
        expires_at = None
        if isinstance(raw_expiry, (int, float)):
            expires_at = datetime.utcfromtimestamp(raw_expiry)
        elif isinstance(raw_expiry, str):
            try:
                expires_at = datetime.fromisoformat(raw_expiry).replace(tzinfo=None)
            except ValueError:
                expires_at = None

        raw_status = payload.get("subscription_status")
        try:
            status = SubscriptionStatus(raw_status) if raw_status else None
        except ValueError:
            status = None

        features = payload.get("features") or []
        if not isinstance(features, list):
            features = []

        return cls(
            status=status,
            expires_at=expires_at,
            features=[str(code) for code in features],
        )

    def is_present(self) -> bool:
        return self.status is not None and self.expires_at is not None
