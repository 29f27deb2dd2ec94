from pydantic import BaseModel

from packages.billing.models.domain.claims import SubscriptionClaims


class AuthenticatedUser(BaseModel):
    """User context passed through authentication dependencies"""

    user_id: int
    company_id: int
    role: str = "member"
    subscription: SubscriptionClaims = SubscriptionClaims()

    class Config:
        from_attributes = True

    @property
    def is_owner(self) -> bool:
        return self.role in ("owner", "admin")
