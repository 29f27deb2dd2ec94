from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class Company(BaseModel):
    id: int
    name: str
    billing_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompanyCreateModel(BaseModel):
    """Model for creating a new company."""

    name: str
    billing_email: Optional[str] = None
