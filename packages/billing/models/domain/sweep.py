"""
Outcome of one scheduler sweep.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class StuckPendingChange(BaseModel):
    """A deferred change the sweep refused to commit."""

    subscription_id: int
    company_id: int
    reason: str


class SweepReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    invoices_expired: int = 0
    changes_committed: int = 0
    moved_to_past_due: int = 0
    moved_to_expired: int = 0
    stuck_changes: List[StuckPendingChange] = []
    failures: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.failures
