from enum import Enum


class EmploymentStatus(str, Enum):
    """Employment states. Only ACTIVE employees occupy a seat."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    RESIGNED = "resigned"
    TERMINATED = "terminated"
