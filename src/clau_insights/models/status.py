"""
Access-tier status models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AccessStatus(str, Enum):
    UNKNOWN = "unknown"
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AccessStatus":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


class StatusSnapshot(BaseModel):
    """What gets persisted between reloads."""

    status: AccessStatus = AccessStatus.UNKNOWN
    last_refreshed_at: Optional[float] = Field(default=None, alias="lastRefreshedAt")
    client_id: Optional[str] = Field(default=None, alias="clientId")

    model_config = {"populate_by_name": True}
