"""
Session models.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class SessionState(BaseModel):
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")

    model_config = {"populate_by_name": True}
