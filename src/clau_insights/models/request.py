"""
Request records — one per submitted question.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RequestScope(str, Enum):
    QUERY = "query"
    SUGGESTED = "suggested"


class RequestRecord(BaseModel):
    """Identifies one submitted question. Superseded records are dropped, never edited."""

    id: str
    issued_at: datetime = Field(alias="issuedAt")
    scope: RequestScope = RequestScope.QUERY
    query: str = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True, "frozen": True}
