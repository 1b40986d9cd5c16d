"""
Decoded stream frames.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class StreamMarker(str, Enum):
    NONE = "none"
    USING_REAL_DATA = "using_real_data"
    USING_BACKUP_SERVICE = "using_backup_service"
    USING_PROVIDER = "using_provider"


class StreamMessage(BaseModel):
    request_id: str
    chunk: Optional[str] = None
    is_complete: bool = False
    error: Optional[str] = None
    marker: StreamMarker = StreamMarker.NONE
    provider: Optional[str] = None  # set with USING_PROVIDER

    @property
    def carries_text(self) -> bool:
        return self.marker is StreamMarker.NONE and self.error is None
