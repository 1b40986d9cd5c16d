"""
Conversation transcript — the ordered list of entries the dashboard renders.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_entry_id() -> str:
    return f"msg_{uuid.uuid4().hex[:12]}"


class ConversationEntry(BaseModel):
    id: str = Field(default_factory=new_entry_id)
    role: Role
    content: str = ""
    is_streaming: bool = Field(default=False, alias="isStreaming")
    timestamp: datetime = Field(default_factory=_now)
    using_real_data: bool = Field(default=False, alias="usingRealData")
    request_id: Optional[str] = Field(default=None, alias="requestId")
    provider: Optional[str] = None
    using_backup_service: bool = Field(default=False, alias="usingBackupService")

    model_config = {"populate_by_name": True}


class Transcript:
    """Insertion-ordered entries. Only an assistant placeholder is edited after it is added."""

    def __init__(self, greeting: Optional[str] = None) -> None:
        self._entries: list[ConversationEntry] = []
        if greeting:
            self.reset(greeting)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> list[ConversationEntry]:
        return list(self._entries)

    def append(self, entry: ConversationEntry) -> ConversationEntry:
        self._entries.append(entry)
        return entry

    def get(self, entry_id: str) -> Optional[ConversationEntry]:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def streaming(self) -> list[ConversationEntry]:
        return [e for e in self._entries if e.is_streaming]

    def last(self) -> Optional[ConversationEntry]:
        return self._entries[-1] if self._entries else None

    def reset(self, greeting: Optional[str] = None) -> None:
        self._entries.clear()
        if greeting:
            self._entries.append(ConversationEntry(role=Role.ASSISTANT, content=greeting))
