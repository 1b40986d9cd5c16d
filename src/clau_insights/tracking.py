"""
Request ids and the latest-request slot.
"""

import secrets
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from clau_insights.models.request import RequestRecord, RequestScope


class RequestIdentity:
    """Issues unique request ids that sort in issue order.

    Shape: ``req_{user}_{epoch_ms:013d}_{seq:06d}{random}``. The millisecond field
    never moves backwards even if the clock does, and the sequence breaks ties
    within one millisecond.
    """

    def __init__(self, user_id: Optional[str] = None, clock: Callable[[], float] = time.time):
        self._user = user_id or "nouser"
        self._clock = clock
        self._last_ms = 0
        self._seq = 0

    def next_id(self) -> str:
        now_ms = max(int(self._clock() * 1000), self._last_ms)
        self._last_ms = now_ms
        self._seq += 1
        return f"req_{self._user}_{now_ms:013d}_{self._seq:06d}{secrets.token_hex(3)}"

    def issue(
        self,
        query: str = "",
        scope: RequestScope = RequestScope.QUERY,
        session_id: Optional[str] = None,
    ) -> RequestRecord:
        request_id = self.next_id()
        return RequestRecord(
            id=request_id,
            issued_at=datetime.fromtimestamp(self._last_ms / 1000, tz=timezone.utc),
            scope=scope,
            query=query,
            session_id=session_id,
        )


class StaleResultFilter:
    """Holds the id of the most recently submitted request.

    The slot is only ever replaced, never rolled back. Anything that changes
    shared state on behalf of a request asks ``is_current`` right before doing so.
    """

    def __init__(self) -> None:
        self._latest: Optional[str] = None

    @property
    def latest(self) -> Optional[str]:
        return self._latest

    def mark_current(self, request_id: str) -> None:
        self._latest = request_id

    def is_current(self, request_id: str) -> bool:
        return self._latest is not None and self._latest == request_id
