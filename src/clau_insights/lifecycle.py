"""
Per-request state machine.

    IDLE -> STREAMING -> {COMPLETE, ERRORED, FELL_BACK} -> TERMINAL

Every stream frame, rejection and fallback outcome for one request goes through
``RequestLifecycle.dispatch``. State always advances, so a superseded request
still runs to its end, but the transcript is only touched while the request is
the current one.
"""

import logging
from enum import Enum
from typing import Any, Optional

from clau_insights.models.conversation import ConversationEntry, Role, Transcript
from clau_insights.models.request import RequestRecord
from clau_insights.models.stream import StreamMarker, StreamMessage
from clau_insights.tracking import StaleResultFilter

logger = logging.getLogger(__name__)


class RequestState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERRORED = "errored"
    FELL_BACK = "fell_back"
    TERMINAL = "terminal"


class LifecycleEvent(str, Enum):
    OPENED = "opened"                      # stream connected
    FRAME = "frame"                        # payload: StreamMessage
    REJECTED = "rejected"                  # payload: user-facing message
    TRANSPORT_FAILED = "transport_failed"  # payload: exception
    NON_STREAMING = "non_streaming"        # caller asked for the blocking call
    FALLBACK_RESULT = "fallback_result"    # payload: FallbackOutcome
    FALLBACK_FAILED = "fallback_failed"    # payload: FallbackOutcome


_SETTLING = {RequestState.COMPLETE, RequestState.ERRORED}

_TRANSITIONS: dict[tuple[RequestState, LifecycleEvent], RequestState] = {
    (RequestState.IDLE, LifecycleEvent.OPENED): RequestState.STREAMING,
    (RequestState.STREAMING, LifecycleEvent.FRAME): RequestState.STREAMING,
    (RequestState.IDLE, LifecycleEvent.REJECTED): RequestState.ERRORED,
    (RequestState.STREAMING, LifecycleEvent.REJECTED): RequestState.ERRORED,
    (RequestState.IDLE, LifecycleEvent.TRANSPORT_FAILED): RequestState.FELL_BACK,
    (RequestState.STREAMING, LifecycleEvent.TRANSPORT_FAILED): RequestState.FELL_BACK,
    (RequestState.IDLE, LifecycleEvent.NON_STREAMING): RequestState.FELL_BACK,
    (RequestState.FELL_BACK, LifecycleEvent.FALLBACK_RESULT): RequestState.TERMINAL,
    (RequestState.FELL_BACK, LifecycleEvent.FALLBACK_FAILED): RequestState.TERMINAL,
}


class FallbackOutcome:
    __slots__ = ("content", "using_real_data")

    def __init__(self, content: str, using_real_data: bool = False):
        self.content = content
        self.using_real_data = using_real_data

    def __repr__(self) -> str:
        return f"FallbackOutcome(content={self.content[:40]!r}, using_real_data={self.using_real_data})"


class RequestLifecycle:
    def __init__(
        self,
        record: RequestRecord,
        entry_id: str,
        transcript: Transcript,
        stale_filter: StaleResultFilter,
    ):
        self.record = record
        self.entry_id = entry_id
        self._transcript = transcript
        self._filter = stale_filter
        self._state = RequestState.IDLE

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state is RequestState.TERMINAL

    @property
    def can_fall_back(self) -> bool:
        return self._state in (RequestState.IDLE, RequestState.STREAMING)

    @property
    def is_current(self) -> bool:
        return self._filter.is_current(self.record.id)

    def freeze(self) -> None:
        """Stop showing this request as in progress; its later results are dropped anyway."""
        entry = self._transcript.get(self.entry_id)
        if entry is not None and entry.is_streaming:
            entry.is_streaming = False

    def dispatch(self, event: LifecycleEvent, payload: Any = None) -> bool:
        """Advance the state machine. Returns False if the event is not valid in this state."""
        target = _TRANSITIONS.get((self._state, event))
        if target is None:
            logger.debug(f"{self.record.id}: ignoring {event.value} in state {self._state.value}")
            return False

        if event is LifecycleEvent.FRAME:
            target = self._frame_target(payload)

        # Re-checked on every event: the request may have been superseded
        # while we were suspended on the network.
        if self.is_current:
            self._apply(event, payload)
        else:
            logger.debug(f"{self.record.id}: stale, dropping {event.value}")

        self._state = target
        if self._state in _SETTLING:
            self._state = RequestState.TERMINAL
        return True

    @staticmethod
    def _frame_target(message: StreamMessage) -> RequestState:
        if message.error is not None:
            return RequestState.ERRORED
        if message.is_complete:
            return RequestState.COMPLETE
        return RequestState.STREAMING

    def _entry(self) -> Optional[ConversationEntry]:
        entry = self._transcript.get(self.entry_id)
        if entry is None:
            logger.debug(f"{self.record.id}: entry {self.entry_id} no longer in transcript")
        return entry

    def _apply(self, event: LifecycleEvent, payload: Any) -> None:
        if event is LifecycleEvent.FRAME:
            self._apply_frame(payload)
        elif event is LifecycleEvent.REJECTED:
            entry = self._entry()
            if entry is not None:
                entry.content = payload
                entry.is_streaming = False
        elif event in (LifecycleEvent.FALLBACK_RESULT, LifecycleEvent.FALLBACK_FAILED):
            self._apply_fallback(payload, succeeded=event is LifecycleEvent.FALLBACK_RESULT)

    def _apply_frame(self, message: StreamMessage) -> None:
        entry = self._entry()
        if entry is None:
            return
        if message.error is not None:
            entry.content = message.error
            entry.is_streaming = False
            return
        if message.marker is StreamMarker.USING_REAL_DATA:
            entry.using_real_data = True
        elif message.marker is StreamMarker.USING_BACKUP_SERVICE:
            entry.using_backup_service = True
        elif message.marker is StreamMarker.USING_PROVIDER:
            entry.provider = message.provider
        elif message.chunk:
            entry.content += message.chunk
        if message.is_complete:
            entry.is_streaming = False

    def _apply_fallback(self, outcome: FallbackOutcome, succeeded: bool) -> None:
        entry = self._transcript.get(self.entry_id)
        if entry is None:
            # chat was cleared underneath us; show the answer as a fresh entry
            self._transcript.append(ConversationEntry(
                id=self.entry_id,
                role=Role.ASSISTANT,
                content=outcome.content,
                using_real_data=succeeded and outcome.using_real_data,
                request_id=self.record.id,
            ))
            return
        entry.content = outcome.content
        entry.is_streaming = False
        if succeeded:
            entry.using_real_data = outcome.using_real_data
