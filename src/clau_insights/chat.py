"""
Request coordinator — turns a question into one tracked insight request.

Flow per submit:
- append the user entry and an empty streaming assistant entry
- issue a request id and make it the current one
- stream the answer; on a transport failure fall back to the blocking call once
- 401 and backend-reported errors end the request without a fallback
"""

import logging
from typing import Callable, Optional

from clau_insights.errors import ClauError, GENERIC_RETRY_MESSAGE, is_rejection, user_message_for
from clau_insights.fallback import FallbackInvoker
from clau_insights.lifecycle import FallbackOutcome, LifecycleEvent, RequestLifecycle, RequestState
from clau_insights.models.conversation import ConversationEntry, Role, Transcript
from clau_insights.models.request import RequestRecord, RequestScope
from clau_insights.stream import StreamConsumer
from clau_insights.tracking import RequestIdentity, StaleResultFilter

logger = logging.getLogger(__name__)

SUGGESTED_PROMPTS = [
    "How much did I spend on dining out last month?",
    "What are my top expense categories?",
    "How can I improve my savings rate?",
    "Am I on track with my budget this month?",
]

CONNECTED_PROMPTS = [
    "How much did I spend on dining out last month?",
    "What's my current account balance?",
    "How can I improve my savings?",
    "Am I spending more on groceries than average?",
]


def greeting_for(name: Optional[str] = None) -> str:
    who = f" {name}" if name else ""
    return (
        f"Hello{who}! I am CLAU, your Banking Intelligence Assistant. "
        "How can I help you with your financial data today?"
    )


class RequestCoordinator:
    def __init__(
        self,
        stream: StreamConsumer,
        fallback: FallbackInvoker,
        identity: RequestIdentity,
        stale_filter: Optional[StaleResultFilter] = None,
        transcript: Optional[Transcript] = None,
        session_id: Optional[Callable[[], Optional[str]]] = None,
        greeting: Optional[str] = None,
        connected: bool = False,
    ):
        self._stream = stream
        self._fallback = fallback
        self._identity = identity
        self._filter = stale_filter or StaleResultFilter()
        self._greeting = greeting if greeting is not None else greeting_for()
        self._transcript = transcript if transcript is not None else Transcript(self._greeting)
        self._session_id = session_id or (lambda: None)
        self._connected = connected
        self._active: Optional[RequestLifecycle] = None

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def stale_filter(self) -> StaleResultFilter:
        return self._filter

    @property
    def current(self) -> Optional[RequestRecord]:
        if self._active is not None and self._active.is_current:
            return self._active.record
        return None

    @property
    def suggested_prompts(self) -> list[str]:
        return list(CONNECTED_PROMPTS if self._connected else SUGGESTED_PROMPTS)

    async def submit(
        self,
        query_text: str,
        *,
        scope: RequestScope = RequestScope.QUERY,
        stream: bool = True,
    ) -> Optional[RequestRecord]:
        """Ask a question and run the request to its terminal state.

        Blank input is a no-op and returns None. Schedule concurrent calls as
        tasks to overlap questions; only the latest one reaches the transcript.
        """
        text = (query_text or "").strip()
        if not text:
            return None

        record = self._identity.issue(text, scope=scope, session_id=self._session_id())
        if self._active is not None and not self._active.finished:
            logger.info(f"{self._active.record.id}: superseded by {record.id}")
            self._active.freeze()

        self._transcript.append(ConversationEntry(role=Role.USER, content=text, request_id=record.id))
        placeholder = self._transcript.append(
            ConversationEntry(role=Role.ASSISTANT, is_streaming=True, request_id=record.id)
        )
        self._filter.mark_current(record.id)
        lifecycle = RequestLifecycle(record, placeholder.id, self._transcript, self._filter)
        self._active = lifecycle
        logger.info(f"{record.id}: submitted ({scope.value}, stream={stream})")

        try:
            if stream:
                await self._run_stream(lifecycle)
            else:
                lifecycle.dispatch(LifecycleEvent.NON_STREAMING)
                await self._fallback.run(lifecycle)
        except Exception:
            logger.exception(f"{record.id}: unexpected failure")
            self._settle(lifecycle, GENERIC_RETRY_MESSAGE)
        return record

    async def submit_suggested(self, index: int, *, stream: bool = True) -> Optional[RequestRecord]:
        return await self.submit(self.suggested_prompts[index], scope=RequestScope.SUGGESTED, stream=stream)

    async def _run_stream(self, lifecycle: RequestLifecycle) -> None:
        failure: Optional[ClauError] = None
        try:
            handle = await self._stream.open(lifecycle)
            try:
                await handle.consume()
            finally:
                await handle.close()
        except ClauError as e:
            failure = e
        if failure is not None:
            await self._recover(lifecycle, failure)

    async def _recover(self, lifecycle: RequestLifecycle, failure: ClauError) -> None:
        request_id = lifecycle.record.id
        if is_rejection(failure):
            logger.warning(f"{request_id}: credential rejected: {failure}")
            lifecycle.dispatch(LifecycleEvent.REJECTED, user_message_for(failure))
            return
        if not lifecycle.can_fall_back:
            logger.debug(f"{request_id}: already settled, no fallback for {failure}")
            return
        lifecycle.dispatch(LifecycleEvent.TRANSPORT_FAILED, failure)
        logger.info(f"{request_id}: stream failed ({failure}), falling back")
        await self._fallback.run(lifecycle)

    @staticmethod
    def _settle(lifecycle: RequestLifecycle, message: str) -> None:
        if lifecycle.state is RequestState.FELL_BACK:
            lifecycle.dispatch(LifecycleEvent.FALLBACK_FAILED, FallbackOutcome(message))
        elif not lifecycle.finished:
            lifecycle.dispatch(LifecycleEvent.REJECTED, message)

    def reset(self, greeting: Optional[str] = None) -> None:
        """Start over with only the greeting. In-flight requests become stale."""
        if self._active is not None:
            self._active.freeze()
        # a fresh id nobody is waiting on: every in-flight request is now stale
        self._filter.mark_current(self._identity.next_id())
        self._transcript.reset(greeting if greeting is not None else self._greeting)
        logger.info("Transcript reset")
