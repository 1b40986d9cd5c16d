"""
Blocking request/response path, used when streaming is unavailable or fails.
"""

import json
import logging
from typing import Any, Optional

from clau_insights.errors import ClauError, OwnershipError, user_message_for
from clau_insights.lifecycle import FallbackOutcome, LifecycleEvent, RequestLifecycle
from clau_insights.transport.http import HttpClient

logger = logging.getLogger(__name__)

GENERATE_PATH = "/insights/generate"
UNAVAILABLE_MESSAGE = "I'm unable to generate insights at the moment. Please try again later."


def normalize_insight(data: Any) -> str:
    """Pull display text out of a generate response.

    Older backends answer in several shapes. Priority:
    ``insights`` as a string, then ``insights.insight``, then
    ``insights.text``, then the whole ``insights`` value as JSON.
    A missing ``insights`` yields the "unable to generate" text; an empty
    string is returned as-is.
    """
    if not isinstance(data, dict) or data.get("insights") is None:
        return UNAVAILABLE_MESSAGE
    insights = data["insights"]
    if isinstance(insights, str):
        return insights
    if isinstance(insights, dict):
        for key in ("insight", "text"):
            value = insights.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return json.dumps(insights)


class FallbackInvoker:
    def __init__(
        self,
        http: HttpClient,
        user_id: Optional[str] = None,
        use_connected_data: bool = False,
        use_direct_data: bool = False,
        integration_mode: str = "default",
    ):
        self._http = http
        self._user_id = user_id
        self._use_connected_data = use_connected_data
        self._use_direct_data = use_direct_data
        self._integration_mode = integration_mode

    def _check_owner(self, data: Any, request_id: str) -> None:
        if not isinstance(data, dict) or not self._user_id:
            return
        owner = data.get("userId")
        if owner is not None and str(owner) != str(self._user_id):
            raise OwnershipError(
                f"Response for {request_id} belongs to another user",
                details={"requestId": request_id, "userId": owner},
            )

    async def fetch(self, lifecycle: RequestLifecycle) -> str:
        """Make the generate call and return display text. Raises ClauError."""
        record = lifecycle.record
        data = await self._http.post(GENERATE_PATH, {
            "query": record.query,
            "requestId": record.id,
            "userId": self._user_id,
            "sessionId": record.session_id,
            "integrationMode": self._integration_mode,
            "useConnectedData": self._use_connected_data,
            "useDirectData": self._use_direct_data,
        }, session_id=record.session_id)
        self._check_owner(data, record.id)
        return normalize_insight(data)

    async def run(self, lifecycle: RequestLifecycle) -> None:
        request_id = lifecycle.record.id
        logger.info(f"{request_id}: using non-streaming generate call")
        try:
            text = await self.fetch(lifecycle)
        except OwnershipError as e:
            logger.error(f"{request_id}: discarded response: {e}")
            lifecycle.dispatch(LifecycleEvent.FALLBACK_FAILED, FallbackOutcome(user_message_for(e)))
            return
        except ClauError as e:
            logger.warning(f"{request_id}: generate call failed: {e}")
            lifecycle.dispatch(LifecycleEvent.FALLBACK_FAILED, FallbackOutcome(user_message_for(e)))
            return
        lifecycle.dispatch(
            LifecycleEvent.FALLBACK_RESULT,
            FallbackOutcome(text, using_real_data=self._use_connected_data),
        )
