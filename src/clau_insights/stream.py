"""
Streaming path: register the request, then read frames off the event stream.
"""

import logging
from typing import Optional

import httpx

from clau_insights.errors import TransportError
from clau_insights.lifecycle import LifecycleEvent, RequestLifecycle
from clau_insights.transport.frames import parse_frame
from clau_insights.transport.http import HttpClient

logger = logging.getLogger(__name__)

PREPARE_PATH = "/insights/stream-prepare"
STREAM_PATH = "/insights/stream"


class StreamHandle:
    """An open event stream for one request. Not retried once closed."""

    def __init__(self, http: HttpClient, response: httpx.Response, lifecycle: RequestLifecycle):
        self._http = http
        self._response = response
        self._lifecycle = lifecycle
        self._closed = False
        self.frames = 0

    async def consume(self) -> None:
        """Feed frames to the lifecycle until the request settles.

        Raises TransportError if the connection drops, or ends without a
        completion frame.
        """
        request_id = self._lifecycle.record.id
        async for line in self._http.iter_lines(self._response):
            message = parse_frame(line, request_id)
            if message is None:
                continue
            self.frames += 1
            self._lifecycle.dispatch(LifecycleEvent.FRAME, message)
            if message.error is not None:
                logger.info(f"{request_id}: backend reported error: {message.error}")
                return
            if message.is_complete:
                logger.info(f"{request_id}: stream complete after {self.frames} frames")
                return
        raise TransportError(f"stream for {request_id} ended before completion")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class StreamConsumer:
    def __init__(self, http: HttpClient, user_id: Optional[str] = None, use_connected_data: bool = False):
        self._http = http
        self._user_id = user_id
        self._use_connected_data = use_connected_data

    async def open(self, lifecycle: RequestLifecycle) -> StreamHandle:
        """Register the request server-side and connect to its stream."""
        record = lifecycle.record
        await self._http.post(PREPARE_PATH, {
            "query": record.query,
            "requestId": record.id,
            "useConnectedData": self._use_connected_data,
            "userId": self._user_id,
        }, session_id=record.session_id)
        response = await self._http.open_stream(
            STREAM_PATH, params={"requestId": record.id}, session_id=record.session_id,
        )
        lifecycle.dispatch(LifecycleEvent.OPENED)
        logger.debug(f"{record.id}: stream opened")
        return StreamHandle(self._http, response, lifecycle)
