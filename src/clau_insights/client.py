"""
AsyncInsightsClient / InsightsClient — main entry points.
"""

import asyncio
import time
from typing import Any, Callable, Optional

import httpx

from clau_insights.chat import RequestCoordinator, greeting_for
from clau_insights.config import ClientConfig
from clau_insights.fallback import FallbackInvoker
from clau_insights.models.conversation import ConversationEntry, Role, Transcript
from clau_insights.models.request import RequestRecord
from clau_insights.models.status import AccessStatus
from clau_insights.sessions import SessionManager
from clau_insights.status import StatusRefreshController
from clau_insights.store import JsonFileStore, MemoryStore, PersistentStore
from clau_insights.stream import StreamConsumer
from clau_insights.tracking import RequestIdentity, StaleResultFilter
from clau_insights.transport.http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_S, HttpClient


class AsyncInsightsClient:
    """Async CLAU insights client (primary)."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        user_id: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        client_id: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        store: Optional[PersistentStore] = None,
        use_connected_data: bool = False,
        use_direct_data: bool = False,
        integration_mode: str = "default",
        display_name: Optional[str] = None,
        on_auth_expired: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.time,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._user_id = user_id
        self._greeting = greeting_for(display_name)
        self.store = store if store is not None else MemoryStore()

        self.http = HttpClient(base_url=base_url, token=access_token, timeout=timeout, transport=transport)
        self.sessions = SessionManager(self.http, self.store, user_id=user_id)
        self.status = StatusRefreshController(self.http, self.store, client_id=client_id, clock=clock)
        self.coordinator = RequestCoordinator(
            stream=StreamConsumer(self.http, user_id=user_id, use_connected_data=use_connected_data),
            fallback=FallbackInvoker(
                self.http,
                user_id=user_id,
                use_connected_data=use_connected_data,
                use_direct_data=use_direct_data,
                integration_mode=integration_mode,
            ),
            identity=RequestIdentity(user_id, clock=clock),
            stale_filter=StaleResultFilter(),
            session_id=self.sessions.current,
            greeting=self._greeting,
            connected=use_connected_data,
        )

        self.http.on_session_header(self.sessions.adopt_if_unset)
        self.http.on_unauthorized(on_auth_expired)
        self.sessions.add_rotation_listener(lambda _old, _new: self.coordinator.reset())

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "AsyncInsightsClient":
        kwargs.setdefault("store", JsonFileStore(config.state_file))
        return cls(
            access_token=config.access_token,
            user_id=config.user_id,
            base_url=config.base_url,
            client_id=config.client_id,
            timeout=config.timeout,
            use_connected_data=config.use_connected_data,
            use_direct_data=config.use_direct_data,
            integration_mode=config.integration_mode,
            display_name=config.email,
            **kwargs,
        )

    @property
    def transcript(self) -> Transcript:
        return self.coordinator.transcript

    @property
    def access_status(self) -> AccessStatus:
        return self.status.status

    @property
    def session_id(self) -> Optional[str]:
        return self.sessions.current()

    async def start(self, poll_interval_s: Optional[float] = None) -> None:
        """Restore the saved session and bring the access status up to date."""
        await self.sessions.restore()
        await self.status.refresh_on_startup()
        if poll_interval_s:
            self.status.start(poll_interval_s)

    async def submit(self, query: str, *, stream: bool = True) -> Optional[RequestRecord]:
        return await self.coordinator.submit(query, stream=stream)

    async def ask(self, query: str, *, stream: bool = True) -> Optional[ConversationEntry]:
        """Submit a question and return its assistant entry once settled."""
        record = await self.coordinator.submit(query, stream=stream)
        if record is None:
            return None
        return self.answer_for(record)

    def answer_for(self, record: RequestRecord) -> Optional[ConversationEntry]:
        for entry in self.transcript:
            if entry.role is Role.ASSISTANT and entry.request_id == record.id:
                return entry
        return None

    async def clear_history(self) -> bool:
        """Rotate the backend session; on success the transcript restarts from the greeting."""
        return await self.sessions.clear()

    async def refresh_status(self) -> AccessStatus:
        await self.status.refresh()
        return self.status.status

    async def close(self) -> None:
        await self.status.stop()
        await self.http.close()

    async def __aenter__(self) -> "AsyncInsightsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class InsightsClient:
    """Sync wrapper around AsyncInsightsClient. Runs the event loop internally."""

    def __init__(self, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncInsightsClient(**kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def transcript(self) -> Transcript:
        return self._async.transcript

    @property
    def access_status(self) -> AccessStatus:
        return self._async.access_status

    @property
    def session_id(self) -> Optional[str]:
        return self._async.session_id

    def start(self) -> None:
        self._run(self._async.start())

    def ask(self, query: str, *, stream: bool = True) -> Optional[ConversationEntry]:
        return self._run(self._async.ask(query, stream=stream))

    def clear_history(self) -> bool:
        return self._run(self._async.clear_history())

    def refresh_status(self) -> AccessStatus:
        return self._run(self._async.refresh_status())

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
