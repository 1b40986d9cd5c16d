"""
Access-status refresh with debounce.

    IDLE -> REFRESHING -> IDLE

A refresh is dropped while another is running, or within ``cooldown_s`` of the
last successful one. On start-up, a refresh only happens when the persisted
status is older than ``startup_window_s``. Failures keep the last known status.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import ValidationError

from clau_insights.errors import ClauError
from clau_insights.models.status import AccessStatus, StatusSnapshot
from clau_insights.store import PersistentStore
from clau_insights.transport.http import HttpClient

logger = logging.getLogger(__name__)

STATUS_KEY = "access_status"
USER_CLIENT_PATH = "/clients/user-client"
CLIENT_STATUS_PATH = "/clients/status/{client_id}"

DEFAULT_COOLDOWN_S = 5.0
DEFAULT_STARTUP_WINDOW_S = 15.0
DEFAULT_POLL_INTERVAL_S = 60.0


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class StatusRefreshController:
    def __init__(
        self,
        http: HttpClient,
        store: PersistentStore,
        client_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        startup_window_s: float = DEFAULT_STARTUP_WINDOW_S,
    ):
        self._http = http
        self._store = store
        self._clock = clock
        self._cooldown_s = cooldown_s
        self._startup_window_s = startup_window_s
        self._state = RefreshState.IDLE
        self._last_success_at: Optional[float] = None
        self._poller: Optional[asyncio.Task] = None
        self._snapshot = self._load()
        if client_id:
            self._snapshot.client_id = client_id

    @property
    def status(self) -> AccessStatus:
        return self._snapshot.status

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._snapshot.model_copy()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def polling(self) -> bool:
        return self._poller is not None and not self._poller.done()

    def _load(self) -> StatusSnapshot:
        raw = self._store.get(STATUS_KEY)
        if not raw:
            return StatusSnapshot()
        try:
            return StatusSnapshot.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable persisted status: {e}")
            return StatusSnapshot()

    def _persist(self) -> None:
        self._store.set(STATUS_KEY, self._snapshot.model_dump(mode="json", by_alias=True))

    async def _fetch(self) -> tuple[AccessStatus, Optional[str]]:
        client_id = self._snapshot.client_id
        if client_id:
            data = await self._http.get(CLIENT_STATUS_PATH.format(client_id=client_id))
            return AccessStatus.parse(_field(data, "status")), client_id

        data = await self._http.get(USER_CLIENT_PATH)
        client: Any = data[0] if isinstance(data, list) and data else data
        if not isinstance(client, dict):
            raise ClauError("no_client", "No client registered for this user")
        return AccessStatus.parse(client.get("status")), client.get("clientId")

    async def refresh(self) -> bool:
        """Fetch the access status. Returns True only if a new value was stored."""
        if self._state is RefreshState.REFRESHING:
            logger.debug("Status refresh already running; dropped")
            return False
        now = self._clock()
        if self._last_success_at is not None and now - self._last_success_at < self._cooldown_s:
            logger.debug("Status refreshed %.1fs ago; dropped", now - self._last_success_at)
            return False

        self._state = RefreshState.REFRESHING
        try:
            status, client_id = await self._fetch()
        except ClauError as e:
            logger.warning(f"Status refresh failed, keeping {self._snapshot.status.value}: {e}")
            return False
        finally:
            self._state = RefreshState.IDLE

        self._last_success_at = self._clock()
        if status is not self._snapshot.status:
            logger.info(f"Access status {self._snapshot.status.value} -> {status.value}")
        self._snapshot = StatusSnapshot(
            status=status,
            last_refreshed_at=self._last_success_at,
            client_id=client_id or self._snapshot.client_id,
        )
        self._persist()
        return True

    async def refresh_on_startup(self) -> bool:
        """Refresh unless a persisted value is younger than the start-up window."""
        last = self._snapshot.last_refreshed_at
        if last is not None and self._clock() - last <= self._startup_window_s:
            logger.debug("Persisted status is fresh; skipping start-up refresh")
            return False
        return await self.refresh()

    def start(self, interval_s: float = DEFAULT_POLL_INTERVAL_S) -> None:
        """Poll on a timer. Each tick goes through the same guards as refresh()."""
        if self.polling:
            return

        async def _poll() -> None:
            while True:
                try:
                    await self.refresh()
                except Exception:
                    logger.exception("Status poll tick failed")
                await asyncio.sleep(interval_s)

        self._poller = asyncio.get_running_loop().create_task(_poll())

    async def stop(self) -> None:
        poller, self._poller = self._poller, None
        if poller is None:
            return
        poller.cancel()
        try:
            await poller
        except asyncio.CancelledError:
            pass


def _field(data: Any, key: str) -> Optional[str]:
    return data.get(key) if isinstance(data, dict) else None
