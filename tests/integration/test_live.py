"""
Integration tests for the CLAU insights client against a running backend.

Requires environment variables:
  CLAU_ACCESS_TOKEN  — valid access token
  CLAU_USER_ID       — user ID the token belongs to
  CLAU_BASE_URL      — (optional) defaults to http://localhost:5000
  CLAU_CLIENT_ID     — (optional) registered client for status checks

Run: CLAU_INTEGRATION=1 pytest tests/integration/ -v
"""

import os

import pytest

from clau_insights import AccessStatus, AsyncInsightsClient
from clau_insights.errors import GENERIC_RETRY_MESSAGE, SESSION_EXPIRED_MESSAGE
from clau_insights.store import MemoryStore
from clau_insights.transport.http import DEFAULT_BASE_URL

SKIP = not os.environ.get("CLAU_INTEGRATION")
ACCESS_TOKEN = os.environ.get("CLAU_ACCESS_TOKEN", "")
USER_ID = os.environ.get("CLAU_USER_ID", "")
BASE_URL = os.environ.get("CLAU_BASE_URL", DEFAULT_BASE_URL)
CLIENT_ID = os.environ.get("CLAU_CLIENT_ID") or None

pytestmark = pytest.mark.skipif(SKIP, reason="CLAU_INTEGRATION not set")


def make_client(**kwargs) -> AsyncInsightsClient:
    kwargs.setdefault("access_token", ACCESS_TOKEN)
    return AsyncInsightsClient(
        user_id=USER_ID,
        base_url=BASE_URL,
        client_id=CLIENT_ID,
        store=MemoryStore(),
        **kwargs,
    )


class TestStreaming:
    @pytest.mark.asyncio
    async def test_streamed_answer_settles(self):
        async with make_client() as client:
            entry = await client.ask("How can I save more money each month?")

        assert entry is not None
        assert entry.is_streaming is False
        assert entry.content
        print(f"  Response ({len(entry.content)} chars): {entry.content[:200]}...")

    @pytest.mark.asyncio
    async def test_non_streaming_answer(self):
        async with make_client() as client:
            entry = await client.ask("Summarize my spending.", stream=False)

        assert entry.is_streaming is False
        assert entry.content


class TestSessions:
    @pytest.mark.asyncio
    async def test_clear_history_rotates_session(self):
        async with make_client() as client:
            await client.ask("Hello", stream=False)
            before = client.session_id
            assert await client.clear_history() is True

            assert client.session_id
            assert client.session_id != before
            assert len(client.transcript) == 1


class TestStatus:
    @pytest.mark.asyncio
    async def test_refresh_reports_a_status(self):
        async with make_client() as client:
            status = await client.refresh_status()

        assert isinstance(status, AccessStatus)


class TestErrorHandling:
    @pytest.mark.asyncio
    async def test_invalid_token_reports_expired_session(self):
        async with make_client(access_token="invalid") as client:
            entry = await client.ask("Hello")

        assert entry.content in (SESSION_EXPIRED_MESSAGE, GENERIC_RETRY_MESSAGE)
        assert entry.is_streaming is False
