import asyncio

import pytest

from clau_insights.chat import greeting_for
from clau_insights.sessions import SESSION_KEY

from conftest import USER_ID, body_of, event_stream, fail, ok, sse

STATUS = "/auth/session-status"
SESSION = "/insights/session"


def rotating(ids):
    it = iter(ids)
    return lambda request: ok({"sessionId": next(it)})


class TestAdopt:
    @pytest.mark.asyncio
    async def test_adopt_persists_and_rides_on_requests(self, backend, make_client, store):
        backend.route("GET", STATUS, lambda r: ok({"hasSession": True}))
        client = make_client()

        client.sessions.adopt("s-1")
        client.sessions.adopt("s-1")
        await client.http.get(STATUS)

        assert client.session_id == "s-1"
        assert store.get(SESSION_KEY)["sessionId"] == "s-1"
        assert store.get(SESSION_KEY)["userId"] == USER_ID
        assert backend.calls[-1].headers["X-Session-Id"] == "s-1"

    @pytest.mark.asyncio
    async def test_server_assigned_session_only_fills_an_empty_slot(self, backend, make_client):
        backend.route("GET", STATUS, lambda r: ok({"hasSession": True}, headers={"X-Session-Id": "srv-1"}))
        client = make_client()

        await client.http.get(STATUS)
        assert client.session_id == "srv-1"

        client.sessions.adopt("mine")
        await client.http.get(STATUS)
        assert client.session_id == "mine"


class TestRestore:
    @pytest.mark.asyncio
    async def test_valid_session_is_kept(self, backend, make_client, store):
        store.set(SESSION_KEY, {"sessionId": "old", "userId": USER_ID, "createdAt": "2024-01-01T00:00:00Z"})
        backend.route("GET", STATUS, lambda r: ok({"hasSession": True}))
        client = make_client()

        assert await client.sessions.restore() == "old"
        assert backend.requests("GET", STATUS)[0].headers["X-Session-Id"] == "old"

    @pytest.mark.asyncio
    async def test_unknown_session_is_dropped_quietly(self, backend, make_client, store):
        store.set(SESSION_KEY, {"sessionId": "gone", "userId": USER_ID})
        backend.route("GET", STATUS, lambda r: ok({"hasSession": False}))
        client = make_client()

        assert await client.sessions.restore() is None
        assert client.session_id is None
        assert store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_failed_check_keeps_the_restored_id(self, backend, make_client, store):
        store.set(SESSION_KEY, {"sessionId": "old", "userId": USER_ID})
        backend.route("GET", STATUS, lambda r: fail(502))
        client = make_client()

        assert await client.sessions.restore() == "old"

    @pytest.mark.asyncio
    async def test_another_users_session_is_discarded(self, backend, make_client, store):
        store.set(SESSION_KEY, {"sessionId": "theirs", "userId": "u2"})
        client = make_client()

        assert await client.sessions.restore() is None
        assert backend.calls == []
        assert store.get(SESSION_KEY) is None

    @pytest.mark.asyncio
    async def test_nothing_saved(self, backend, make_client):
        client = make_client()
        assert await client.sessions.restore() is None
        assert backend.calls == []


class TestClear:
    @pytest.mark.asyncio
    async def test_clear_without_session_adopts_fresh_id_and_resets_chat(self, backend, make_client):
        backend.route("DELETE", SESSION, rotating(["s-new"]))
        backend.route("POST", "/insights/generate", lambda r: ok({"insights": "hello"}))
        client = make_client(display_name="ann@example.com")
        await client.ask("hi", stream=False)

        assert await client.clear_history() is True

        assert client.session_id == "s-new"
        assert body_of(backend.requests("DELETE", SESSION)[0]) == {"sessionId": None}
        assert [e.content for e in client.transcript] == [greeting_for("ann@example.com")]

    @pytest.mark.asyncio
    async def test_clear_twice_rotates_twice(self, backend, make_client, store):
        backend.route("DELETE", SESSION, rotating(["s-1", "s-2"]))
        client = make_client()

        assert await client.sessions.clear() is True
        assert client.session_id == "s-1"
        assert await client.sessions.clear() is True
        assert client.session_id == "s-2"

        deletes = backend.requests("DELETE", SESSION)
        assert body_of(deletes[1]) == {"sessionId": "s-1"}
        assert deletes[1].headers["X-Session-Id"] == "s-1"
        assert store.get(SESSION_KEY)["sessionId"] == "s-2"

    @pytest.mark.asyncio
    async def test_failed_clear_keeps_current_session(self, backend, make_client):
        backend.route("DELETE", SESSION, lambda r: fail(500))
        client = make_client()
        client.sessions.adopt("keep")
        rotations = []
        client.sessions.add_rotation_listener(lambda old, new: rotations.append((old, new)))

        assert await client.sessions.clear() is False
        assert client.session_id == "keep"
        assert rotations == []

    @pytest.mark.asyncio
    async def test_rotation_listener_can_be_removed(self, backend, make_client):
        backend.route("DELETE", SESSION, rotating(["a", "b"]))
        client = make_client()
        seen = []
        remove = client.sessions.add_rotation_listener(lambda old, new: seen.append(new))

        await client.sessions.clear()
        remove()
        await client.sessions.clear()

        assert seen == ["a"]

    @pytest.mark.asyncio
    async def test_rotation_strands_in_flight_request(self, backend, make_client):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            yield sse({"chunk": "Before ", "isComplete": False})
            started.set()
            await release.wait()
            yield sse({"chunk": "after rotation", "isComplete": True})

        backend.route("POST", "/insights/stream-prepare", lambda r: ok({}))
        backend.route("GET", "/insights/stream", lambda r: event_stream(slow()))
        backend.route("DELETE", SESSION, rotating(["s-2"]))
        client = make_client()
        client.sessions.adopt("s-1")

        task = asyncio.create_task(client.submit("question"))
        await asyncio.wait_for(started.wait(), timeout=2)
        await client.clear_history()
        release.set()
        record = await task

        assert record.session_id == "s-1"
        assert client.session_id == "s-2"
        assert len(client.transcript) == 1
        assert all("after rotation" not in e.content for e in client.transcript)
        assert client.coordinator.current is None

    @pytest.mark.asyncio
    async def test_clear_without_new_id_is_a_failure(self, backend, make_client):
        backend.route("DELETE", SESSION, lambda r: ok({"message": "Session cleared"}))
        client = make_client()
        client.sessions.adopt("keep")

        assert await client.sessions.clear() is False
        assert client.session_id == "keep"

    @pytest.mark.asyncio
    async def test_in_flight_request_keeps_its_own_session_header(self, backend, make_client):
        waiting = asyncio.Event()
        release = asyncio.Event()

        async def prepare(request):
            waiting.set()
            await release.wait()
            return fail(500, "Error preparing stream")

        backend.route("POST", "/insights/stream-prepare", prepare)
        backend.route("POST", "/insights/generate", lambda r: ok({"insights": "late"}))
        backend.route("DELETE", SESSION, rotating(["s-2"]))
        client = make_client()
        client.sessions.adopt("s-1")

        task = asyncio.create_task(client.submit("question"))
        await asyncio.wait_for(waiting.wait(), timeout=2)
        await client.clear_history()
        release.set()
        await task

        generate = backend.requests("POST", "/insights/generate")[0]
        assert generate.headers["X-Session-Id"] == "s-1"
        assert body_of(generate)["sessionId"] == "s-1"
        assert backend.requests("POST", "/insights/stream-prepare")[0].headers["X-Session-Id"] == "s-1"
        assert client.session_id == "s-2"

    @pytest.mark.asyncio
    async def test_request_without_session_sends_no_header_after_rotation(self, backend, make_client):
        waiting = asyncio.Event()
        release = asyncio.Event()

        async def prepare(request):
            waiting.set()
            await release.wait()
            return fail(502)

        backend.route("POST", "/insights/stream-prepare", prepare)
        backend.route("POST", "/insights/generate", lambda r: ok({"insights": "late"}))
        backend.route("DELETE", SESSION, rotating(["s-2"]))
        client = make_client()

        task = asyncio.create_task(client.submit("question"))
        await asyncio.wait_for(waiting.wait(), timeout=2)
        await client.clear_history()
        release.set()
        await task

        generate = backend.requests("POST", "/insights/generate")[0]
        assert "X-Session-Id" not in generate.headers
        assert client.session_id == "s-2"
