"""Basic unit tests for the clau-insights package."""

from clau_insights import (
    AccessStatus,
    AsyncInsightsClient,
    AuthError,
    ClauError,
    HttpError,
    InsightsClient,
    OwnershipError,
    PolicyError,
    RateLimitError,
    ServerError,
    SessionError,
    TransportError,
    __version__,
)
from clau_insights.errors import (
    GENERIC_RETRY_MESSAGE,
    POLICY_REFUSAL_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    is_rejection,
    user_message_for,
)


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert InsightsClient is not None
    assert AsyncInsightsClient is not None


def test_error_hierarchy():
    for cls in (HttpError, TransportError, OwnershipError, SessionError):
        assert issubclass(cls, ClauError)
    for cls in (AuthError, PolicyError, RateLimitError, ServerError):
        assert issubclass(cls, HttpError)


def test_error_attributes():
    err = ClauError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None

    auth = AuthError("expired", details={"message": "expired"})
    assert auth.status_code == 401
    assert auth.code == "auth_error"
    assert ServerError(503, "down").status_code == 503


def test_user_message_table():
    assert user_message_for(AuthError("token expired")) == SESSION_EXPIRED_MESSAGE
    assert user_message_for(PolicyError("forbidden")) == POLICY_REFUSAL_MESSAGE
    assert user_message_for(PolicyError("x", details={"message": "Not allowed here"})) == "Not allowed here"
    assert user_message_for(RateLimitError("slow down")) == GENERIC_RETRY_MESSAGE
    assert user_message_for(ServerError(500, "boom")) == GENERIC_RETRY_MESSAGE
    assert user_message_for(TransportError("refused")) == GENERIC_RETRY_MESSAGE
    assert user_message_for(ValueError("anything")) == GENERIC_RETRY_MESSAGE


def test_only_expired_credentials_are_rejections():
    assert is_rejection(AuthError("x"))
    assert not is_rejection(PolicyError("x"))
    assert not is_rejection(RateLimitError("x"))
    assert not is_rejection(ServerError(500, "x"))
    assert not is_rejection(TransportError("x"))


def test_access_status_parse():
    assert AccessStatus.parse("active") is AccessStatus.ACTIVE
    assert AccessStatus.parse("SUSPENDED") is AccessStatus.SUSPENDED
    assert AccessStatus.parse("bogus") is AccessStatus.UNKNOWN
    assert AccessStatus.parse(None) is AccessStatus.UNKNOWN


def test_sync_client_runs_its_own_loop(backend):
    from conftest import BASE_URL, TOKEN, USER_ID, ok

    backend.route("POST", "/insights/generate", lambda r: ok({"insights": "sync answer"}))
    client = InsightsClient(access_token=TOKEN, user_id=USER_ID, base_url=BASE_URL, transport=backend.transport)
    try:
        entry = client.ask("hi", stream=False)
    finally:
        client.close()

    assert entry.content == "sync answer"
    assert client.access_status is AccessStatus.UNKNOWN
