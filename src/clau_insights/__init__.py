"""
clau-insights — CLAU insights client for Python.

Ask for AI-generated financial insights, stream them into a transcript,
and keep the conversation session and access status in step with the backend.
"""

from clau_insights.client import AsyncInsightsClient, InsightsClient
from clau_insights.chat import RequestCoordinator
from clau_insights.sessions import SessionManager
from clau_insights.status import StatusRefreshController
from clau_insights.errors import (
    ClauError, HttpError, AuthError, PolicyError, RateLimitError, ServerError,
    TransportError, OwnershipError, SessionError,
)
from clau_insights.models.status import AccessStatus

__version__ = "0.1.0"
__all__ = [
    "AsyncInsightsClient",
    "InsightsClient",
    "RequestCoordinator",
    "SessionManager",
    "StatusRefreshController",
    "ClauError",
    "HttpError",
    "AuthError",
    "PolicyError",
    "RateLimitError",
    "ServerError",
    "TransportError",
    "OwnershipError",
    "SessionError",
    "AccessStatus",
]
