"""
Event-stream frame decoding.

The backend writes ``data: {json}`` lines separated by blank lines, plus
``:`` comment lines. Sentinel chunks such as ``<using-real-data>`` carry a
marker instead of text.
"""

import json
import logging
import re
from typing import Optional

from clau_insights.errors import GENERIC_RETRY_MESSAGE
from clau_insights.models.stream import StreamMarker, StreamMessage

logger = logging.getLogger(__name__)

REAL_DATA_SENTINEL = "<using-real-data>"
BACKUP_SERVICE_SENTINEL = "<using-backup-service>"
_PROVIDER_SENTINEL = re.compile(r"^<using-([\w.-]+)-service>$")


def _marker_for(chunk: Optional[str]) -> tuple[StreamMarker, Optional[str]]:
    if chunk == REAL_DATA_SENTINEL:
        return StreamMarker.USING_REAL_DATA, None
    if chunk == BACKUP_SERVICE_SENTINEL:
        return StreamMarker.USING_BACKUP_SERVICE, None
    if chunk:
        match = _PROVIDER_SENTINEL.match(chunk)
        if match:
            return StreamMarker.USING_PROVIDER, match.group(1)
    return StreamMarker.NONE, None


def parse_frame(line: str, request_id: str) -> Optional[StreamMessage]:
    """Decode one stream line. Returns None for separators, comments and garbage."""
    line = line.strip()
    if not line or line.startswith(":"):
        return None
    if line.startswith("data:"):
        line = line[len("data:"):].strip()
    elif ":" in line.split("{", 1)[0]:
        # other SSE fields (event:, id:, retry:) carry nothing we use
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        logger.warning(f"Skipping undecodable frame for {request_id}: {line[:80]!r}")
        return None
    if not isinstance(raw, dict):
        logger.warning(f"Skipping non-object frame for {request_id}")
        return None

    if raw.get("error"):
        error = raw.get("message") or (raw["error"] if isinstance(raw["error"], str) else GENERIC_RETRY_MESSAGE)
        return StreamMessage(request_id=request_id, error=error, is_complete=True)

    chunk = raw.get("chunk")
    if chunk is not None and not isinstance(chunk, str):
        chunk = str(chunk)
    marker, provider = _marker_for(chunk)
    return StreamMessage(
        request_id=request_id,
        chunk=None if marker is not StreamMarker.NONE else chunk,
        is_complete=bool(raw.get("isComplete", False)),
        marker=marker,
        provider=provider,
    )
