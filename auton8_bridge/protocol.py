"""Envelope codec for orchestrator messages.

Every message on the wire, in either direction, is a JSON object:

    {"endpoint": "<name>", "data": <any JSON>, "timestamp": <epoch ms>}

Object payloads are stamped with the active ``session_id`` on the way out.
Unknown optional fields MUST be ignored by the recipient.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

ENDPOINT_EVENTS = "events"
ENDPOINT_CMD = "cmd"
ENDPOINT_HUD = "hud"
ENDPOINT_NAV_STATE = "baritone_state"
ENDPOINT_DEFAULT = "default"

SESSION_ID_FIELD = "session_id"

# Inbound message class that is also forwarded to the cmd handler.
COMMAND_KIND = "command"


@dataclass(frozen=True)
class Envelope:
    """Decoded wire envelope."""

    endpoint: str
    data: Any
    timestamp: int
    session_id: str | None = None
    kind: str | None = None


def enrich_session_id(payload: Any, session_id: str | None) -> Any:
    """Return ``payload`` with ``session_id`` injected when it is missing.

    Only JSON objects are enriched; an existing ``session_id`` is never
    overwritten, so applying this twice yields the same result as once.
    """
    if not session_id or not isinstance(payload, dict):
        return payload
    if SESSION_ID_FIELD in payload:
        return payload
    return {**payload, SESSION_ID_FIELD: session_id}


def build_envelope(
    endpoint: str,
    data: Any,
    *,
    session_id: str | None = None,
    timestamp_ms: int | None = None,
) -> dict[str, Any]:
    """Build an outbound envelope.

    Args:
        endpoint: Logical endpoint/topic name.
        data: JSON-serializable payload.
        session_id: Active session id injected into object payloads.
        timestamp_ms: Optional epoch milliseconds override.
    """
    return {
        "endpoint": endpoint,
        "data": enrich_session_id(data, session_id),
        "timestamp": (
            timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        ),
    }


def encode_envelope(envelope: dict[str, Any]) -> str:
    """Serialize an envelope for the wire."""
    return json.dumps(envelope, separators=(",", ":"))


def decode_envelope(raw: str | bytes, *, kind: str | None = None) -> Envelope:
    """Parse an inbound envelope.

    Envelopes without an ``endpoint`` route to the ``default`` endpoint.
    A ``session_id`` is optional on inbound messages.

    Raises:
        ValueError: If the text is not a JSON object or the endpoint is invalid.
    """
    try:
        message = json.loads(raw)
    except RecursionError as err:
        raise ValueError("Envelope is nested too deeply") from err
    if not isinstance(message, dict):
        raise ValueError("Envelope must be a JSON object")

    endpoint = message.get("endpoint", ENDPOINT_DEFAULT)
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ValueError("Envelope endpoint must be a non-empty string")

    data = message.get("data")
    session_id = message.get(SESSION_ID_FIELD)
    if session_id is None and isinstance(data, dict):
        session_id = data.get(SESSION_ID_FIELD)

    timestamp = message.get("timestamp", 0)
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        timestamp = 0

    declared_kind = message.get("type")
    return Envelope(
        endpoint=endpoint,
        data=data,
        timestamp=timestamp,
        session_id=session_id if isinstance(session_id, str) else None,
        kind=kind or (declared_kind if isinstance(declared_kind, str) else None),
    )


def build_event(
    event: str,
    value: Any = None,
    *,
    session_id: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a lifecycle event body for the ``events`` endpoint."""
    body: dict[str, Any] = {"event": event, "ts": int(time.time())}
    if value is not None:
        body["value"] = value
    if session_id:
        body[SESSION_ID_FIELD] = session_id
    body.update(extra)
    return body
