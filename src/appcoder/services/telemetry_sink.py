"""Session lifecycle events and log-based metrics.

The coordinators report what happened to each request here:

``generation_completed``
    ``kind`` ("generate" or "modify"), ``deltas``, ``artifact_chars`` and the
    resulting ``status``.
``generation_failed``
    ``kind`` and the number of ``deltas`` applied before the stream broke or
    was abandoned. The artifact has already been cleared.
``publish_completed`` / ``publish_failed``
    ``share_id`` and ``model``, or the error text.

Events are logged on ``appcoder.telemetry`` and the latest ones are kept in a
bounded buffer for tests and diagnostics. Durations go through
:func:`record_metric` on ``appcoder.metrics``; the Prometheus series live in
``observability.metrics``.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

_logger = logging.getLogger("appcoder.telemetry")
_metric_logger = logging.getLogger("appcoder.metrics")

_MAX_BUFFER = 200
_RECENT_EVENTS: Deque["SessionEvent"] = deque(maxlen=_MAX_BUFFER)


@dataclass
class SessionEvent:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    ts: float = field(default_factory=time.time)


def record_event(name: str, **properties: Any) -> SessionEvent:
    event = SessionEvent(name=name, properties=dict(properties))
    _RECENT_EVENTS.append(event)
    _logger.info(
        "telemetry_event",
        extra={"telemetry_name": event.name, "telemetry_properties": event.properties},
    )
    return event


def list_recent_events(limit: int = 50) -> List[SessionEvent]:
    """Newest last; at most ``limit`` (and never more than the buffer holds)."""
    if limit <= 0:
        return []
    return list(_RECENT_EVENTS)[-limit:]


def clear_recent_events() -> None:
    _RECENT_EVENTS.clear()


def record_metric(
    *,
    name: str,
    value: float,
    properties: Optional[Dict[str, Any]] = None,
    metric_type: str = "gauge",
) -> None:
    """Log one measurement, e.g. ``generation_seconds`` with ``{"kind": "modify"}``.

    Durations are in seconds. ``metric_type`` is "gauge" or "counter".
    """
    _metric_logger.info(
        "metric_event",
        extra={
            "metric_name": name,
            "metric_value": value,
            "metric_properties": dict(properties or {}),
            "metric_type": metric_type,
        },
    )
