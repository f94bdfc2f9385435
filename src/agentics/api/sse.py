"""
agentics.api.sse - Server-Sent Events Bridge
==============================================

Relays one run's AgentStepEvents to an HTTP client as ``text/event-stream``.

Frames:
    event: start|log|artifact|done|error   id: <run_id>:<seq>   data: <event JSON>
    event: snapshot   data: <status view JSON>   (run already terminal; stream closes)
    event: ping       data: {}                  (every heartbeat_seconds)
    event: bye        data: {"reason": ...}     (idle_timeout_seconds without events)

There is no replay. The endpoint subscribes BEFORE reading the run status,
so an event published in between is queued rather than lost, and a client
that connects after the run finished receives the snapshot instead.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Optional

import structlog

from agentics.core.models import RunStatusView
from agentics.orchestration.event_bus import EventStream

logger = structlog.get_logger()


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_frame(event: str, data: Any, event_id: Optional[str] = None) -> str:
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, default=str)}")
    return "\n".join(lines) + "\n\n"


async def event_frames(
    events: EventStream,
    view: RunStatusView,
    heartbeat_seconds: float,
    idle_timeout_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for one run until its terminal event or idle timeout.

    Always closes ``events`` on exit (including client disconnects).
    """
    try:
        if view.status.is_terminal:
            yield format_frame("snapshot", view.model_dump(mode="json", by_alias=True))
            return

        loop = asyncio.get_running_loop()
        last_event_at = loop.time()
        while True:
            idle_left = idle_timeout_seconds - (loop.time() - last_event_at)
            if idle_left <= 0:
                logger.info("event_stream_idle_closed", run_id=view.id)
                yield format_frame("bye", {"reason": "idle_timeout"})
                return

            try:
                event = await events.get(timeout=min(heartbeat_seconds, idle_left))
            except asyncio.TimeoutError:
                if loop.time() - last_event_at < idle_timeout_seconds:
                    yield format_frame("ping", {})
                continue

            last_event_at = loop.time()
            yield format_frame(
                event.type,
                event.model_dump(mode="json"),
                event_id=f"{event.run_id}:{event.seq}",
            )
            if event.is_terminal:
                return
    finally:
        events.close()
