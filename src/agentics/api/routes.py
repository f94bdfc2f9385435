"""
agentics.api.routes - HTTP Routes
===================================

    POST /run                      start a run             → {runId}
    GET  /runs?limit=              caller's recent runs    → {runs: [...]}
    GET  /status/{run_id}          status snapshot         → {id, status, artifacts, budget, error}
    POST /status/{run_id}/cancel   cancel a run            → {canceled}
    GET  /status/{run_id}/stream   SSE event stream
    POST /maintenance/ttl          purge expired artifacts → {ok, affected}
    GET  /health                   liveness + backend name

Check order on every route: feature flag (404), identity or internal token
(401 / 403), then the request body (400). Bodies are decoded inside the
handlers so a malformed body can never mask a missing credential.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import StreamingResponse

from agentics.api.dependencies import (
    get_agentics,
    internal_token,
    parse_body,
    read_json,
    require_feature,
    require_user,
)
from agentics.api.sse import SSE_HEADERS, event_frames
from agentics.core.models import RunInput
from agentics.facade import Agentics
from agentics.infrastructure.blackboard import DEFAULT_LIST_RUNS_LIMIT

router = APIRouter(dependencies=[Depends(require_feature)])


class RunRequest(BaseModel):
    """Body of POST /run."""

    model_config = ConfigDict(populate_by_name=True)

    input: RunInput
    ttl_seconds: Optional[float] = Field(default=None, alias="ttlSeconds")


@router.post("/run")
async def start_run(
    request: Request,
    owner_id: str = Depends(require_user),
    agentics: Agentics = Depends(get_agentics),
) -> dict[str, Any]:
    body = parse_body(RunRequest, await read_json(request))
    handle = await agentics.run(owner_id, body.input, ttl_seconds=body.ttl_seconds)
    return {"runId": handle.id}


@router.get("/runs")
async def list_runs(
    limit: int = Query(default=DEFAULT_LIST_RUNS_LIMIT),
    owner_id: str = Depends(require_user),
    agentics: Agentics = Depends(get_agentics),
) -> dict[str, Any]:
    runs = await agentics.list_runs(owner_id, limit)
    return {"runs": [run.model_dump(mode="json") for run in runs]}


@router.get("/status/{run_id}")
async def get_status(
    run_id: str,
    owner_id: str = Depends(require_user),
    agentics: Agentics = Depends(get_agentics),
) -> dict[str, Any]:
    view = await agentics.get_status(owner_id, run_id)
    return view.model_dump(mode="json", by_alias=True)


@router.post("/status/{run_id}/cancel")
async def cancel_run(
    run_id: str,
    owner_id: str = Depends(require_user),
    agentics: Agentics = Depends(get_agentics),
) -> dict[str, Any]:
    # Foreign and unknown runs answer 404, same as the status route.
    await agentics.get_status(owner_id, run_id)
    canceled = await agentics.cancel(owner_id, run_id)
    return {"canceled": canceled}


@router.get("/status/{run_id}/stream")
async def stream_status(
    run_id: str,
    owner_id: str = Depends(require_user),
    agentics: Agentics = Depends(get_agentics),
) -> StreamingResponse:
    events = agentics.event_bus.open_stream(run_id)
    try:
        view = await agentics.get_status(owner_id, run_id)
    except BaseException:
        events.close()
        raise

    stream_config = agentics.config.stream
    return StreamingResponse(
        event_frames(
            events,
            view,
            heartbeat_seconds=stream_config.heartbeat_seconds,
            idle_timeout_seconds=stream_config.idle_timeout_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/maintenance/ttl")
async def maintenance_ttl(
    request: Request,
    token: Optional[str] = Depends(internal_token),
    agentics: Agentics = Depends(get_agentics),
) -> dict[str, Any]:
    agentics.maintenance.authorize(token)
    result = await agentics.run_maintenance(token, await read_json(request))
    return result.model_dump()


@router.get("/health")
async def health(agentics: Agentics = Depends(get_agentics)) -> dict[str, Any]:
    return {"status": "ok", "backend": agentics.blackboard.backend}
