"""
Tests for agentics.api.routes
===============================

Drives the FastAPI app through httpx's ASGI transport.

What's Being Tested:
    - Check order: feature flag (404), identity / token (401 / 403), body (400)
    - Owner isolation on status reads (404 for foreign runs)
    - Run, runs, status, cancel, maintenance and health responses
    - The error envelope {"error": {"type", "code", "message"}}
"""

from collections.abc import AsyncIterator
from datetime import datetime

import httpx
import pytest

from agentics.api import create_app
from agentics.core.config import AgenticsConfig
from agentics.core.enums import ArtifactKind
from agentics.core.models import ArtifactDraft
from agentics.facade import Agentics
from agentics.infrastructure.blackboard import InMemoryBlackboard


ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
TOKEN = {"X-Internal-Token": "test-internal-token"}


async def start_run(client: httpx.AsyncClient, goal: str = "Test X", **extra) -> str:
    response = await client.post("/run", json={"input": {"goal": goal, **extra}}, headers=ALICE)
    assert response.status_code == 200
    return response.json()["runId"]


def assert_envelope(response: httpx.Response, status_code: int, code: str) -> dict:
    assert response.status_code == status_code
    error = response.json()["error"]
    assert error["code"] == code
    assert set(error) == {"type", "code", "message"}
    return error


# =============================================================================
# Feature Flag
# =============================================================================
@pytest.fixture
async def disabled_client() -> AsyncIterator[httpx.AsyncClient]:
    facade = Agentics(AgenticsConfig(feature_enabled=False), blackboard=InMemoryBlackboard())
    transport = httpx.ASGITransport(app=create_app(agentics=facade))
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


class TestFeatureFlag:
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("POST", "/run"),
            ("GET", "/runs"),
            ("GET", "/status/some-run"),
            ("POST", "/status/some-run/cancel"),
            ("GET", "/status/some-run/stream"),
            ("POST", "/maintenance/ttl"),
            ("GET", "/health"),
        ],
    )
    async def test_every_route_is_hidden(
        self, disabled_client: httpx.AsyncClient, method: str, path: str
    ) -> None:
        """Flag off wins over missing credentials and bad bodies."""
        response = await disabled_client.request(method, path, content=b"not json")
        assert_envelope(response, 404, "NOT_FOUND")


# =============================================================================
# POST /run
# =============================================================================
class TestStartRun:
    async def test_returns_run_id(self, client: httpx.AsyncClient) -> None:
        run_id = await start_run(client, budget={"capUsd": 0.5})
        assert run_id

    async def test_missing_user_is_401(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/run", json={"input": {"goal": "Test X"}})
        error = assert_envelope(response, 401, "AUTH_REQUIRED")
        assert error["type"] == "AuthError"

    async def test_blank_user_is_401(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/run", json={"input": {"goal": "Test X"}}, headers={"X-User-Id": "  "}
        )
        assert_envelope(response, 401, "AUTH_REQUIRED")

    async def test_auth_checked_before_body(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/run", content=b"{broken")
        assert_envelope(response, 401, "AUTH_REQUIRED")

    async def test_malformed_json_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/run", content=b"{broken", headers=ALICE)
        assert_envelope(response, 400, "INVALID_JSON")

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"input": {}},
            {"input": {"goal": ""}},
            {"input": {"goal": "x", "budget": {"capUsd": -1}}},
        ],
    )
    async def test_invalid_body_is_400(self, client: httpx.AsyncClient, body: dict) -> None:
        response = await client.post("/run", json=body, headers=ALICE)
        assert_envelope(response, 400, "VALIDATION_ERROR")

    async def test_cap_above_maximum_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/run", json={"input": {"goal": "x", "budget": {"capUsd": 1000}}}, headers=ALICE
        )
        assert_envelope(response, 400, "BUDGET_CAP_TOO_HIGH")

    @pytest.mark.parametrize("ttl", [b"Infinity", b"-Infinity", b"NaN"])
    async def test_non_finite_ttl_falls_back_to_one_day(
        self, client: httpx.AsyncClient, ttl: bytes
    ) -> None:
        body = b'{"input": {"goal": "Test X"}, "ttlSeconds": ' + ttl + b"}"
        response = await client.post(
            "/run", content=body, headers={**ALICE, "Content-Type": "application/json"}
        )
        assert response.status_code == 200

        status = await client.get(f"/status/{response.json()['runId']}", headers=ALICE)
        (artifact,) = status.json()["artifacts"]
        created = datetime.fromisoformat(artifact["created_at"].replace("Z", "+00:00"))
        expires = datetime.fromisoformat(artifact["expires_at"].replace("Z", "+00:00"))
        assert (expires - created).total_seconds() == 86400


# =============================================================================
# GET /status/{id}
# =============================================================================
class TestStatus:
    async def test_owner_sees_succeeded_run(self, client: httpx.AsyncClient) -> None:
        run_id = await start_run(client, budget={"capUsd": 0.5})

        response = await client.get(f"/status/{run_id}", headers=ALICE)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == run_id
        assert body["status"] == "succeeded"
        assert body["error"] is None
        assert body["budget"] == {"capUsd": 0.5, "spentUsd": 0.0}
        assert [a["kind"] for a in body["artifacts"]] == ["plan.graph"]

    async def test_foreign_run_is_404(self, client: httpx.AsyncClient) -> None:
        run_id = await start_run(client)

        response = await client.get(f"/status/{run_id}", headers=BOB)
        foreign = assert_envelope(response, 404, "NOT_FOUND")

        unknown = assert_envelope(
            await client.get("/status/00000000-0000-4000-8000-000000000000", headers=BOB),
            404,
            "NOT_FOUND",
        )
        assert foreign == unknown

    async def test_missing_user_is_401(self, client: httpx.AsyncClient) -> None:
        assert_envelope(await client.get("/status/anything"), 401, "AUTH_REQUIRED")


# =============================================================================
# GET /runs
# =============================================================================
class TestListRuns:
    async def test_lists_own_runs_newest_first(
        self, client: httpx.AsyncClient, clock
    ) -> None:
        first = await start_run(client, goal="one")
        clock.advance(1)
        second = await start_run(client, goal="two")

        response = await client.get("/runs", headers=ALICE)
        assert response.status_code == 200
        runs = response.json()["runs"]
        assert [r["id"] for r in runs] == [second, first]
        assert {r["status"] for r in runs} == {"succeeded"}

        assert (await client.get("/runs", headers=BOB)).json() == {"runs": []}

    async def test_limit(self, client: httpx.AsyncClient) -> None:
        for _ in range(3):
            await start_run(client)
        response = await client.get("/runs", params={"limit": 2}, headers=ALICE)
        assert len(response.json()["runs"]) == 2

    async def test_non_integer_limit_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/runs", params={"limit": "many"}, headers=ALICE)
        assert_envelope(response, 400, "VALIDATION_ERROR")


# =============================================================================
# POST /status/{id}/cancel
# =============================================================================
class TestCancel:
    async def test_cancel_queued_run(self, client: httpx.AsyncClient, agentics: Agentics) -> None:
        handle = await agentics.blackboard.create_run("alice")

        response = await client.post(f"/status/{handle.id}/cancel", headers=ALICE)
        assert response.status_code == 200
        assert response.json() == {"canceled": True}

        body = (await client.get(f"/status/{handle.id}", headers=ALICE)).json()
        assert body["status"] == "canceled"
        assert body["error"]["error_code"] == "RUN_CANCELED"

    async def test_cancel_finished_run_is_false(self, client: httpx.AsyncClient) -> None:
        run_id = await start_run(client)
        response = await client.post(f"/status/{run_id}/cancel", headers=ALICE)
        assert response.json() == {"canceled": False}

    async def test_cancel_foreign_run_is_404(self, client: httpx.AsyncClient) -> None:
        run_id = await start_run(client)
        response = await client.post(f"/status/{run_id}/cancel", headers=BOB)
        assert_envelope(response, 404, "NOT_FOUND")


# =============================================================================
# POST /maintenance/ttl
# =============================================================================
class TestMaintenance:
    async def test_missing_token_is_403(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/maintenance/ttl", json={"op": "ttl_cleanup"})
        error = assert_envelope(response, 403, "MAINTENANCE_FORBIDDEN")
        assert error["type"] == "MaintenanceAuthError"

    async def test_wrong_token_is_403(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/maintenance/ttl", json={"op": "ttl_cleanup"}, headers={"X-Internal-Token": "nope"}
        )
        assert_envelope(response, 403, "MAINTENANCE_FORBIDDEN")

    async def test_user_identity_is_not_a_token(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/maintenance/ttl", json={"op": "ttl_cleanup"}, headers=ALICE)
        assert_envelope(response, 403, "MAINTENANCE_FORBIDDEN")

    async def test_token_checked_before_body(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/maintenance/ttl", content=b"{broken")
        assert_envelope(response, 403, "MAINTENANCE_FORBIDDEN")

    async def test_unsupported_op_is_400(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/maintenance/ttl", json={"op": "vacuum"}, headers=TOKEN)
        assert_envelope(response, 400, "UNSUPPORTED_OP")

    async def test_cleanup_is_idempotent(
        self, client: httpx.AsyncClient, agentics: Agentics, clock
    ) -> None:
        handle = await agentics.blackboard.create_run("alice")
        await agentics.blackboard.save_artifact(
            "alice",
            handle.id,
            ArtifactDraft(kind=ArtifactKind.DRAFT_OUTLINE, payload={"sections": ["a"]}),
            ttl_seconds=10,
        )
        clock.advance(11)

        first = await client.post(
            "/maintenance/ttl", json={"op": "ttl_cleanup", "maxRows": 100}, headers=TOKEN
        )
        second = await client.post("/maintenance/ttl", json={"op": "ttl_cleanup"}, headers=TOKEN)

        assert first.status_code == 200
        assert first.json() == {"ok": True, "affected": 1}
        assert second.json() == {"ok": True, "affected": 0}


# =============================================================================
# Health & Envelope
# =============================================================================
class TestMisc:
    async def test_health(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "backend": "memory"}

    async def test_unknown_route_uses_envelope(self, client: httpx.AsyncClient) -> None:
        error = assert_envelope(await client.get("/nope"), 404, "HTTP_404")
        assert error["type"] == "HTTPException"
