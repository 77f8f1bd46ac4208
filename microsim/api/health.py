"""
Health check endpoint for the microgrid API.

Provides a simple GET /health endpoint that returns {"status": "ok"} with
HTTP 200 together with the serving config generation and the number of
open telemetry streams.  No authentication is required; this is intended
for Docker HEALTHCHECK and internal monitoring only.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from fastapi import APIRouter

from microsim.api.deps import BridgeDep, SchedulerDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(bridge: BridgeDep, scheduler: SchedulerDep) -> dict[str, object]:
    """Return a simple health status.

    Returns:
        dict: ``status``, ``generation`` and ``active_streams``.
    """
    return {
        "status": "ok",
        "generation": bridge.generation.number,
        "active_streams": scheduler.active_count,
    }
