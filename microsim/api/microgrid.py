"""
Microgrid API routes.

Maps the microgrid RPC verbs onto HTTP:

    GetMicrogridMetadata  GET  /v1/microgrid/metadata
    ListComponents        GET  /v1/microgrid/components
    ListConnections       GET  /v1/microgrid/connections
    SetPowerActive        POST /v1/microgrid/components/{id}/power-active
    StreamComponentData   GET  /v1/microgrid/components/{id}/stream

Telemetry streams are newline-delimited JSON, one ComponentData per line.
A stream that fails after it started ends with a single
``{"error": ..., "component_id": ...}`` line.

The remaining verbs of the protocol (CanStreamData, AddExclusionBounds,
AddInclusionBounds, SetPowerReactive, Start, HotStandby, ColdStandby, Stop,
ErrorAck) exist and answer 501 Not Implemented.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query, Response
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from microsim.api.deps import BridgeDep, InterlockDep, SchedulerDep
from microsim.errors import (
    CommandError,
    ComponentNotFound,
    ComponentValidationError,
    ScriptError,
    StreamError,
)
from microsim.models import (
    ComponentData,
    ComponentList,
    ConnectionList,
    MicrogridMetadata,
)
from microsim.scheduler import Subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/microgrid", tags=["microgrid"])

ComponentId = Annotated[int, Path(ge=0)]


class SetPowerActiveParam(BaseModel):
    """Body of a SetPowerActive request; ``power`` is in watts."""

    power: float


class SetBoundsParam(BaseModel):
    lower: float = 0.0
    upper: float = 0.0


class SetPowerReactiveParam(BaseModel):
    power: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config_failure(exc: Exception) -> HTTPException:
    """500 carrying the script diagnostic for a misconfigured script."""
    logger.error("Config script error: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


def _not_implemented(method: str) -> HTTPException:
    return HTTPException(status_code=501, detail=f"{method} is not implemented")


async def _ndjson_lines(
    subscription: Subscription, first: ComponentData
) -> AsyncGenerator[str, None]:
    """Render a subscription as NDJSON, closing it when the client leaves."""
    try:
        yield first.model_dump_json() + "\n"
        async for sample in subscription:
            yield sample.model_dump_json() + "\n"
    except StreamError as exc:
        yield json.dumps(
            {"error": str(exc.cause), "component_id": exc.component_id}
        ) + "\n"
    finally:
        await subscription.close()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/metadata")
async def get_microgrid_metadata(bridge: BridgeDep) -> MicrogridMetadata:
    try:
        return bridge.metadata()
    except (ScriptError, ComponentValidationError) as exc:
        raise _config_failure(exc) from exc


@router.get("/components")
async def list_components(
    bridge: BridgeDep,
    component_ids: Annotated[list[int] | None, Query()] = None,
    categories: Annotated[list[str] | None, Query()] = None,
) -> ComponentList:
    """Return all components.

    The ``component_ids`` and ``categories`` filters are accepted but not
    applied.
    """
    try:
        return bridge.list_components()
    except (ScriptError, ComponentValidationError) as exc:
        raise _config_failure(exc) from exc


@router.get("/connections")
async def list_connections(
    bridge: BridgeDep,
    starts: Annotated[list[int] | None, Query()] = None,
    ends: Annotated[list[int] | None, Query()] = None,
) -> ConnectionList:
    """Return all connections.

    The ``starts`` and ``ends`` filters are accepted but not applied.
    """
    try:
        return bridge.list_connections()
    except ScriptError as exc:
        raise _config_failure(exc) from exc


@router.post("/components/{component_id}/power-active", status_code=204)
async def set_power_active(
    component_id: ComponentId,
    param: SetPowerActiveParam,
    bridge: BridgeDep,
    interlock: InterlockDep,
) -> Response:
    """Send an active power setpoint to a component.

    Battery inverters get their interlock deadline armed or refreshed.

    Raises:
        HTTPException: 412 with the script's error description if the
            script rejects the command.
    """
    interlock.on_power_command(component_id)
    try:
        bridge.set_power_active(component_id, param.power)
    except CommandError as exc:
        raise HTTPException(status_code=412, detail=exc.desc) from exc
    return Response(status_code=204)


@router.get("/components/{component_id}/stream")
async def stream_component_data(
    component_id: ComponentId,
    scheduler: SchedulerDep,
) -> StreamingResponse:
    """Stream telemetry samples of a component at its configured cadence.

    The first sample is fetched before the response starts so that an
    unknown component yields a plain 404.

    Raises:
        HTTPException: 404 for an unknown component, 500 when the script
            cannot produce the first sample.
    """
    subscription = scheduler.subscribe(component_id)
    try:
        first = await anext(subscription)
    except StreamError as exc:
        await subscription.close()
        if isinstance(exc.cause, ComponentNotFound):
            raise HTTPException(status_code=404, detail=str(exc.cause)) from exc
        raise _config_failure(exc.cause) from exc
    return StreamingResponse(
        _ndjson_lines(subscription, first),
        media_type="application/x-ndjson",
    )


# ---------------------------------------------------------------------------
# Unimplemented protocol methods
# ---------------------------------------------------------------------------


@router.get("/components/{component_id}/can-stream")
async def can_stream_data(component_id: ComponentId) -> bool:
    raise _not_implemented("CanStreamData")


@router.post("/components/{component_id}/exclusion-bounds")
async def add_exclusion_bounds(
    component_id: ComponentId, param: SetBoundsParam
) -> None:
    raise _not_implemented("AddExclusionBounds")


@router.post("/components/{component_id}/inclusion-bounds")
async def add_inclusion_bounds(
    component_id: ComponentId, param: SetBoundsParam
) -> None:
    raise _not_implemented("AddInclusionBounds")


@router.post("/components/{component_id}/power-reactive")
async def set_power_reactive(
    component_id: ComponentId, param: SetPowerReactiveParam
) -> None:
    raise _not_implemented("SetPowerReactive")


@router.post("/components/{component_id}/start")
async def start(component_id: ComponentId) -> None:
    raise _not_implemented("Start")


@router.post("/components/{component_id}/hot-standby")
async def hot_standby(component_id: ComponentId) -> None:
    raise _not_implemented("HotStandby")


@router.post("/components/{component_id}/cold-standby")
async def cold_standby(component_id: ComponentId) -> None:
    raise _not_implemented("ColdStandby")


@router.post("/components/{component_id}/stop")
async def stop(component_id: ComponentId) -> None:
    raise _not_implemented("Stop")


@router.post("/components/{component_id}/error-ack")
async def error_ack(component_id: ComponentId) -> None:
    raise _not_implemented("ErrorAck")
