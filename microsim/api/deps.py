"""
FastAPI dependency injection providers.

Hands the bridge, scheduler and interlock created by the application
lifespan (stored on ``app.state``) to route handlers via Depends().

CHANGELOG:
- 2026-10-19: Initial creation
"""

from typing import Annotated

from fastapi import Depends, Request

from microsim.bridge import ConfigBridge
from microsim.interlock import Interlock
from microsim.scheduler import StreamScheduler


def get_bridge(request: Request) -> ConfigBridge:
    return request.app.state.bridge


def get_scheduler(request: Request) -> StreamScheduler:
    return request.app.state.scheduler


def get_interlock(request: Request) -> Interlock:
    return request.app.state.interlock


# Type aliases for route handler signatures, e.g.:
#   async def my_route(bridge: BridgeDep):
#       components = bridge.list_components()
BridgeDep = Annotated[ConfigBridge, Depends(get_bridge)]
SchedulerDep = Annotated[StreamScheduler, Depends(get_scheduler)]
InterlockDep = Annotated[Interlock, Depends(get_interlock)]
