"""
FastAPI application factory for the microgrid sandbox API.

The lifespan loads the configuration script into a ConfigBridge (unless
one is handed in), classifies battery inverters for the interlock once,
and starts the background tasks that run for the lifetime of the app:

- the interlock sweep (zeroes battery inverters whose command expired);
- the script watcher (reloads the script when the file changes).

Bridge, scheduler and interlock are stored on ``app.state`` for route
handlers.  On shutdown the background tasks are stopped through a shared
asyncio.Event and every open telemetry stream is closed.

CHANGELOG:
- 2026-10-19: Initial creation
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from microsim import __version__
from microsim.api.health import router as health_router
from microsim.api.microgrid import router as microgrid_router
from microsim.bridge import ConfigBridge
from microsim.config import ServerSettings
from microsim.interlock import Interlock
from microsim.scheduler import StreamScheduler
from microsim.watcher import ScriptWatcher

logger = logging.getLogger(__name__)


def create_app(
    settings: ServerSettings | None = None,
    bridge: ConfigBridge | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        settings: Server settings, read from the environment at startup
            when omitted.
        bridge: An already loaded bridge, loaded from
            ``settings.config_script`` at startup when omitted.

    Returns:
        FastAPI: The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan: load config, start and stop background tasks.

        Startup fails if the configuration script does not evaluate or its
        component list is invalid.
        """
        app_settings = settings if settings is not None else ServerSettings()
        app_bridge = (
            bridge
            if bridge is not None
            else ConfigBridge.load(app_settings.config_script)
        )

        interlock = Interlock.from_bridge(
            app_bridge,
            default_retention=app_settings.default_retention,
            sweep_interval_ms=app_settings.sweep_interval_ms,
        )
        scheduler = StreamScheduler(
            app_bridge, buffer_size=app_settings.stream_buffer_size
        )

        app.state.settings = app_settings
        app.state.bridge = app_bridge
        app.state.interlock = interlock
        app.state.scheduler = scheduler

        shutdown_event = asyncio.Event()
        tasks = [
            asyncio.create_task(interlock.run(shutdown_event), name="interlock-sweep")
        ]
        if app_settings.watch_enabled:
            watcher = ScriptWatcher(app_bridge, interval_s=app_settings.watch_interval_s)
            tasks.append(
                asyncio.create_task(watcher.run(shutdown_event), name="config-watcher")
            )

        logger.info(
            "Microgrid API ready (config generation %d)", app_bridge.generation.number
        )
        yield

        logger.info("Microgrid API shutting down")
        shutdown_event.set()
        await scheduler.close()
        await asyncio.gather(*tasks, return_exceptions=True)

    app = FastAPI(
        title="Microgrid Sandbox API",
        description="Scriptable microgrid topology, control and telemetry API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(microgrid_router)

    @app.get("/")
    async def root() -> dict:
        """Root health check endpoint.

        Returns:
            dict: JSON object with application status.
        """
        return {"status": "ok"}

    return app


# Module-level app for ``uvicorn microsim.api.main:app``; settings are read
# from the environment when the lifespan starts.
app = create_app()
