"""
Safety-timeout interlock for battery inverters.

A battery inverter must not hold a non-zero active power setpoint forever
when its controller goes away.  Every power command for a tracked inverter
(category INVERTER with metadata type BATTERY, determined once at startup)
arms or refreshes a deadline of ``now + retention``.  A background sweep
runs on a short tick, removes every entry whose deadline has passed and
sends exactly one zero-power command per removed entry.

Per component:

    untracked -> armed(deadline) -> [refresh -> armed(new deadline)]
              -> expired -> untracked

Expired entries are removed from the tracker *before* the zero command is
issued, so a refresh racing with the sweep either keeps the entry armed or
creates a fresh one after removal.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from typing import TYPE_CHECKING

from microsim.errors import MicrosimError

if TYPE_CHECKING:
    from microsim.bridge import ConfigBridge

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_MS: int = 100
"""Sweep tick in milliseconds."""


class TimeoutTracker:
    """Registry of component id -> monotonic deadline.

    Only touched from the event loop thread.

    Args:
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._deadlines: dict[int, float] = {}

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._deadlines

    def __len__(self) -> int:
        return len(self._deadlines)

    def deadline(self, component_id: int) -> float | None:
        return self._deadlines.get(component_id)

    def arm(self, component_id: int, retention: timedelta) -> float:
        """Set (or move forward) the deadline of *component_id*."""
        deadline = self._clock() + retention.total_seconds()
        self._deadlines[component_id] = deadline
        return deadline

    def remove_expired(self) -> list[int]:
        """Remove and return every id whose deadline has passed."""
        now = self._clock()
        expired = [cid for cid, deadline in self._deadlines.items() if deadline <= now]
        for cid in expired:
            del self._deadlines[cid]
        return expired


class Interlock:
    """Arms deadlines on power commands and zeroes expired inverters.

    Args:
        bridge: Configuration bridge used for retention and zero commands.
        tracked_ids: Component ids subject to the interlock.
        default_retention: Retention used when the script defines none.
        sweep_interval_ms: Sweep tick.
        tracker: Deadline registry, a new one when omitted.
    """

    def __init__(
        self,
        bridge: ConfigBridge,
        tracked_ids: Iterable[int],
        *,
        default_retention: timedelta,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        tracker: TimeoutTracker | None = None,
    ) -> None:
        self._bridge = bridge
        self.tracked_ids = frozenset(tracked_ids)
        self._default_retention = default_retention
        self._sweep_interval_s = sweep_interval_ms / 1000.0
        self.tracker = tracker if tracker is not None else TimeoutTracker()

    @classmethod
    def from_bridge(
        cls,
        bridge: ConfigBridge,
        *,
        default_retention: timedelta,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
    ) -> Interlock:
        """Build an interlock tracking the bridge's battery inverters.

        Raises:
            ComponentValidationError: If the component list is invalid.
        """
        tracked = bridge.battery_inverter_ids()
        logger.info("Interlock tracking battery inverters: %s", sorted(tracked))
        return cls(
            bridge,
            tracked,
            default_retention=default_retention,
            sweep_interval_ms=sweep_interval_ms,
        )

    def is_tracked(self, component_id: int) -> bool:
        return component_id in self.tracked_ids

    def on_power_command(self, component_id: int) -> bool:
        """Arm or refresh the deadline if *component_id* is tracked.

        Returns:
            True if a deadline was armed.
        """
        if component_id not in self.tracked_ids:
            return False
        retention = self._bridge.retain_requests_duration(self._default_retention)
        self.tracker.arm(component_id, retention)
        return True

    def sweep(self) -> list[int]:
        """Zero every expired inverter once.

        A failing zero command is logged; the entry stays removed.

        Returns:
            The ids that expired in this sweep.
        """
        expired = self.tracker.remove_expired()
        for component_id in expired:
            logger.info("Request timeout for component %d.", component_id)
            try:
                self._bridge.set_power_active(component_id, 0.0)
            except MicrosimError:
                logger.error(
                    "Failed to zero power of component %d after timeout",
                    component_id,
                    exc_info=True,
                )
        return expired

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Sweep on every tick until *shutdown_event* is set."""
        logger.info(
            "Interlock sweep started (interval=%.3fs)", self._sweep_interval_s
        )
        while not shutdown_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self._sweep_interval_s,
                )
            if shutdown_event.is_set():
                break
            self.sweep()
        logger.info("Interlock sweep stopped")
