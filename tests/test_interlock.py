"""
Unit tests for the battery inverter safety interlock.

Tests verify:
- The tracker arms, refreshes and expires deadlines on a monotonic clock.
- Only battery inverters are tracked; other commands are ignored.
- Exactly one zero-power command is sent per expiry.
- A refresh before the deadline postpones the zero command.
- A failing zero command does not stop the sweep.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from microsim.bridge import ConfigBridge
from microsim.errors import CommandError
from microsim.interlock import Interlock, TimeoutTracker


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeBridge:
    """Records power commands; optionally rejects zero commands."""

    def __init__(
        self, retention: timedelta | None = None, reject_ids: set[int] | None = None
    ) -> None:
        self.retention = retention
        self.reject_ids = reject_ids or set()
        self.commands: list[tuple[int, float]] = []

    def retain_requests_duration(self, default: timedelta) -> timedelta:
        return self.retention if self.retention is not None else default

    def set_power_active(self, component_id: int, power: float) -> None:
        if component_id in self.reject_ids:
            raise CommandError(component_id, "set_power_active: ValueError: no")
        self.commands.append((component_id, power))


class TestTimeoutTracker:
    def test_arm_and_expire(self) -> None:
        clock = FakeClock()
        tracker = TimeoutTracker(clock)
        tracker.arm(3, timedelta(seconds=5))

        assert 3 in tracker
        assert tracker.deadline(3) == 1005.0
        clock.now = 1004.9
        assert tracker.remove_expired() == []
        clock.now = 1005.0
        assert tracker.remove_expired() == [3]
        assert 3 not in tracker
        assert len(tracker) == 0

    def test_refresh_moves_deadline(self) -> None:
        clock = FakeClock()
        tracker = TimeoutTracker(clock)
        tracker.arm(3, timedelta(seconds=5))
        clock.now = 1003.0
        tracker.arm(3, timedelta(seconds=5))

        clock.now = 1006.0
        assert tracker.remove_expired() == []
        assert tracker.deadline(3) == 1008.0


class TestInterlock:
    def _interlock(
        self, bridge: FakeBridge, clock: FakeClock, tracked: set[int] | None = None
    ) -> Interlock:
        return Interlock(
            bridge,
            tracked if tracked is not None else {3},
            default_retention=timedelta(seconds=60),
            tracker=TimeoutTracker(clock),
        )

    def test_untracked_ignored(self) -> None:
        clock = FakeClock()
        interlock = self._interlock(FakeBridge(), clock)

        assert not interlock.on_power_command(5)
        assert 5 not in interlock.tracker

    def test_default_retention_used(self) -> None:
        clock = FakeClock()
        interlock = self._interlock(FakeBridge(), clock)

        assert interlock.on_power_command(3)
        assert interlock.tracker.deadline(3) == 1060.0

    def test_script_retention_used(self) -> None:
        clock = FakeClock()
        interlock = self._interlock(FakeBridge(timedelta(seconds=2)), clock)

        interlock.on_power_command(3)
        assert interlock.tracker.deadline(3) == 1002.0

    def test_one_zero_per_expiry(self) -> None:
        clock = FakeClock()
        bridge = FakeBridge(timedelta(seconds=2))
        interlock = self._interlock(bridge, clock)
        interlock.on_power_command(3)

        clock.now = 1003.0
        assert interlock.sweep() == [3]
        assert interlock.sweep() == []
        assert bridge.commands == [(3, 0.0)]

    def test_rearm_after_expiry(self) -> None:
        clock = FakeClock()
        bridge = FakeBridge(timedelta(seconds=2))
        interlock = self._interlock(bridge, clock)
        interlock.on_power_command(3)
        clock.now = 1003.0
        interlock.sweep()

        interlock.on_power_command(3)
        clock.now = 1006.0
        interlock.sweep()
        assert bridge.commands == [(3, 0.0), (3, 0.0)]

    def test_failing_zero_does_not_stop_sweep(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        clock = FakeClock()
        bridge = FakeBridge(timedelta(seconds=1), reject_ids={3})
        interlock = self._interlock(bridge, clock, tracked={3, 4})
        interlock.on_power_command(3)
        interlock.on_power_command(4)

        clock.now = 1002.0
        assert sorted(interlock.sweep()) == [3, 4]
        assert bridge.commands == [(4, 0.0)]
        assert len(interlock.tracker) == 0
        assert "Failed to zero power of component 3" in caplog.text

    def test_timeout_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        clock = FakeClock()
        interlock = self._interlock(FakeBridge(timedelta(seconds=1)), clock)
        interlock.on_power_command(3)
        clock.now = 1001.0

        with caplog.at_level("INFO"):
            interlock.sweep()
        assert "Request timeout for component 3." in caplog.text


class TestRun:
    @pytest.mark.asyncio
    async def test_refresh_postpones_zero(self) -> None:
        bridge = FakeBridge(timedelta(milliseconds=300))
        interlock = Interlock(
            bridge, {3}, default_retention=timedelta(seconds=60), sweep_interval_ms=20
        )
        shutdown_event = asyncio.Event()
        task = asyncio.create_task(interlock.run(shutdown_event))

        interlock.on_power_command(3)
        await asyncio.sleep(0.2)
        interlock.on_power_command(3)
        await asyncio.sleep(0.2)
        assert bridge.commands == []

        await asyncio.sleep(0.25)
        assert bridge.commands == [(3, 0.0)]

        shutdown_event.set()
        await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_stops_on_shutdown(self) -> None:
        interlock = Interlock(
            FakeBridge(), set(), default_retention=timedelta(seconds=1)
        )
        shutdown_event = asyncio.Event()
        task = asyncio.create_task(interlock.run(shutdown_event))
        await asyncio.sleep(0.01)

        shutdown_event.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert task.done()


class TestFromBridge:
    def test_tracks_battery_inverters(self, bridge: ConfigBridge) -> None:
        interlock = Interlock.from_bridge(
            bridge, default_retention=timedelta(seconds=60)
        )
        assert interlock.tracked_ids == frozenset({3})
        assert interlock.is_tracked(3)
        assert not interlock.is_tracked(8)

    def test_zero_reaches_script(self, bridge: ConfigBridge) -> None:
        clock = FakeClock()
        interlock = Interlock(
            bridge,
            bridge.battery_inverter_ids(),
            default_retention=timedelta(seconds=1),
            tracker=TimeoutTracker(clock),
        )
        interlock.on_power_command(3)
        clock.now += 2.0
        interlock.sweep()

        assert bridge.generation.evaluator.eval_named("calls") == [(3, 0.0)]
