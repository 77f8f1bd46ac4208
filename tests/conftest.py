"""
Shared test fixtures for the microgrid sandbox tests.

Provides a sample configuration script covering every component category,
a factory for writing scripts to tmp_path, and environment isolation for
ServerSettings tests.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from microsim.bridge import ConfigBridge

# All ServerSettings environment variable names, used for cleanup.
_ALL_SERVER_ENV_VARS = (
    "CONFIG_SCRIPT",
    "BIND_ADDRESS",
    "RETAIN_REQUESTS_MS",
    "SWEEP_INTERVAL_MS",
    "STREAM_BUFFER_SIZE",
    "WATCH_ENABLED",
    "WATCH_INTERVAL_S",
    "LOG_LEVEL",
)

SAMPLE_SCRIPT = textwrap.dedent(
    """
    socket_addr = "127.0.0.1:8800"
    ac_frequency = 50.0
    microgrid_id = 42
    location = [("latitude", 52.5), ("longitude", 13.4)]

    calls = []

    def battery_stream(component_id):
        return battery_data(
            [
                ("id", component_id),
                ("capacity", 50),
                ("soc", 55),
                ("soc-lower", 10),
                ("soc-upper", 90),
                ("voltage", 800),
                ("power", 1200),
                ("component-state", "charging"),
                ("relay-state", "closed"),
            ]
        )

    def inverter_stream(component_id):
        return inverter_data(
            [
                ("id", component_id),
                ("power", 1500),
                ("current", [1.0, 2.0, 3.5]),
                ("voltage", [230, 231, 229]),
                ("inclusion-lower", -5000),
                ("inclusion-upper", 5000),
                ("component-state", "discharging"),
            ]
        )

    def meter_stream(component_id):
        return meter_data({"id": component_id, "power": 800})

    def broken_stream(component_id):
        raise RuntimeError("sensor offline")

    components = [
        [("id", 1), ("name", "grid"), ("category", "grid")],
        [
            ("id", 2),
            ("name", "meter"),
            ("category", "meter"),
            ("stream", [("interval", 100), ("data", meter_stream)]),
        ],
        [
            ("id", 3),
            ("name", "battery-inverter"),
            ("category", "inverter"),
            ("type", "battery"),
            ("stream", [("interval", 100), ("data", inverter_stream)]),
        ],
        [
            ("id", 7),
            ("name", "battery"),
            ("category", "battery"),
            ("type", "li_ion"),
            ("capacity", 50),
            ("stream", [("interval", 1000), ("data", battery_stream)]),
        ],
        [
            ("id", 8),
            ("name", "pv-inverter"),
            ("category", "inverter"),
            ("type", "solar"),
            ("stream", [("interval", 500), ("data", broken_stream)]),
        ],
        [("id", 9), ("name", "charger"), ("category", "ev_charger"), ("type", "warp")],
    ]

    connections = [(1, 2), (2, 3), (3, 7), (2, 8), (2, 9)]

    def set_power_active(component_id, power):
        if component_id == 1:
            raise ValueError("grid does not accept power commands")
        calls.append((component_id, power))
    """
)


@pytest.fixture(autouse=True)
def _clean_server_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all server env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_SERVER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def write_script(tmp_path: Path) -> Callable[[str], Path]:
    """Return a function that writes script source to ``config.py``."""
    path = tmp_path / "config.py"

    def _write(source: str) -> Path:
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def sample_script(write_script: Callable[[str], Path]) -> Path:
    """Path of a script holding :data:`SAMPLE_SCRIPT`."""
    return write_script(SAMPLE_SCRIPT)


@pytest.fixture()
def bridge(sample_script: Path) -> ConfigBridge:
    """A bridge loaded from the sample script."""
    return ConfigBridge.load(sample_script)
