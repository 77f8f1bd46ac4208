# Example microgrid configuration script.
#
# Evaluated by the microsim server; edit while the server runs and it is
# reloaded automatically.  battery_data, inverter_data and meter_data are
# provided by the server.

import math
import time

socket_addr = "[::1]:8800"
microgrid_id = 1
location = [("latitude", 52.52), ("longitude", 13.405)]
ac_frequency = 50.0
retain_requests_duration_ms = 60_000

# Active power setpoints in watts, by component id.
power = {}

BATTERY_CAPACITY_WH = 92_000.0
_soc = {3: 60.0}


def _phases(total_power, voltage=230.0):
    current = total_power / voltage / 3.0
    return [current, current, current]


def battery_stream(component_id):
    inverter_power = power.get(2, 0.0)
    soc = _soc[component_id]
    return battery_data(
        [
            ("id", component_id),
            ("capacity", BATTERY_CAPACITY_WH),
            ("soc", soc),
            ("soc-lower", 10.0),
            ("soc-upper", 90.0),
            ("voltage", 800.0),
            ("current", inverter_power / 800.0),
            ("power", inverter_power),
            ("inclusion-lower", -30_000.0),
            ("inclusion-upper", 30_000.0),
            ("component-state", "charging" if inverter_power > 0 else "idle"),
            ("relay-state", "closed"),
        ]
    )


def battery_inverter_stream(component_id):
    value = power.get(component_id, 0.0)
    return inverter_data(
        [
            ("id", component_id),
            ("power", value),
            ("current", _phases(value)),
            ("voltage", [230.0, 230.0, 230.0]),
            ("inclusion-lower", -30_000.0),
            ("inclusion-upper", 30_000.0),
            ("component-state", "charging" if value > 0 else "idle"),
        ]
    )


def solar_inverter_stream(component_id):
    # Half-sine production profile over a ten minute cycle.
    phase = (time.time() % 600) / 600
    value = -8_000.0 * max(0.0, math.sin(phase * math.pi))
    return inverter_data(
        [
            ("id", component_id),
            ("power", value),
            ("current", _phases(value)),
            ("voltage", [231.0, 229.5, 230.2]),
            ("component-state", "discharging"),
        ]
    )


def grid_meter_stream(component_id):
    consumption = 4_000.0
    value = consumption + power.get(2, 0.0) + solar_inverter_stream(5).data.data.ac.power_active.value
    return meter_data(
        [
            ("id", component_id),
            ("power", value),
            ("current", _phases(value)),
            ("voltage", [230.0, 230.0, 230.0]),
        ]
    )


components = [
    [("id", 1), ("name", "grid"), ("category", "grid")],
    [
        ("id", 4),
        ("name", "grid-meter"),
        ("category", "meter"),
        ("stream", [("interval", 200), ("data", grid_meter_stream)]),
    ],
    [
        ("id", 2),
        ("name", "battery-inverter"),
        ("category", "inverter"),
        ("type", "battery"),
        ("stream", [("interval", 200), ("data", battery_inverter_stream)]),
    ],
    [
        ("id", 3),
        ("name", "battery"),
        ("category", "battery"),
        ("type", "li_ion"),
        ("stream", [("interval", 1000), ("data", battery_stream)]),
    ],
    [
        ("id", 5),
        ("name", "solar-inverter"),
        ("category", "inverter"),
        ("type", "solar"),
        ("stream", [("interval", 500), ("data", solar_inverter_stream)]),
    ],
    [
        ("id", 6),
        ("name", "ev-charger"),
        ("category", "ev_charger"),
        ("type", "ac"),
    ],
]

connections = [(1, 4), (4, 2), (2, 3), (4, 5), (4, 6)]


def set_power_active(component_id, value):
    if component_id not in (2, 6):
        raise ValueError(f"component {component_id} does not accept power commands")
    if abs(value) > 30_000.0:
        raise ValueError(f"power {value} W outside inverter bounds")
    power[component_id] = value
