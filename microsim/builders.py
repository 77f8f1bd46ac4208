"""
Host callables that turn script records into telemetry samples.

The configuration script builds every telemetry sample by calling one of
three host functions with an association record:

- ``battery_data(record)``  -> battery sample (SoC, DC side, state)
- ``inverter_data(record)`` -> inverter sample (AC side, state)
- ``meter_data(record)``    -> meter sample (AC side)

The functions are registered into each evaluator generation by
:func:`register_builders`.  AC samples read the grid frequency from the
script's ``ac_frequency`` name of that same generation.

Record keys (all numeric keys default to 0 when absent):

    battery:  id, capacity, soc, soc-lower, soc-upper, voltage, current,
              power, inclusion-lower, inclusion-upper, exclusion-lower,
              exclusion-upper, component-state, relay-state
    inverter: id, current (3 phases), voltage (3 phases), power,
              inclusion-*, exclusion-*, component-state
    meter:    same AC keys as the inverter, no state

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from microsim.errors import ComponentValidationError, ScriptError
from microsim.evaluator import ScriptEvaluator
from microsim.models import (
    Ac,
    AcMeasurements,
    AcPhase,
    BatteryComponentState,
    BatteryData,
    BatteryMeasurements,
    BatteryProperties,
    BatteryRelayState,
    BatteryState,
    Bounds,
    ComponentData,
    Dc,
    InverterComponentState,
    InverterData,
    InverterState,
    MeterData,
    Metric,
    MetricAggregation,
)
from microsim.records import AssociationRecord

AC_FREQUENCY_NAME = "ac_frequency"


def _require_id(record: AssociationRecord, builder: str) -> int:
    component_id = record.get_int("id")
    if component_id is None:
        raise ComponentValidationError(
            f"{builder}: record has no integer 'id'", field="id"
        )
    return component_id


def _power_metric(record: AssociationRecord, value: float) -> Metric:
    """Metric carrying the record's inclusion and exclusion bounds."""
    return Metric(
        value=value,
        system_inclusion_bounds=Bounds(
            lower=record.get_float("inclusion-lower"),
            upper=record.get_float("inclusion-upper"),
        ),
        system_exclusion_bounds=Bounds(
            lower=record.get_float("exclusion-lower"),
            upper=record.get_float("exclusion-upper"),
        ),
    )


def make_battery_data(record: AssociationRecord) -> ComponentData:
    """Build a battery sample from *record*."""
    component_id = _require_id(record, "battery_data")
    component_state = (
        record.get_enum(BatteryComponentState, "component-state")
        or BatteryComponentState.UNSPECIFIED
    )
    relay_state = (
        record.get_enum(BatteryRelayState, "relay-state")
        or BatteryRelayState.UNSPECIFIED
    )

    return ComponentData(
        ts=datetime.now(tz=UTC),
        id=component_id,
        data=BatteryData(
            properties=BatteryProperties(capacity=record.get_float("capacity")),
            state=BatteryState(
                component_state=component_state,
                relay_state=relay_state,
            ),
            data=BatteryMeasurements(
                soc=MetricAggregation(
                    avg=record.get_float("soc"),
                    system_inclusion_bounds=Bounds(
                        lower=record.get_float("soc-lower"),
                        upper=record.get_float("soc-upper"),
                    ),
                ),
                dc=Dc(
                    voltage=Metric(value=record.get_float("voltage")),
                    current=Metric(value=record.get_float("current")),
                    power=_power_metric(record, record.get_float("power")),
                ),
            ),
        ),
    )


def make_ac(record: AssociationRecord, frequency: float) -> Ac:
    """Build the AC block of an inverter or meter sample.

    The aggregate current is the sum of the three phase currents.
    """
    current = record.get_three_phase("current")
    voltage = record.get_three_phase("voltage")
    phases = [
        AcPhase(voltage=Metric(value=v), current=Metric(value=c))
        for v, c in zip(voltage, current)
    ]
    return Ac(
        frequency=Metric(value=frequency),
        current=Metric(value=sum(current)),
        power_active=_power_metric(record, record.get_float("power")),
        phase_1=phases[0],
        phase_2=phases[1],
        phase_3=phases[2],
    )


def make_inverter_data(record: AssociationRecord, frequency: float) -> ComponentData:
    """Build an inverter sample from *record*."""
    component_id = _require_id(record, "inverter_data")
    component_state = (
        record.get_enum(InverterComponentState, "component-state")
        or InverterComponentState.UNSPECIFIED
    )
    return ComponentData(
        ts=datetime.now(tz=UTC),
        id=component_id,
        data=InverterData(
            state=InverterState(component_state=component_state),
            data=AcMeasurements(ac=make_ac(record, frequency)),
        ),
    )


def make_meter_data(record: AssociationRecord, frequency: float) -> ComponentData:
    """Build a meter sample from *record*."""
    component_id = _require_id(record, "meter_data")
    return ComponentData(
        ts=datetime.now(tz=UTC),
        id=component_id,
        data=MeterData(data=AcMeasurements(ac=make_ac(record, frequency))),
    )


def register_builders(evaluator: ScriptEvaluator) -> None:
    """Register ``battery_data``, ``inverter_data`` and ``meter_data``.

    The AC builders look up ``ac_frequency`` in *evaluator* at call time;
    a script without it reports a frequency of 0.
    """

    def ac_frequency() -> float:
        try:
            value = evaluator.eval_named(AC_FREQUENCY_NAME)
        except ScriptError:
            return 0.0
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)

    def battery_data(record: Any) -> ComponentData:
        return make_battery_data(AssociationRecord.from_value(record))

    def inverter_data(record: Any) -> ComponentData:
        return make_inverter_data(AssociationRecord.from_value(record), ac_frequency())

    def meter_data(record: Any) -> ComponentData:
        return make_meter_data(AssociationRecord.from_value(record), ac_frequency())

    evaluator.register("battery_data", battery_data)
    evaluator.register("inverter_data", inverter_data)
    evaluator.register("meter_data", meter_data)
