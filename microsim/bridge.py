"""
Configuration bridge between the Python config script and the server.

The bridge owns the current *generation*: one evaluated configuration script
plus the per-component stream descriptors resolved from it.  Every public
operation captures the generation reference once at its start and works
against that generation only, so a reload that lands while a stream or a
sweep is running never mixes old and new configuration in one operation.

Reload builds a complete new generation to the side (fresh evaluator, host
builders registered, script evaluated) and then replaces the reference in
a single assignment.  A reload that fails to evaluate is logged and the
current generation keeps serving.

Script names read by the bridge:

    socket_addr                  "host:port" the server binds to
    components                   sequence of component records
    connections                  sequence of (start, end) id pairs
    set_power_active(id, power)  power command entry point
    microgrid_id, location       optional metadata
    retain_requests_duration_ms  optional interlock retention override

Component record keys: ``id``, ``name``, ``category``, ``type`` and
``stream`` (a record with ``interval`` in milliseconds and ``data``, a
function called with the component id that returns a telemetry sample).

CHANGELOG:
- 2026-10-19: Initial creation
- 2026-10-19: Shape checks for connections, location and stream values

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from microsim.builders import register_builders
from microsim.errors import (
    CommandError,
    ComponentNotFound,
    ComponentValidationError,
    ScriptError,
    ScriptLoadError,
)
from microsim.evaluator import ScriptEvaluator
from microsim.models import (
    BatteryMetadata,
    BatteryType,
    Component,
    ComponentCategory,
    ComponentData,
    ComponentList,
    Connection,
    ConnectionList,
    EvChargerMetadata,
    EvChargerType,
    InverterMetadata,
    InverterType,
    Location,
    MicrogridMetadata,
)
from microsim.records import AssociationRecord

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Script names
# ---------------------------------------------------------------------------

SOCKET_ADDR_NAME = "socket_addr"
COMPONENTS_NAME = "components"
CONNECTIONS_NAME = "connections"
SET_POWER_ACTIVE_NAME = "set_power_active"
MICROGRID_ID_NAME = "microgrid_id"
LOCATION_NAME = "location"
RETAIN_REQUESTS_NAME = "retain_requests_duration_ms"


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamDescriptor:
    """Resolved telemetry source of one component."""

    data_fn: Callable[..., Any]
    interval_ms: int


@dataclass
class Generation:
    """One evaluated config script and the caches derived from it."""

    number: int
    evaluator: ScriptEvaluator
    stream_cache: dict[int, StreamDescriptor] = field(default_factory=dict)


def build_generation(
    path: Path,
    number: int,
    host_functions: dict[str, Callable[..., Any]] | None = None,
) -> Generation:
    """Evaluate the script at *path* into a new, unshared generation.

    Raises:
        ScriptLoadError: If the script fails to evaluate.
    """
    evaluator = ScriptEvaluator(host_functions)
    register_builders(evaluator)
    evaluator.load(path)
    return Generation(number=number, evaluator=evaluator)


# ---------------------------------------------------------------------------
# Record -> model conversion
# ---------------------------------------------------------------------------


def _as_record(value: Any) -> AssociationRecord:
    try:
        return AssociationRecord.from_value(value)
    except TypeError as exc:
        raise ComponentValidationError(f"Malformed component record: {exc}") from exc


def component_from_record(record: AssociationRecord) -> Component:
    """Build a :class:`Component` from a component record.

    ``id`` and ``category`` are mandatory.  A missing or unrecognised
    ``type`` only drops the metadata.

    Raises:
        ComponentValidationError: On a missing id or a missing/unknown
            category.
    """
    component_id = record.get_int("id")
    if component_id is None or component_id < 0:
        raise ComponentValidationError(
            f"Component record has no valid 'id': {record!r}", field="id"
        )

    category = record.get_enum(ComponentCategory, "category")
    if category is None:
        raise ComponentValidationError(
            f"Invalid component category for component {component_id}",
            component_id=component_id,
            field="category",
        )

    metadata: InverterMetadata | BatteryMetadata | EvChargerMetadata | None = None
    if category is ComponentCategory.INVERTER:
        inverter_type = record.get_enum(InverterType, "type")
        if inverter_type is not None:
            metadata = InverterMetadata(type=inverter_type)
    elif category is ComponentCategory.BATTERY:
        battery_type = record.get_enum(BatteryType, "type")
        if battery_type is not None:
            metadata = BatteryMetadata(type=battery_type)
    elif category is ComponentCategory.EV_CHARGER:
        charger_type = record.get_enum(EvChargerType, "type")
        if charger_type is not None:
            metadata = EvChargerMetadata(type=charger_type)

    if metadata is None and category in (
        ComponentCategory.INVERTER,
        ComponentCategory.BATTERY,
        ComponentCategory.EV_CHARGER,
    ):
        logger.warning(
            "Component %d (%s) has no recognised type, metadata omitted",
            component_id,
            category.value,
        )

    try:
        return Component(
            id=component_id,
            name=record.get_str("name"),
            category=category,
            metadata=metadata,
        )
    except ValidationError as exc:
        raise ComponentValidationError(
            f"Invalid component {component_id}: {exc}",
            component_id=component_id,
        ) from exc


def connection_from_pair(value: Any) -> Connection:
    """Build a :class:`Connection` from a ``(start, end)`` pair."""
    try:
        start, end = value
        return Connection(start=start, end=end)
    except (TypeError, ValueError) as exc:
        raise ScriptError(f"Invalid connection entry {value!r}: {exc}", exc) from exc


def stream_descriptor_from_record(
    record: AssociationRecord, component_id: int
) -> StreamDescriptor:
    """Read the ``stream`` sub-record of a component record."""
    try:
        stream = record.get_record("stream")
    except TypeError as exc:
        raise ComponentValidationError(
            f"Component {component_id} has a malformed 'stream': {exc}",
            component_id=component_id,
            field="stream",
        ) from exc
    if stream is None:
        raise ComponentValidationError(
            f"Component {component_id} has no 'stream' definition",
            component_id=component_id,
            field="stream",
        )
    interval = stream.get_int("interval")
    if interval is None or interval <= 0:
        raise ComponentValidationError(
            f"Component {component_id} has no positive stream 'interval'",
            component_id=component_id,
            field="stream.interval",
        )
    data_fn = stream.get("data")
    if not callable(data_fn):
        raise ComponentValidationError(
            f"Component {component_id} stream 'data' is not callable",
            component_id=component_id,
            field="stream.data",
        )
    return StreamDescriptor(data_fn=data_fn, interval_ms=interval)


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------


class ConfigBridge:
    """Typed access to the configuration script with atomic reloads.

    Use :meth:`load` to construct; it fails if the script does not evaluate.

    Args:
        path: Path of the configuration script.
        generation: The initial, already evaluated generation.
        host_functions: Extra callables exposed to the script in every
            generation.
    """

    def __init__(
        self,
        path: Path,
        generation: Generation,
        host_functions: dict[str, Callable[..., Any]] | None = None,
    ) -> None:
        self.path = path
        self._generation = generation
        self._host_functions = dict(host_functions or {})

    @classmethod
    def load(
        cls,
        path: str | Path,
        host_functions: dict[str, Callable[..., Any]] | None = None,
    ) -> ConfigBridge:
        """Evaluate the script at *path* and return a serving bridge.

        Raises:
            ScriptLoadError: If the script fails to evaluate.
        """
        path = Path(path)
        generation = build_generation(path, 1, host_functions)
        logger.info("Loaded config script %s", path)
        return cls(path, generation, host_functions)

    @property
    def generation(self) -> Generation:
        """The generation new operations will run against."""
        return self._generation

    def reload(self) -> bool:
        """Re-evaluate the script and swap in the new generation.

        Returns:
            True when the new generation is serving, False when evaluation
            failed and the previous generation was kept.
        """
        current = self._generation
        try:
            generation = build_generation(
                self.path, current.number + 1, self._host_functions
            )
        except ScriptLoadError as exc:
            logger.error(
                "Config reload failed, keeping generation %d:\n%s",
                current.number,
                exc.format(),
            )
            return False
        self._generation = generation
        logger.info(
            "Config script %s reloaded (generation %d)", self.path, generation.number
        )
        return True

    # -- topology ----------------------------------------------------------

    def socket_address(self) -> str:
        value = self._generation.evaluator.eval_named(SOCKET_ADDR_NAME)
        if not isinstance(value, str):
            raise ScriptError(f"{SOCKET_ADDR_NAME} must be a string, got {value!r}")
        return value

    def metadata(self) -> MicrogridMetadata:
        """Return the microgrid id and location, defaulting when absent."""
        evaluator = self._generation.evaluator
        microgrid_id = 0
        if evaluator.has(MICROGRID_ID_NAME):
            microgrid_id = evaluator.eval_named(MICROGRID_ID_NAME)
            if isinstance(microgrid_id, bool) or not isinstance(microgrid_id, int):
                raise ScriptError(
                    f"{MICROGRID_ID_NAME} must be an integer, got {microgrid_id!r}"
                )
        location = None
        if evaluator.has(LOCATION_NAME):
            value = evaluator.eval_named(LOCATION_NAME)
            try:
                record = AssociationRecord.from_value(value)
            except TypeError as exc:
                raise ScriptError(f"Malformed {LOCATION_NAME}: {exc}", exc) from exc
            location = Location(
                latitude=record.get_float("latitude"),
                longitude=record.get_float("longitude"),
            )
        return MicrogridMetadata(microgrid_id=microgrid_id, location=location)

    def _component_records(self, generation: Generation) -> Iterable[Any]:
        records = generation.evaluator.eval_named(COMPONENTS_NAME)
        if isinstance(records, (str, bytes)) or not isinstance(records, Iterable):
            raise ScriptError(f"{COMPONENTS_NAME} must be a sequence of records")
        return records

    def list_components(self) -> ComponentList:
        """Return every component of the current generation.

        Raises:
            ComponentValidationError: If any record fails validation; no
                partial list is returned.
        """
        generation = self._generation
        components = [
            component_from_record(_as_record(value))
            for value in self._component_records(generation)
        ]
        return ComponentList(components=components)

    def list_connections(self) -> ConnectionList:
        pairs = self._generation.evaluator.eval_named(CONNECTIONS_NAME)
        if isinstance(pairs, (str, bytes)) or not isinstance(pairs, Iterable):
            raise ScriptError(f"{CONNECTIONS_NAME} must be a sequence of pairs")
        return ConnectionList(connections=[connection_from_pair(p) for p in pairs])

    def battery_inverter_ids(self) -> set[int]:
        """Ids of inverters whose metadata type is BATTERY."""
        return {
            c.id
            for c in self.list_components().components
            if c.category is ComponentCategory.INVERTER
            and isinstance(c.metadata, InverterMetadata)
            and c.metadata.type is InverterType.BATTERY
        }

    def retain_requests_duration(self, default: timedelta) -> timedelta:
        """How long a power command on a tracked inverter stays valid."""
        evaluator = self._generation.evaluator
        if not evaluator.has(RETAIN_REQUESTS_NAME):
            return default
        value = evaluator.eval_named(RETAIN_REQUESTS_NAME)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            logger.warning(
                "Ignoring invalid %s=%r, using %s",
                RETAIN_REQUESTS_NAME,
                value,
                default,
            )
            return default
        return timedelta(milliseconds=value)

    # -- telemetry ---------------------------------------------------------

    def _resolve_stream(
        self, generation: Generation, component_id: int
    ) -> StreamDescriptor:
        for value in self._component_records(generation):
            record = _as_record(value)
            if record.get_int("id") == component_id:
                return stream_descriptor_from_record(record, component_id)
        raise ComponentNotFound(component_id)

    def get_component_data(self, component_id: int) -> tuple[ComponentData, int]:
        """Synthesize one telemetry sample for *component_id*.

        The component's stream descriptor is resolved on first use and
        cached for the lifetime of the generation.

        Returns:
            The sample and the component's stream interval in milliseconds.

        Raises:
            ComponentNotFound: If no record has this id.
            ComponentValidationError: If the record's stream is malformed.
            ScriptError: If the data function fails or returns no sample.
        """
        generation = self._generation
        descriptor = generation.stream_cache.get(component_id)
        if descriptor is None:
            descriptor = self._resolve_stream(generation, component_id)
            generation.stream_cache[component_id] = descriptor

        sample = generation.evaluator.call(descriptor.data_fn, component_id)
        if not isinstance(sample, ComponentData):
            raise ScriptError(
                f"Data function of component {component_id} returned "
                f"{type(sample).__name__}, expected a telemetry sample"
            )
        return sample, descriptor.interval_ms

    # -- commands ----------------------------------------------------------

    def set_power_active(self, component_id: int, power: float) -> None:
        """Forward an active power setpoint (watts) to the script.

        Raises:
            CommandError: If the script rejects the command.
        """
        generation = self._generation
        try:
            generation.evaluator.call(SET_POWER_ACTIVE_NAME, component_id, power)
        except ScriptError as exc:
            logger.error("Config script error:\n%s", exc.format())
            raise CommandError(component_id, exc.desc) from exc
