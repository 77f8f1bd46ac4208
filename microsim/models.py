"""
Pydantic models for microgrid topology and component telemetry.

Mirrors the microgrid API message shapes: components and their
category-specific metadata, directed connections between components, and
the per-component telemetry samples (battery, inverter, meter) produced by
the configuration script.

Enum members carry their wire names (``COMPONENT_CATEGORY_BATTERY``,
``BATTERY_TYPE_LI_ION``, ...).  Script values are matched against them by
uppercasing and prepending the enum's prefix, see :func:`parse_enum`.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, TypeVar

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ComponentCategory(str, Enum):
    """Kind of electrical component."""

    UNSPECIFIED = "COMPONENT_CATEGORY_UNSPECIFIED"
    GRID = "COMPONENT_CATEGORY_GRID"
    METER = "COMPONENT_CATEGORY_METER"
    INVERTER = "COMPONENT_CATEGORY_INVERTER"
    BATTERY = "COMPONENT_CATEGORY_BATTERY"
    EV_CHARGER = "COMPONENT_CATEGORY_EV_CHARGER"
    SENSOR = "COMPONENT_CATEGORY_SENSOR"


class InverterType(str, Enum):
    UNSPECIFIED = "INVERTER_TYPE_UNSPECIFIED"
    BATTERY = "INVERTER_TYPE_BATTERY"
    SOLAR = "INVERTER_TYPE_SOLAR"
    HYBRID = "INVERTER_TYPE_HYBRID"


class BatteryType(str, Enum):
    UNSPECIFIED = "BATTERY_TYPE_UNSPECIFIED"
    LI_ION = "BATTERY_TYPE_LI_ION"
    NA_ION = "BATTERY_TYPE_NA_ION"


class EvChargerType(str, Enum):
    UNSPECIFIED = "EV_CHARGER_TYPE_UNSPECIFIED"
    AC = "EV_CHARGER_TYPE_AC"
    DC = "EV_CHARGER_TYPE_DC"
    HYBRID = "EV_CHARGER_TYPE_HYBRID"


class BatteryComponentState(str, Enum):
    UNSPECIFIED = "COMPONENT_STATE_UNSPECIFIED"
    OFF = "COMPONENT_STATE_OFF"
    IDLE = "COMPONENT_STATE_IDLE"
    CHARGING = "COMPONENT_STATE_CHARGING"
    DISCHARGING = "COMPONENT_STATE_DISCHARGING"
    ERROR = "COMPONENT_STATE_ERROR"
    LOCKED = "COMPONENT_STATE_LOCKED"
    SWITCHING_ON = "COMPONENT_STATE_SWITCHING_ON"
    SWITCHING_OFF = "COMPONENT_STATE_SWITCHING_OFF"
    UNKNOWN = "COMPONENT_STATE_UNKNOWN"


class BatteryRelayState(str, Enum):
    UNSPECIFIED = "RELAY_STATE_UNSPECIFIED"
    OPENED = "RELAY_STATE_OPENED"
    PRECHARGING = "RELAY_STATE_PRECHARGING"
    CLOSED = "RELAY_STATE_CLOSED"
    ERROR = "RELAY_STATE_ERROR"
    LOCKED = "RELAY_STATE_LOCKED"


class InverterComponentState(str, Enum):
    UNSPECIFIED = "COMPONENT_STATE_UNSPECIFIED"
    OFF = "COMPONENT_STATE_OFF"
    SWITCHING_ON = "COMPONENT_STATE_SWITCHING_ON"
    SWITCHING_OFF = "COMPONENT_STATE_SWITCHING_OFF"
    STANDBY = "COMPONENT_STATE_STANDBY"
    IDLE = "COMPONENT_STATE_IDLE"
    CHARGING = "COMPONENT_STATE_CHARGING"
    DISCHARGING = "COMPONENT_STATE_DISCHARGING"
    ERROR = "COMPONENT_STATE_ERROR"
    UNAVAILABLE = "COMPONENT_STATE_UNAVAILABLE"
    UNKNOWN = "COMPONENT_STATE_UNKNOWN"


ENUM_PREFIXES: dict[type[Enum], str] = {
    ComponentCategory: "COMPONENT_CATEGORY_",
    InverterType: "INVERTER_TYPE_",
    BatteryType: "BATTERY_TYPE_",
    EvChargerType: "EV_CHARGER_TYPE_",
    BatteryComponentState: "COMPONENT_STATE_",
    BatteryRelayState: "RELAY_STATE_",
    InverterComponentState: "COMPONENT_STATE_",
}
"""Wire-name prefix prepended to script values before enum lookup."""

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: str) -> E | None:
    """Match a script value such as ``"li_ion"`` against an enum.

    The value is prefixed with the enum's wire prefix and uppercased, so
    ``parse_enum(BatteryType, "li_ion")`` returns ``BatteryType.LI_ION``.

    Returns:
        The matching member, or ``None`` when nothing matches.
    """
    wire_name = (ENUM_PREFIXES[enum_cls] + value).upper()
    for member in enum_cls:
        if member.value == wire_name:
            return member
    return None


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


class InverterMetadata(BaseModel):
    kind: Literal["inverter"] = "inverter"
    type: InverterType


class BatteryMetadata(BaseModel):
    kind: Literal["battery"] = "battery"
    type: BatteryType


class EvChargerMetadata(BaseModel):
    kind: Literal["ev_charger"] = "ev_charger"
    type: EvChargerType


ComponentMetadata = Annotated[
    InverterMetadata | BatteryMetadata | EvChargerMetadata,
    Field(discriminator="kind"),
]

_METADATA_CATEGORY: dict[str, ComponentCategory] = {
    "inverter": ComponentCategory.INVERTER,
    "battery": ComponentCategory.BATTERY,
    "ev_charger": ComponentCategory.EV_CHARGER,
}


class Component(BaseModel):
    """A single electrical component of the microgrid.

    Attributes:
        id: Unique, stable component identifier.
        name: Human readable name, empty when the script omits it.
        category: Component category (mandatory).
        metadata: Category-specific metadata, or ``None`` when the script
            gives no recognised ``type``.
    """

    id: int = Field(ge=0)
    name: str = ""
    category: ComponentCategory
    metadata: ComponentMetadata | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _metadata_matches_category(self) -> Component:
        """Reject metadata whose variant belongs to another category."""
        if self.metadata is not None:
            expected = _METADATA_CATEGORY[self.metadata.kind]
            if expected is not self.category:
                raise ValueError(
                    f"{self.metadata.kind} metadata given for category "
                    f"{self.category.value}"
                )
        return self


class ComponentList(BaseModel):
    components: list[Component] = Field(default_factory=list)


class Connection(BaseModel):
    """Directed edge from ``start`` to ``end`` component id."""

    start: int = Field(ge=0)
    end: int = Field(ge=0)

    model_config = {"frozen": True}


class ConnectionList(BaseModel):
    connections: list[Connection] = Field(default_factory=list)


class Location(BaseModel):
    latitude: float = 0.0
    longitude: float = 0.0


class MicrogridMetadata(BaseModel):
    microgrid_id: int = 0
    location: Location | None = None


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class Bounds(BaseModel):
    lower: float = 0.0
    upper: float = 0.0

    model_config = {"frozen": True}


class Metric(BaseModel):
    """A single measured value with optional system bounds."""

    value: float = 0.0
    system_inclusion_bounds: Bounds | None = None
    system_exclusion_bounds: Bounds | None = None

    model_config = {"frozen": True}


class MetricAggregation(BaseModel):
    """Aggregate over a series of values of one metric."""

    avg: float = 0.0
    min: float | None = None
    max: float | None = None
    system_inclusion_bounds: Bounds | None = None
    system_exclusion_bounds: Bounds | None = None

    model_config = {"frozen": True}


class AcPhase(BaseModel):
    voltage: Metric = Field(default_factory=Metric)
    current: Metric = Field(default_factory=Metric)

    model_config = {"frozen": True}


class Ac(BaseModel):
    """AC side measurements.

    ``current`` is the arithmetic sum of the three phase currents.
    """

    frequency: Metric = Field(default_factory=Metric)
    current: Metric = Field(default_factory=Metric)
    power_active: Metric = Field(default_factory=Metric)
    phase_1: AcPhase = Field(default_factory=AcPhase)
    phase_2: AcPhase = Field(default_factory=AcPhase)
    phase_3: AcPhase = Field(default_factory=AcPhase)

    model_config = {"frozen": True}


class Dc(BaseModel):
    voltage: Metric = Field(default_factory=Metric)
    current: Metric = Field(default_factory=Metric)
    power: Metric = Field(default_factory=Metric)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Component telemetry
# ---------------------------------------------------------------------------


class BatteryProperties(BaseModel):
    capacity: float = 0.0

    model_config = {"frozen": True}


class BatteryState(BaseModel):
    component_state: BatteryComponentState = BatteryComponentState.UNSPECIFIED
    relay_state: BatteryRelayState = BatteryRelayState.UNSPECIFIED

    model_config = {"frozen": True}


class BatteryMeasurements(BaseModel):
    soc: MetricAggregation = Field(default_factory=MetricAggregation)
    dc: Dc = Field(default_factory=Dc)

    model_config = {"frozen": True}


class BatteryData(BaseModel):
    kind: Literal["battery"] = "battery"
    properties: BatteryProperties = Field(default_factory=BatteryProperties)
    state: BatteryState = Field(default_factory=BatteryState)
    errors: tuple[str, ...] = ()
    data: BatteryMeasurements = Field(default_factory=BatteryMeasurements)

    model_config = {"frozen": True}


class InverterState(BaseModel):
    component_state: InverterComponentState = InverterComponentState.UNSPECIFIED

    model_config = {"frozen": True}


class AcMeasurements(BaseModel):
    ac: Ac = Field(default_factory=Ac)

    model_config = {"frozen": True}


class InverterData(BaseModel):
    kind: Literal["inverter"] = "inverter"
    state: InverterState = Field(default_factory=InverterState)
    data: AcMeasurements = Field(default_factory=AcMeasurements)

    model_config = {"frozen": True}


class MeterData(BaseModel):
    kind: Literal["meter"] = "meter"
    data: AcMeasurements = Field(default_factory=AcMeasurements)

    model_config = {"frozen": True}


class ComponentData(BaseModel):
    """One telemetry sample of a component.

    Attributes:
        ts: Creation time of the sample (UTC).
        id: Component the sample belongs to.
        data: Category-specific payload.
    """

    ts: datetime
    id: int
    data: Annotated[
        BatteryData | InverterData | MeterData,
        Field(discriminator="kind"),
    ]

    model_config = {"frozen": True}
