"""
Association records read from the configuration script.

An association record is an ordered sequence of ``(key, value)`` pairs.
Lookups return the value of the first pair whose key matches exactly;
later duplicates are ignored.  Scripts may also hand over a mapping, which
is read in insertion order.

Numeric accessors default to ``0.0`` when a key is absent so scripts may
leave out telemetry dimensions they do not model.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from enum import Enum
from typing import Any, TypeVar

from microsim.models import parse_enum

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

_MISSING = object()


class AssociationRecord:
    """Ordered key/value pairs with first-match-wins lookup.

    Args:
        pairs: The ``(key, value)`` pairs, in script order.
    """

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Sequence[tuple[str, Any]]) -> None:
        self._pairs = tuple(pairs)

    @classmethod
    def from_value(cls, value: Any) -> AssociationRecord:
        """Build a record from a script value.

        Accepts an existing record, a mapping, or a sequence of two-element
        pairs.

        Raises:
            TypeError: If *value* has none of these shapes.
        """
        if isinstance(value, AssociationRecord):
            return value
        if isinstance(value, Mapping):
            return cls(list(value.items()))
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise TypeError(
                f"expected a sequence of (key, value) pairs, got {type(value).__name__}"
            )
        pairs = []
        for item in value:
            if (
                isinstance(item, (str, bytes))
                or not isinstance(item, Sequence)
                or len(item) != 2
            ):
                raise TypeError(f"association record entry is not a pair: {item!r}")
            pairs.append((item[0], item[1]))
        return cls(pairs)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._pairs)

    def __repr__(self) -> str:
        return f"AssociationRecord({list(self._pairs)!r})"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value of the first pair keyed *key*, else *default*."""
        for k, v in self._pairs:
            if k == key:
                return v
        return default

    def get_int(self, key: str) -> int | None:
        """Return an integer field, or ``None`` when absent or not integral."""
        value = self.get(key, _MISSING)
        if value is _MISSING or isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key)
        return value if isinstance(value, str) else default

    def get_float(self, key: str) -> float:
        """Return a numeric field as float, ``0.0`` when absent."""
        value = self.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)

    def get_three_phase(self, key: str) -> tuple[float, float, float]:
        """Return a three-phase field as a triple.

        Missing phases (or a missing field) read as ``0.0``.
        """
        value = self.get(key)
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            value = ()
        phases = []
        for idx in range(3):
            item = value[idx] if idx < len(value) else None
            if isinstance(item, bool) or not isinstance(item, (int, float)):
                phases.append(0.0)
            else:
                phases.append(float(item))
        return phases[0], phases[1], phases[2]

    def get_record(self, key: str) -> AssociationRecord | None:
        """Return a nested record, or ``None`` when absent."""
        value = self.get(key)
        if value is None:
            return None
        return AssociationRecord.from_value(value)

    def get_enum(self, enum_cls: type[E], key: str) -> E | None:
        """Parse an enum field using the enum's wire prefix.

        An absent field returns ``None`` silently; a present but unrecognised
        value is logged and also returns ``None``.
        """
        value = self.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            logger.warning("Invalid value for %s: %r", key, value)
            return None
        member = parse_enum(enum_cls, value)
        if member is None:
            logger.warning("Invalid value for %s: %s", key, value)
        return member
