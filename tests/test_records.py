"""
Unit tests for association records.

Tests verify:
- First-match-wins lookup with case-sensitive keys.
- Construction from pair sequences and mappings; malformed input rejected.
- Numeric and three-phase accessors default to zero.
- Enum accessor applies the wire prefix and logs unrecognised values.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

import pytest

from microsim.models import BatteryType, ComponentCategory
from microsim.records import AssociationRecord


class TestLookup:
    def test_first_match_wins(self) -> None:
        record = AssociationRecord([("a", 1), ("b", 2), ("a", 3)])
        assert record.get("a") == 1

    def test_keys_are_case_sensitive(self) -> None:
        record = AssociationRecord([("Id", 1)])
        assert record.get("id") is None
        assert "Id" in record
        assert "id" not in record

    def test_default_for_missing_key(self) -> None:
        assert AssociationRecord([]).get("x", "fallback") == "fallback"

    def test_iteration_preserves_order_and_duplicates(self) -> None:
        pairs = [("a", 1), ("b", 2), ("a", 3)]
        record = AssociationRecord(pairs)
        assert list(record) == pairs
        assert len(record) == 3


class TestFromValue:
    def test_from_pair_list(self) -> None:
        record = AssociationRecord.from_value([["id", 7], ("name", "x")])
        assert record.get("id") == 7
        assert record.get_str("name") == "x"

    def test_from_mapping_keeps_insertion_order(self) -> None:
        record = AssociationRecord.from_value({"b": 1, "a": 2})
        assert [k for k, _ in record] == ["b", "a"]

    def test_record_passes_through(self) -> None:
        record = AssociationRecord([("a", 1)])
        assert AssociationRecord.from_value(record) is record

    @pytest.mark.parametrize("value", ["abc", 42, None, [("a", 1, 2)], ["ab"]])
    def test_malformed_values_rejected(self, value: object) -> None:
        with pytest.raises(TypeError):
            AssociationRecord.from_value(value)


class TestTypedAccessors:
    def test_get_int_rejects_floats_and_bools(self) -> None:
        record = AssociationRecord([("a", 1.5), ("b", True), ("c", 3)])
        assert record.get_int("a") is None
        assert record.get_int("b") is None
        assert record.get_int("c") == 3
        assert record.get_int("missing") is None

    def test_get_float_defaults_to_zero(self) -> None:
        record = AssociationRecord([("v", 230), ("s", "high")])
        assert record.get_float("v") == 230.0
        assert record.get_float("s") == 0.0
        assert record.get_float("missing") == 0.0

    def test_three_phase_full(self) -> None:
        record = AssociationRecord([("current", [1, 2.5, 3])])
        assert record.get_three_phase("current") == (1.0, 2.5, 3.0)

    def test_three_phase_short_and_missing(self) -> None:
        record = AssociationRecord([("current", [4])])
        assert record.get_three_phase("current") == (4.0, 0.0, 0.0)
        assert record.get_three_phase("voltage") == (0.0, 0.0, 0.0)

    def test_get_record_nested(self) -> None:
        record = AssociationRecord([("stream", [("interval", 100)])])
        nested = record.get_record("stream")
        assert nested is not None
        assert nested.get_int("interval") == 100
        assert record.get_record("missing") is None


class TestGetEnum:
    def test_prefix_and_uppercase(self) -> None:
        record = AssociationRecord([("type", "li_ion"), ("category", "Battery")])
        assert record.get_enum(BatteryType, "type") is BatteryType.LI_ION
        assert record.get_enum(ComponentCategory, "category") is ComponentCategory.BATTERY

    def test_missing_is_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert AssociationRecord([]).get_enum(BatteryType, "type") is None
        assert caplog.text == ""

    def test_unrecognised_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        record = AssociationRecord([("type", "lead_acid")])
        with caplog.at_level(logging.WARNING):
            assert record.get_enum(BatteryType, "type") is None
        assert "Invalid value for type: lead_acid" in caplog.text

    def test_non_string_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        record = AssociationRecord([("type", 3)])
        with caplog.at_level(logging.WARNING):
            assert record.get_enum(BatteryType, "type") is None
        assert "Invalid value for type" in caplog.text
