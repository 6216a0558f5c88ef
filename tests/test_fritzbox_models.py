"""Tests for the FRITZ!Box data models and parsing helpers."""

from __future__ import annotations

import pytest

from fritzbox_models import Capability, Device, PowerInfo, Session, SwitchInfo, TemperatureInfo
from fritzbox_utils import parse_duration, safe_float


class TestCapability:
    """Tests for Capability.from_bitmask and Device.has."""

    def test_parses_known_bits(self) -> None:
        """Test that every known bit maps onto its capability."""
        caps = Capability.from_bitmask("896")  # bits 7, 8, 9
        assert caps == Capability.POWER_SENSOR | Capability.TEMPERATURE_SENSOR | Capability.STATE_SWITCH

    def test_drops_unknown_bits(self) -> None:
        """Test that bits without a known capability are ignored."""
        assert Capability.from_bitmask(str(1 << 15 | 1 << 10)) == Capability.DECT_REPEATER

    @pytest.mark.parametrize("raw", ["", None, "abc", "12.5"])
    def test_unreadable_bitmask_means_no_capabilities(self, raw) -> None:
        """Test that an unreadable bitmask yields no capabilities."""
        assert Capability.from_bitmask(raw) == Capability(0)

    def test_has_requires_every_capability(self) -> None:
        """Test that has() checks all requested capabilities."""
        device = Device("1", "d", True, Capability.from_bitmask("320"))
        assert device.has(Capability.HEAT_CONTROL)
        assert device.has(Capability.HEAT_CONTROL, Capability.TEMPERATURE_SENSOR)
        assert not device.has(Capability.HEAT_CONTROL, Capability.POWER_SENSOR)
        assert device.can_measure_temperature
        assert not device.can_measure_power
        assert not device.is_switch


class TestScaling:
    """Tests for the fixed-point conversions of raw device readings."""

    def test_power_meter(self) -> None:
        """Test milli-unit power and voltage and plain watt hours."""
        power = PowerInfo(power="4560", energy="3512", voltage="230051")
        assert power.watts == pytest.approx(4.56)
        assert power.volts == pytest.approx(230.051)
        assert power.watt_hours == 3512.0

    @pytest.mark.parametrize("raw,expected", [("215", 21.5), ("-15", -1.5), ("0", 0.0)])
    def test_temperature_tenths(self, raw: str, expected: float) -> None:
        """Test that temperatures are reported in tenths of a degree."""
        assert TemperatureInfo(celsius=raw).degrees_celsius == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", "n/a", "1,5"])
    def test_unparsable_readings_degrade_to_zero(self, raw: str) -> None:
        """Test that parse failures yield zero rather than an error."""
        power = PowerInfo(power=raw, energy=raw, voltage=raw)
        assert power.watts == 0.0
        assert power.watt_hours == 0.0
        assert power.volts == 0.0
        assert TemperatureInfo(celsius=raw).degrees_celsius == 0.0

    def test_switch_state(self) -> None:
        """Test that only state "1" counts as powered on."""
        assert SwitchInfo(state="1").is_powered_on
        assert not SwitchInfo(state="0").is_powered_on
        assert not SwitchInfo().is_powered_on


class TestSession:
    """Tests for Session.is_valid."""

    @pytest.mark.parametrize("sid,valid", [("", False), ("0000000000000000", False),
                                           ("a1b2c3d4e5f6a7b8", True)])
    def test_is_valid(self, sid: str, valid: bool) -> None:
        """Test that empty and all-zero SIDs are no session."""
        assert Session(sid=sid).is_valid is valid


class TestUtils:
    """Tests for parsing helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("30", 30.0), ("90s", 90.0), ("5m", 300.0), ("1h30m", 5400.0), ("250ms", 0.25), ("1.5s", 1.5),
    ])
    def test_parse_duration(self, value: str, expected: float) -> None:
        """Test Go-style durations and bare seconds."""
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "5x", "m5", "5m garbage"])
    def test_parse_duration_rejects_garbage(self, value: str) -> None:
        """Test that malformed durations raise ValueError."""
        with pytest.raises(ValueError):
            parse_duration(value)

    def test_safe_float(self) -> None:
        """Test that safe_float falls back to zero."""
        assert safe_float("1.25") == 1.25
        assert safe_float(None) == 0.0
        assert safe_float("x") == 0.0
