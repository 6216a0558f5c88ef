from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import IntFlag

from fritzbox_utils import safe_float

ZERO_SESSION_ID = "0000000000000000"
"""
Session ID the router issues to indicate an invalid session or "no session".
"""


@dataclass(frozen=True)
class Session:
    challenge: str = ""
    sid: str = ""
    block_time: timedelta = timedelta()
    permissions: frozenset[str] = frozenset()

    @property
    def is_valid(self) -> bool:
        return self.sid not in ("", ZERO_SESSION_ID)


class Capability(IntFlag):
    """
    Bits of the AVM ``functionbitmask`` device attribute.
    """
    HANFUN_COMPATIBILITY = 1 << 0
    ALERT_TRIGGER = 1 << 4
    HEAT_CONTROL = 1 << 6
    """
    Radiator thermostat (HKR)
    """
    POWER_SENSOR = 1 << 7
    TEMPERATURE_SENSOR = 1 << 8
    STATE_SWITCH = 1 << 9
    DECT_REPEATER = 1 << 10
    MICROPHONE = 1 << 11
    HANFUN_UNIT = 1 << 13

    @classmethod
    def from_bitmask(cls, raw: str) -> Capability:
        """Unreadable bitmasks mean no capabilities; unknown bits are dropped."""
        try:
            bitmask = int(raw)
        except (ValueError, TypeError):
            return cls(0)
        known = 0
        for c in cls:
            known |= c.value
        return cls(bitmask & known)


@dataclass(frozen=True)
class SwitchInfo:
    state: str = ""
    """
    "1" if switched on, "0" if off, empty if unknown.
    """
    mode: str = ""
    lock: str = ""
    device_lock: str = ""

    @property
    def is_powered_on(self) -> bool:
        return self.state == "1"


@dataclass(frozen=True)
class PowerInfo:
    """Raw power meter readings as sent by the router."""
    power: str = ""
    """Electric power in milliwatts."""
    energy: str = ""
    """Accumulated consumption in watt hours since initial setup."""
    voltage: str = ""
    """Electric voltage in millivolts."""

    @property
    def watts(self) -> float:
        return safe_float(self.power) / 1000

    @property
    def watt_hours(self) -> float:
        return safe_float(self.energy)

    @property
    def volts(self) -> float:
        return safe_float(self.voltage) / 1000


@dataclass(frozen=True)
class TemperatureInfo:
    celsius: str = ""
    """
    Temperature at the device sensor in units of 0.1 °C.
    """
    offset: str = ""

    @property
    def degrees_celsius(self) -> float:
        return safe_float(self.celsius) / 10


@dataclass(frozen=True)
class Device:
    identifier: str
    name: str
    present: bool
    capabilities: Capability = Capability(0)
    internal_id: str = ""
    firmware_version: str = ""
    manufacturer: str = ""
    product_name: str = ""
    switch: SwitchInfo = field(default_factory=SwitchInfo)
    power: PowerInfo = field(default_factory=PowerInfo)
    temperature: TemperatureInfo = field(default_factory=TemperatureInfo)

    def has(self, *capabilities: Capability) -> bool:
        return all(c in self.capabilities for c in capabilities)

    @property
    def can_measure_power(self) -> bool:
        return self.has(Capability.POWER_SENSOR)

    @property
    def can_measure_temperature(self) -> bool:
        return self.has(Capability.TEMPERATURE_SENSOR)

    @property
    def is_switch(self) -> bool:
        return self.has(Capability.STATE_SWITCH)


@dataclass(frozen=True)
class TrafficMonitoringData:
    """
    Traffic monitor snapshot in bytes per second.

    Every series holds the last 100 seconds in 20 buckets of 5 seconds each,
    newest bucket first.
    """
    downstream_internet: list[float] = field(default_factory=list)
    downstream_media: list[float] = field(default_factory=list)
    downstream_guest: list[float] = field(default_factory=list)
    upstream_realtime: list[float] = field(default_factory=list)
    upstream_high_priority: list[float] = field(default_factory=list)
    upstream_default_priority: list[float] = field(default_factory=list)
    upstream_low_priority: list[float] = field(default_factory=list)
    upstream_guest: list[float] = field(default_factory=list)


TRAFFIC_MONITORING_KEYS = {
    "downstream_internet": "ds_bps_curr",
    "downstream_media": "ds_mc_bps_curr",
    "downstream_guest": "ds_guest_bps_curr",
    "upstream_realtime": "us_realtime_bps_curr",
    "upstream_high_priority": "us_important_bps_curr",
    "upstream_default_priority": "us_default_bps_curr",
    "upstream_low_priority": "us_background_bps_curr",
    "upstream_guest": "guest_us_bps",
}
