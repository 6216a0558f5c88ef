from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from typing import Optional
from urllib.parse import urlsplit

import requests

from fritzbox_client_exceptions import *
from fritzbox_models import *
from fritzbox_session import SessionManager

FRITZBOX_CLIENT_DEFAULT_HEADERS = {
    "User-Agent": "fritzbox-exporter/0.1"
}

DEFAULT_TIMEOUT = 10
LOGOUT_TIMEOUT = 2

HOME_AUTOMATION_PATH = "/webservices/homeautoswitch.lua"
TRAFFIC_MONITOR_PATH = "/internet/inetstat_monitor.lua"

logger = logging.getLogger(__name__)


class Transport:
    """Plain GET requests against the router base URL. Holds no session state."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url
        self.session = session or requests.Session()

    def get(self, path: str, params: dict[str, str], timeout: Optional[float] = None) -> bytes:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.get(url,
                                        params=sorted(params.items()),
                                        headers=FRITZBOX_CLIENT_DEFAULT_HEADERS,
                                        timeout=timeout or DEFAULT_TIMEOUT)
        except requests.RequestException as e:
            raise TransportException(f"HTTP request to {path} failed: {e}") from e

        if response.status_code != 200:
            raise TransportException(f"{path}: bad HTTP status code: {response.status_code}",
                                     status_code=response.status_code)
        return response.content

    def close(self) -> None:
        self.session.close()


def _element_text(element: Optional[ET.Element], tag: str) -> str:
    if element is None:
        return ""
    return (element.findtext(tag) or "").strip()


def _decode_device(element: ET.Element) -> Device:
    switch = element.find("switch")
    power = element.find("powermeter")
    temperature = element.find("temperature")

    return Device(
        identifier=element.get("identifier", "").strip(),
        internal_id=element.get("id", ""),
        name=_element_text(element, "name"),
        present=_element_text(element, "present") == "1",
        capabilities=Capability.from_bitmask(element.get("functionbitmask")),
        firmware_version=element.get("fwversion", ""),
        manufacturer=element.get("manufacturer", ""),
        product_name=element.get("productname", ""),
        switch=SwitchInfo(
            state=_element_text(switch, "state"),
            mode=_element_text(switch, "mode"),
            lock=_element_text(switch, "lock"),
            device_lock=_element_text(switch, "devicelock"),
        ),
        power=PowerInfo(
            power=_element_text(power, "power"),
            energy=_element_text(power, "energy"),
            voltage=_element_text(power, "voltage"),
        ),
        temperature=TemperatureInfo(
            celsius=_element_text(temperature, "celsius"),
            offset=_element_text(temperature, "offset"),
        ),
    )


def decode_device_list(payload: bytes) -> list[Device]:
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise DecodeException(f"failed to parse device list: {e}") from e

    if root.tag != "devicelist":
        raise DecodeException(f"unexpected device list root element <{root.tag}>")

    return [_decode_device(d) for d in root.findall("device")]


def _decode_series(data: dict, key: str) -> list[float]:
    values = data.get(key)
    if values is None:
        return []
    if not isinstance(values, list):
        raise DecodeException(f"{key}: expected a list of numbers, got {type(values).__name__}")
    try:
        return [float(v) for v in values]
    except (ValueError, TypeError) as e:
        raise DecodeException(f"{key}: {e}") from e


def decode_traffic_snapshot(payload: bytes) -> TrafficMonitoringData:
    try:
        result = json.loads(payload)
    except ValueError as e:
        raise DecodeException(f"failed to decode response as JSON: {e}") from e

    if not isinstance(result, list):
        raise DecodeException("traffic monitor response is not a JSON array")
    if len(result) == 0:
        raise DecodeException("FRITZ!Box returned no monitoring data")

    data = result[0]
    if not isinstance(data, dict):
        raise DecodeException("traffic monitor entry is not a JSON object")

    return TrafficMonitoringData(**{
        name: _decode_series(data, key)
        for name, key in TRAFFIC_MONITORING_KEYS.items()
    })


class FritzBoxClient:

    def __init__(self, transport: Transport, session_manager: SessionManager):
        self.transport = transport
        self.session_manager = session_manager

    @classmethod
    def create(cls, base_url: str, username: str, password: str) -> FritzBoxClient:
        if not base_url.startswith(("http://", "https://")):
            base_url = f"http://{base_url}"
        if not urlsplit(base_url).hostname:
            raise FritzBoxException(f"invalid base URL: {base_url!r}")
        base_url = base_url.rstrip("/")

        transport = Transport(base_url)
        return cls(transport, SessionManager(transport, username, password))

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    def __command(self, cmd: str) -> bytes:
        sid = self.session_manager.get_session_token()
        return self.transport.get(HOME_AUTOMATION_PATH, {"sid": sid, "switchcmd": cmd})

    def get_devices(self) -> list[Device]:
        logger.debug("Requesting list of devices")
        return decode_device_list(self.__command("getdevicelistinfos"))

    def get_network_stats(self) -> TrafficMonitoringData:
        sid = self.session_manager.get_session_token()
        payload = self.transport.get(TRAFFIC_MONITOR_PATH, {
            "sid": sid,
            "myXhr": "1",
            "xhr": "1",
            "useajax": "1",
            "action": "get_graphic",
        })
        return decode_traffic_snapshot(payload)

    def close(self, timeout: float = LOGOUT_TIMEOUT) -> None:
        """Best-effort logout. Failures are logged, never raised."""
        try:
            self.session_manager.logout(timeout=timeout)
        except FritzBoxException as e:
            logger.error(f"Failed to log out from FRITZ!Box API: {e}")
        finally:
            self.transport.close()
