"""Shared fixtures for the FRITZ!Box exporter tests."""

from __future__ import annotations

from typing import Callable, Optional

import pytest

from fritzbox_models import ZERO_SESSION_ID

VALID_SID = "a1b2c3d4e5f6a7b8"

DEVICE_LIST_XML = b"""<?xml version="1.0" encoding="utf-8"?>
<devicelist version="1">
  <device identifier="08761 0000434" id="17" functionbitmask="35712" fwversion="03.83" manufacturer="AVM" productname="FRITZ!DECT 200">
    <present>1</present>
    <name>Kitchen Plug</name>
    <switch>
      <state>1</state>
      <mode>manuell</mode>
      <lock>0</lock>
      <devicelock>0</devicelock>
    </switch>
    <powermeter>
      <voltage>230051</voltage>
      <power>4560</power>
      <energy>3512</energy>
    </powermeter>
    <temperature>
      <celsius>215</celsius>
      <offset>0</offset>
    </temperature>
  </device>
  <device identifier="11959 0171328" id="18" functionbitmask="320" fwversion="03.54" manufacturer="AVM" productname="Comet DECT">
    <present>0</present>
    <name>Living Room Thermostat</name>
    <temperature>
      <celsius>-15</celsius>
      <offset>0</offset>
    </temperature>
  </device>
  <device identifier="09995 0000001" id="19" functionbitmask="1024" fwversion="04.16" manufacturer="AVM" productname="FRITZ!DECT Repeater 100">
    <present>1</present>
    <name>Repeater</name>
  </device>
</devicelist>
"""


def session_xml(sid: str, challenge: str = "abc123", block_time: int = 0,
                rights: tuple[tuple[str, int], ...] = ()) -> bytes:
    rights_xml = "".join(f"<Name>{name}</Name><Access>{access}</Access>" for name, access in rights)
    return (
        f'<?xml version="1.0" encoding="utf-8"?>'
        f"<SessionInfo><SID>{sid}</SID><Challenge>{challenge}</Challenge>"
        f"<BlockTime>{block_time}</BlockTime><Rights>{rights_xml}</Rights></SessionInfo>"
    ).encode("utf-8")


class FakeTransport:
    """Records GET requests and answers them from a queue of responses."""

    def __init__(self, base_url: str = "http://fritz.box"):
        self.base_url = base_url
        self.calls: list[tuple[str, dict[str, str], Optional[float]]] = []
        self.responses: list[bytes | Exception | Callable[[str, dict], bytes]] = []
        self.closed = False

    def queue(self, *responses) -> FakeTransport:
        self.responses.extend(responses)
        return self

    def get(self, path: str, params: dict[str, str], timeout: Optional[float] = None) -> bytes:
        self.calls.append((path, dict(params), timeout))
        if not self.responses:
            raise AssertionError(f"unexpected request to {path} with {params}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(path, params)
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def zero_session() -> bytes:
    return session_xml(ZERO_SESSION_ID)
