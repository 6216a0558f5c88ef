"""
Session handling for the FRITZ!Box HTTP API.

See AVM Technical Note "Session ID" for the challenge/response login
protocol implemented here.
"""

from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from datetime import timedelta
from typing import Optional, Protocol

from fritzbox_client_exceptions import AuthenticationException, DecodeException
from fritzbox_models import Session
from fritzbox_utils import safe_int, to_utf16_md5

LOGIN_PATH = "/login_sid.lua"

logger = logging.getLogger(__name__)


class SupportsGet(Protocol):

    def get(self, path: str, params: dict[str, str], timeout: Optional[float] = None) -> bytes:
        ...


def decode_session(payload: bytes) -> Session:
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise DecodeException(f"failed to parse session info: {e}") from e

    rights = root.find("Rights")
    permissions = frozenset(
        name.text for name in rights.iter("Name") if name.text
    ) if rights is not None else frozenset()

    return Session(
        challenge=(root.findtext("Challenge") or "").strip(),
        sid=(root.findtext("SID") or "").strip(),
        block_time=timedelta(seconds=safe_int(root.findtext("BlockTime"))),
        permissions=permissions,
    )


def solve_challenge(challenge: str, password: str) -> str:
    return f"{challenge}-{to_utf16_md5(f'{challenge}-{password}')}"


class SessionManager:
    """
    Owns the single router session shared by every caller.

    All access goes through an internal lock, so at most one login handshake
    is in flight at any time.
    """

    def __init__(self, transport: SupportsGet, username: str, password: str):
        self.transport = transport
        self.username = username
        self._password = password
        self._lock = threading.Lock()
        self._session = Session()

    @property
    def session(self) -> Session:
        with self._lock:
            return self._session

    def get_session_token(self) -> str:
        with self._lock:
            self._login()
            return self._session.sid

    def _login(self) -> None:
        self._session = decode_session(
            self.transport.get(LOGIN_PATH, {"sid": self._session.sid})
        )
        if self._session.is_valid:
            return

        logger.debug("Authenticating new session at FRITZ!Box API")
        response = solve_challenge(self._session.challenge, self._password)
        self._session = decode_session(
            self.transport.get(LOGIN_PATH, {"response": response, "username": self.username})
        )

        if not self._session.is_valid:
            if self._session.block_time:
                logger.warning(f"FRITZ!Box blocks further login attempts for {self._session.block_time}")
            raise AuthenticationException(
                "failed to solve authentication challenge, check username and password"
            )

        logger.debug(f"Authenticated with permissions: {', '.join(sorted(self._session.permissions))}")

    def logout(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            if not self._session.is_valid:
                return  # no session to close

            logger.debug("Logging out from FRITZ!Box API")
            sid = self._session.sid
            self._session = Session()
            self.transport.get(LOGIN_PATH, {"sid": sid, "logout": "true"}, timeout=timeout)
