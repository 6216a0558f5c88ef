from __future__ import annotations

from typing import Iterable, Optional


class FritzBoxException(Exception):
    pass


class AuthenticationException(FritzBoxException):
    """Login handshake was rejected by the router. Not retried automatically."""


class TransportException(FritzBoxException):

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeException(FritzBoxException):
    """Response body could not be decoded into the expected records."""


class ConfigurationException(FritzBoxException):

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("invalid configuration: " + "; ".join(self.errors))


class MetricsServerException(FritzBoxException):
    pass
