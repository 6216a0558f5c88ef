from __future__ import annotations

import argparse
import os
from dataclasses import dataclass

from fritzbox_client_exceptions import ConfigurationException
from fritzbox_utils import parse_duration

DEFAULT_BASE_URL = "http://fritz.box"
DEFAULT_LISTEN_ADDR = "0.0.0.0:3000"
DEFAULT_DEVICE_MONITORING_INTERVAL = "5m"
# the router reports the last 100 seconds of traffic in 20 buckets of 5 seconds
DEFAULT_NETWORK_MONITORING_INTERVAL = "100s"


@dataclass
class Config:
    username: str = ""
    password: str = ""
    base_url: str = DEFAULT_BASE_URL
    listen_addr: str = DEFAULT_LISTEN_ADDR
    device_monitoring_interval: float = parse_duration(DEFAULT_DEVICE_MONITORING_INTERVAL)
    network_monitoring_interval: float = parse_duration(DEFAULT_NETWORK_MONITORING_INTERVAL)

    @property
    def listen_host(self) -> str:
        host, _, _ = self.listen_addr.rpartition(":")
        return host.strip("[]") or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        _, _, port = self.listen_addr.rpartition(":")
        return int(port)

    def validate(self) -> None:
        """Raise ConfigurationException listing every problem at once."""
        errors: list[str] = []

        if not self.listen_addr:
            errors.append("missing listen_addr")
        elif ":" not in self.listen_addr or not self.listen_addr.rpartition(":")[2].isdigit():
            errors.append(f"listen_addr must use the HOST:PORT notation, got {self.listen_addr!r}")
        elif not 0 <= self.listen_port <= 65535:
            errors.append(f"listen_addr port must be between 0 and 65535, got {self.listen_port}")
        if not self.username:
            errors.append("missing fritzbox username")
        if not self.password:
            errors.append("missing fritzbox password")
        if self.device_monitoring_interval <= 0:
            errors.append("device_monitoring_interval must be positive")
        if self.network_monitoring_interval <= 0:
            errors.append("network_monitoring_interval must be positive")
        if not self.base_url:
            errors.append("FRITZ!Box base URL cannot be empty")

        if errors:
            raise ConfigurationException(errors)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> Config:
        return cls(
            username=args.username or "",
            password=args.password or "",
            base_url=args.base_url or "",
            listen_addr=args.listen_addr or "",
            device_monitoring_interval=args.device_interval,
            network_monitoring_interval=args.network_interval,
        )


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prometheus exporter for FRITZ!Box home automation and network metrics",
        epilog="Environment variables can be used as defaults: "
               "FRITZBOX_BASE_URL, FRITZBOX_USERNAME, FRITZBOX_PASSWORD, FRITZBOX_LISTEN_ADDR, "
               "FRITZBOX_DEVICE_INTERVAL, FRITZBOX_NETWORK_INTERVAL, FRITZBOX_LOG_LEVEL"
    )
    parser.add_argument(
        "--base-url",
        default=os.getenv("FRITZBOX_BASE_URL", DEFAULT_BASE_URL),
        help=f"FRITZ!Box base URL (default: {DEFAULT_BASE_URL}) [env: FRITZBOX_BASE_URL]"
    )
    parser.add_argument(
        "--username",
        default=os.getenv("FRITZBOX_USERNAME"),
        help="FRITZ!Box user name [env: FRITZBOX_USERNAME]"
    )
    parser.add_argument(
        "--password",
        default=os.getenv("FRITZBOX_PASSWORD"),
        help="FRITZ!Box password [env: FRITZBOX_PASSWORD]"
    )
    parser.add_argument(
        "--listen-addr",
        default=os.getenv("FRITZBOX_LISTEN_ADDR", DEFAULT_LISTEN_ADDR),
        help=f"HOST:PORT to expose Prometheus metrics on (default: {DEFAULT_LISTEN_ADDR}) "
             "[env: FRITZBOX_LISTEN_ADDR]"
    )
    parser.add_argument(
        "--device-interval",
        type=_duration,
        default=os.getenv("FRITZBOX_DEVICE_INTERVAL", DEFAULT_DEVICE_MONITORING_INTERVAL),
        help="How often to poll device metrics, e.g. 30s or 5m "
             f"(default: {DEFAULT_DEVICE_MONITORING_INTERVAL}) [env: FRITZBOX_DEVICE_INTERVAL]"
    )
    parser.add_argument(
        "--network-interval",
        type=_duration,
        default=os.getenv("FRITZBOX_NETWORK_INTERVAL", DEFAULT_NETWORK_MONITORING_INTERVAL),
        help="How often to poll network metrics "
             f"(default: {DEFAULT_NETWORK_MONITORING_INTERVAL}) [env: FRITZBOX_NETWORK_INTERVAL]"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("FRITZBOX_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO) [env: FRITZBOX_LOG_LEVEL]"
    )
    return parser
