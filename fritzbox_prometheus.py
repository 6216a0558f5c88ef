#!/usr/bin/env python3
"""
Prometheus exporter for FRITZ!Box metrics.

This module polls the FRITZ!Box home automation devices and the internet
traffic monitor on two independent intervals and exposes the latest values
in Prometheus format.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

import fritzbox_client
from fritzbox_client_exceptions import *
from fritzbox_config import Config, build_argument_parser
from fritzbox_prometheus_utils import metrics_to_log_fields, prometheus_bool, set_gauge_safe
from fritzbox_scheduler import Scheduler

HTTP_SHUTDOWN_GRACE_PERIOD = 3

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Metrics Registry
registry = CollectorRegistry()


class ScrapeMetrics:
    """Duration and error accounting shared by both metric families."""

    def __init__(self, registry: CollectorRegistry):
        self.duration_seconds = Histogram(
            "fritzbox_scrape_duration_seconds",
            "Time spent fetching metrics from the FRITZ!Box API",
            ["family"],
            registry=registry,
        )
        self.errors_total = Counter(
            "fritzbox_scrape_errors_total",
            "Total number of failed fetches from the FRITZ!Box API",
            ["family"],
            registry=registry,
        )


class DeviceMetrics:
    """Per-device home automation metrics, labeled by device name."""

    def __init__(self, registry: CollectorRegistry, scrape: ScrapeMetrics):
        self.scrape = scrape
        labels = ["device_name"]
        self.is_connected = Gauge(
            "fritzbox_home_automation_device_connected_bool",
            "Either 0 or 1 to indicate if the device is currently connected to the FRITZ!Box.",
            labels,
            registry=registry,
        )
        self.is_powered_on = Gauge(
            "fritzbox_home_automation_is_powered_bool",
            "Either 0 or 1 to indicate if the device is powered on or off.",
            labels,
            registry=registry,
        )
        self.temperature = Gauge(
            "fritzbox_home_automation_temperature_celsius",
            "Temperature measured at the device sensor in degree Celsius.",
            labels,
            registry=registry,
        )
        self.power = Gauge(
            "fritzbox_home_automation_power_watts",
            "Electric power in Watt, refreshed approx every 2 minutes.",
            labels,
            registry=registry,
        )
        self.voltage = Gauge(
            "fritzbox_home_automation_voltage_volts",
            "Electric voltage in Volt, refreshed approx every 2 minutes.",
            labels,
            registry=registry,
        )
        self.energy = Gauge(
            "fritzbox_home_automation_energy_watthours_total",
            "Accumulated power consumption in Watt hours since initial setup.",
            labels,
            registry=registry,
        )

    def fetch_from(self, client: fritzbox_client.FritzBoxClient) -> None:
        with self.scrape.duration_seconds.labels(family="device").time():
            try:
                devices = client.get_devices()
            except FritzBoxException:
                self.scrape.errors_total.labels(family="device").inc()
                raise

        for device in devices:
            self.collect(device)

    def collect(self, device: fritzbox_client.Device) -> dict[str, float]:
        collected = {"is_connected": prometheus_bool(device.present)}
        self.is_connected.labels(device_name=device.name).set(collected["is_connected"])

        if device.can_measure_temperature:
            collected["temperature_celsius"] = device.temperature.degrees_celsius
            self.temperature.labels(device_name=device.name).set(collected["temperature_celsius"])

        if device.can_measure_power:
            collected["voltage_volts"] = device.power.volts
            collected["power_watts"] = device.power.watts
            collected["energy_watthours_total"] = device.power.watt_hours
            self.voltage.labels(device_name=device.name).set(collected["voltage_volts"])
            self.power.labels(device_name=device.name).set(collected["power_watts"])
            self.energy.labels(device_name=device.name).set(collected["energy_watthours_total"])

        if device.is_switch:
            collected["is_powered"] = prometheus_bool(device.switch.is_powered_on)
            self.is_powered_on.labels(device_name=device.name).set(collected["is_powered"])

        logger.debug(f"Collected device metrics: {metrics_to_log_fields(device.name, collected)}")
        return collected


class NetworkMetrics:
    """Internet traffic in bits per second, from the newest traffic monitor bucket."""

    # attribute of TrafficMonitoringData -> (metric name, help)
    STREAMS = {
        "downstream_internet": ("downstream_inet_bps", "Internet downstream in bits per second."),
        "downstream_media": ("downstream_media_bps", "Media downstream in bits per second."),
        "downstream_guest": ("downstream_guest_bps", "Guest network downstream in bits per second."),
        "upstream_realtime": ("upstream_realtime_bps", "Realtime priority upstream in bits per second."),
        "upstream_high_priority": ("upstream_important_bps", "High priority upstream in bits per second."),
        "upstream_default_priority": ("upstream_default_bps", "Default priority upstream in bits per second."),
        "upstream_low_priority": ("upstream_background_bps", "Low priority upstream in bits per second."),
        "upstream_guest": ("upstream_guest_bps", "Guest network upstream in bits per second."),
    }

    def __init__(self, registry: CollectorRegistry, scrape: ScrapeMetrics):
        self.scrape = scrape
        self.gauges: dict[str, Gauge] = {
            attr: Gauge(f"fritzbox_network_{name}", help_text, registry=registry)
            for attr, (name, help_text) in self.STREAMS.items()
        }

    def fetch_from(self, client: fritzbox_client.FritzBoxClient) -> None:
        with self.scrape.duration_seconds.labels(family="network").time():
            try:
                stats = client.get_network_stats()
            except FritzBoxException:
                self.scrape.errors_total.labels(family="network").inc()
                raise

        self.collect(stats)

    def collect(self, stats: fritzbox_client.TrafficMonitoringData) -> dict[str, float]:
        # only the newest 5 second bucket is exported
        collected = {}
        for attr, gauge in self.gauges.items():
            series = getattr(stats, attr)
            value = series[0] * 8 if series else None
            set_gauge_safe(gauge, value)
            collected[attr] = value if value is not None else float("nan")

        logger.debug("Collected network metrics")
        return collected


class Metrics:

    def __init__(self, registry: CollectorRegistry):
        self.scrape = ScrapeMetrics(registry)
        self.devices = DeviceMetrics(registry, self.scrape)
        self.network = NetworkMetrics(registry, self.scrape)


class Server:
    """
    Runs the polling loops and the metrics endpoint until shutdown is requested.

    Shutdown order: polling stops, then the HTTP server, then the router
    session is logged out.
    """

    def __init__(self, config: Config, client: fritzbox_client.FritzBoxClient,
                 registry: CollectorRegistry):
        self.config = config
        self.client = client
        self.registry = registry
        self.metrics = Metrics(registry)
        self.stop_event = threading.Event()
        self.httpd = None
        self._server_error: Optional[str] = None

    def shutdown(self) -> None:
        self.stop_event.set()

    def _handle_signal(self, signum, frame):
        logger.info(f"Shutting down server due to system interrupt: {signal.Signals(signum).name}")
        self.shutdown()

    def _install_signal_handlers(self) -> dict:
        previous = {}
        for name in ("SIGINT", "SIGQUIT", "SIGTERM"):
            signum = getattr(signal, name, None)
            if signum is not None:
                previous[signum] = signal.signal(signum, self._handle_signal)
        return previous

    def _watch_http_server(self, thread: threading.Thread) -> None:
        thread.join()
        if not self.stop_event.is_set():
            self._server_error = "HTTP server stopped unexpectedly"
            logger.error(self._server_error)
            self.shutdown()

    def _shutdown_http_server(self, httpd) -> None:
        logger.info("HTTP Server is shutting down")
        stopper = threading.Thread(target=httpd.shutdown, name="metrics-server-shutdown", daemon=True)
        stopper.start()
        stopper.join(HTTP_SHUTDOWN_GRACE_PERIOD)
        if stopper.is_alive():
            logger.error(f"Failed to shutdown HTTP server gracefully within {HTTP_SHUTDOWN_GRACE_PERIOD}s")
        httpd.server_close()

    def run(self, handle_signals: bool = True) -> None:
        logger.info(f"Starting FRITZ!Box monitoring server on {self.config.listen_addr} "
                    f"for {self.client.base_url}")
        if not logger.isEnabledFor(logging.DEBUG):
            logger.info("If you want to see more verbose log run with --log-level DEBUG")

        previous_handlers = self._install_signal_handlers() if handle_signals else {}
        try:
            self.httpd, http_thread = start_http_server(self.config.listen_port,
                                                        addr=self.config.listen_host,
                                                        registry=self.registry)
            logger.info(f"Metrics available at http://{self.config.listen_addr}/metrics")
            threading.Thread(target=self._watch_http_server, args=(http_thread,),
                             name="metrics-server-watch", daemon=True).start()

            scheduler = Scheduler(self.stop_event)
            scheduler.add("device", self.config.device_monitoring_interval,
                          lambda: self.metrics.devices.fetch_from(self.client))
            scheduler.add("network", self.config.network_monitoring_interval,
                          lambda: self.metrics.network.fetch_from(self.client))
            scheduler.run()

            self._shutdown_http_server(self.httpd)
            self.client.close()
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

        if self._server_error:
            raise MetricsServerException(self._server_error)


def main():
    """Main entry point for the Prometheus exporter."""
    parser = build_argument_parser()
    args = parser.parse_args()

    # Set logging level
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    config = Config.from_args(args)
    try:
        config.validate()
    except ConfigurationException as e:
        for error in e.errors:
            logger.critical(f"Configuration error: {error}")
        sys.exit(1)

    try:
        client = fritzbox_client.FritzBoxClient.create(config.base_url, config.username, config.password)
    except FritzBoxException as e:
        logger.critical(f"Failed to create FRITZ!Box client: {e}")
        sys.exit(1)

    server = Server(config, client, registry)
    try:
        server.run()
    except OSError as e:
        logger.critical(f"Failed to start metrics server on {config.listen_addr}: {e}")
        sys.exit(1)
    except MetricsServerException as e:
        logger.critical(f"Fatal server error: {e}")
        sys.exit(1)

    logger.info("Shutdown complete. Have a nice day")


if __name__ == "__main__":
    main()
