from __future__ import annotations

import logging
import math
from typing import Mapping

logger = logging.getLogger(__name__)


def prometheus_bool(value: bool) -> float:
    return 1.0 if value else 0.0


def set_gauge_safe(child, value: float | None):
    """Set gauge value; if None/invalid -> NaN to avoid misleading zeroes."""
    try:
        child.set(float(value) if value is not None and not math.isnan(value) else float("nan"))
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to set gauge: {e}")


def metrics_to_log_fields(device_name: str, metrics: Mapping[str, float]) -> str:
    fields = [f"device_name={device_name!r}"]
    fields.extend(f"{name}={metrics[name]:g}" for name in sorted(metrics))
    return " ".join(fields)
