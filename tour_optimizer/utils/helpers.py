"""
Helper functions for the tour optimizer.

This module provides formatting and serialization utilities used by the
management command and the services.
"""
import dataclasses
import datetime
import json
import logging
from enum import Enum
from typing import Any, List, Optional

import numpy as np

from tour_optimizer.core.types import Location

# Set up logging
logger = logging.getLogger(__name__)


def format_route_for_display(stops: List[str]) -> str:
    """
    Format a route for display.

    Args:
        stops: Stop labels in visiting order.

    Returns:
        Formatted route string.
    """
    return " → ".join(str(stop) for stop in stops)


def describe_location(location: Location) -> str:
    """Label a location by its address, or by its coordinates when it has none."""
    if location.address:
        return location.address
    return f"({location.latitude:.6f}, {location.longitude:.6f})"


def safe_json_dumps(obj: Any, indent: Optional[int] = None) -> str:
    """
    Safely convert an object to a JSON string, handling non-serializable types.

    Args:
        obj: Object to convert to JSON.
        indent: Indentation passed to json.dumps.

    Returns:
        JSON string representation of the object.
    """
    def handle_non_serializable(o):
        if isinstance(o, (datetime.datetime, datetime.date)):
            return o.isoformat()
        if isinstance(o, np.ndarray):
            return o.tolist()
        if isinstance(o, np.integer):
            return int(o)
        if isinstance(o, np.floating):
            return float(o)
        if isinstance(o, Enum):
            return o.value
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return dataclasses.asdict(o)
        return str(o)  # Fallback: convert to string

    return json.dumps(obj, default=handle_non_serializable, indent=indent, ensure_ascii=False)


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds to a human-readable string.

    Minutes and seconds are always shown; hours only when non-zero,
    e.g. "1h 0m 5s", "12m 0s", "0m 30s".

    Args:
        seconds: Duration in seconds.

    Returns:
        Human-readable duration string.
    """
    s_int = int(round(seconds))
    hours, remainder = divmod(s_int, 3600)
    minutes, secs_remainder = divmod(remainder, 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")
    parts.append(f"{secs_remainder}s")
    return " ".join(parts)
