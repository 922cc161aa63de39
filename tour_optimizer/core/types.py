"""
Core data types for the tour optimizer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from tour_optimizer.core.constants import TRANSPORT_SPEEDS_KMH
from tour_optimizer.core.exceptions import InvalidTourError, InvalidTransportMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    """
    Represents a geographic location with latitude and longitude.
    """
    latitude: float
    longitude: float
    address: Optional[str] = None  # Free text the coordinates were resolved from, if any

    def __post_init__(self):
        # Convert to float if strings were provided
        object.__setattr__(self, 'latitude', float(self.latitude))
        object.__setattr__(self, 'longitude', float(self.longitude))

    def as_pair(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class TransportMode(str, Enum):
    """Supported transport modes, each travelling at a fixed speed."""
    WALKING = 'walking'
    BUS = 'bus'
    VEHICLE = 'vehicle'

    @property
    def speed_kmh(self) -> float:
        return TRANSPORT_SPEEDS_KMH[self.value]

    @classmethod
    def from_value(cls, value: Any) -> 'TransportMode':
        """
        Resolve a transport mode from a member or its string value.

        Raises:
            InvalidTransportMode: If the value names no supported mode.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for mode in cls:
                if mode.value == normalized:
                    return mode
        raise InvalidTransportMode(value, choices=[mode.value for mode in cls])


@dataclass(frozen=True)
class RouteMetrics:
    """Distance, duration and timing derived from a finished tour."""
    total_distance_km: float
    total_time_minutes: float
    leg_distances_km: Tuple[float, ...] = ()  # Leg k runs from stop k to stop k+1; the last leg closes the tour
    timestamps: Tuple[datetime, ...] = ()


@dataclass(frozen=True)
class OptimizationResult:
    """Data Transfer Object representing the result of tour optimization."""
    route: Tuple[int, ...]
    locations: Tuple[Location, ...]
    mode: TransportMode
    total_distance_km: float = 0.0
    total_time_minutes: float = 0.0
    timestamps: Tuple[datetime, ...] = ()
    baseline_distance_km: Optional[float] = None  # Nearest-neighbor tour length, kept for comparison
    iterations: int = 0
    statistics: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only view over a private copy
        object.__setattr__(self, 'statistics', MappingProxyType(dict(self.statistics)))

    def to_dict(self) -> Dict[str, Any]:
        """Render the result in the shape callers of the service consume."""
        return {
            'optimized_route': list(self.route),
            'optimized_stops': [
                loc.address if loc.address is not None else [loc.latitude, loc.longitude]
                for loc in self.locations
            ],
            'mode': self.mode.value,
            'total_distance_km': self.total_distance_km,
            'total_time_minutes': self.total_time_minutes,
            'timestamps': [ts.isoformat() for ts in self.timestamps],
            'baseline_distance_km': self.baseline_distance_km,
            'iterations': self.iterations,
            'statistics': dict(self.statistics),
        }


def validate_tour(tour: Sequence[int], num_locations: int) -> List[int]:
    """
    Validate that a tour visits every location index exactly once.

    Args:
        tour: Sequence of location indices in visiting order.
        num_locations: Number of locations the tour must cover.

    Returns:
        The tour as a list of ints.

    Raises:
        InvalidTourError: If the tour has duplicates, omissions or
            out-of-range indices.
    """
    if tour is None:
        raise InvalidTourError("Tour is missing")

    indices = [int(i) for i in tour]
    if len(indices) != num_locations:
        raise InvalidTourError(
            f"Tour has {len(indices)} stops but {num_locations} locations were given"
        )

    out_of_range = [i for i in indices if i < 0 or i >= num_locations]
    if out_of_range:
        raise InvalidTourError(f"Tour contains out-of-range indices: {out_of_range}")

    if len(set(indices)) != num_locations:
        seen = set()
        duplicates = sorted({i for i in indices if i in seen or seen.add(i)})
        raise InvalidTourError(f"Tour visits indices more than once: {duplicates}")

    return indices
