"""
Route evaluation: distance, travel time and arrival timestamps of a tour.
"""
from datetime import datetime, timedelta
from typing import Optional, Sequence
import logging
import numpy as np

from tour_optimizer.core.constants import MINUTES_PER_HOUR
from tour_optimizer.core.distance_matrix import DistanceFunction, DistanceMatrixBuilder
from tour_optimizer.core.types import Location, RouteMetrics, validate_tour

logger = logging.getLogger(__name__)


def travel_time_minutes(distance_km: float, speed_kmh: float) -> float:
    """Minutes needed to cover distance_km at a constant speed_kmh."""
    return distance_km / speed_kmh * MINUTES_PER_HOUR


class RouteEvaluator:
    """
    Computes metrics for a finished tour.

    The tour is closed: the last stop returns to the first. The first
    timestamp is the departure from the first stop; each later timestamp is
    the arrival at that stop. The closing leg counts toward the totals but
    adds no timestamp.
    """

    travel_time_minutes = staticmethod(travel_time_minutes)

    def evaluate(
        self,
        tour: Sequence[int],
        distance_matrix: np.ndarray,
        speed_kmh: float,
        start_time: datetime
    ) -> RouteMetrics:
        """
        Evaluate a tour against a distance matrix.

        Args:
            tour: Permutation of the matrix indices in visiting order.
            distance_matrix: Square matrix of distances in km.
            speed_kmh: Constant travel speed.
            start_time: Departure time from the first stop.

        Returns:
            RouteMetrics with totals, per-leg distances and one timestamp per stop.
        """
        if speed_kmh <= 0:
            raise ValueError(f"Speed must be positive, got {speed_kmh}")

        matrix = np.asarray(distance_matrix, dtype=float)
        num_locations = matrix.shape[0] if matrix.ndim == 2 else 0
        indices = validate_tour(tour, num_locations)

        if num_locations < 2:
            return RouteMetrics(
                total_distance_km=0.0,
                total_time_minutes=0.0,
                leg_distances_km=(0.0,) * num_locations,
                timestamps=(start_time,)
            )

        stops = np.asarray(indices, dtype=int)
        legs = matrix[stops, np.roll(stops, -1)]
        total_distance_km = float(legs.sum())
        total_time_minutes = travel_time_minutes(total_distance_km, speed_kmh)

        timestamps = [start_time]
        current_time = start_time
        for leg_km in legs[:-1]:
            current_time = current_time + timedelta(minutes=travel_time_minutes(float(leg_km), speed_kmh))
            timestamps.append(current_time)

        logger.debug(
            f"Evaluated tour of {num_locations} stops: {total_distance_km:.3f} km, "
            f"{total_time_minutes:.1f} min at {speed_kmh} km/h"
        )

        return RouteMetrics(
            total_distance_km=total_distance_km,
            total_time_minutes=total_time_minutes,
            leg_distances_km=tuple(float(leg) for leg in legs),
            timestamps=tuple(timestamps)
        )

    def evaluate_locations(
        self,
        tour: Sequence[int],
        locations: Sequence[Location],
        speed_kmh: float,
        start_time: datetime,
        distance_function: Optional[DistanceFunction] = None
    ) -> RouteMetrics:
        """Evaluate a tour over raw locations, building the distance matrix first."""
        matrix = DistanceMatrixBuilder.create_distance_matrix(locations, distance_function=distance_function)
        return self.evaluate(tour, matrix, speed_kmh, start_time)
