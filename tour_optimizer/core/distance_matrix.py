"""
Distance matrix utilities for tour optimization.

This module provides functions to create and inspect the pairwise distance
tables that the tour construction and refinement algorithms read from.
"""
from typing import Callable, Dict, List, Optional, Sequence
import logging
import math
import numpy as np

from tour_optimizer.core.constants import EARTH_RADIUS_KM, SYMMETRY_TOLERANCE
from tour_optimizer.core.types import Location

logger = logging.getLogger(__name__)

DistanceFunction = Callable[[Location, Location], float]


class DistanceMatrixBuilder:
    """
    Builder class for creating distance matrices used in tour optimization.
    """

    @staticmethod
    def create_distance_matrix(
        locations: Sequence[Location],
        distance_function: Optional[DistanceFunction] = None,
        distance_calculation: Optional[str] = None
    ) -> np.ndarray:
        """
        Create a distance matrix from a list of locations.

        Args:
            locations: List of Location objects.
            distance_function: Callable returning the distance in km between
                two locations. Takes precedence over distance_calculation.
            distance_calculation: Name of a built-in metric ("haversine" or
                "euclidean"). Defaults to "haversine".

        Returns:
            2D numpy array of distances in km with a zero diagonal.
        """
        if distance_function is None:
            distance_function = DistanceMatrixBuilder.get_distance_function(
                distance_calculation or 'haversine'
            )

        num_locations = len(locations)
        if num_locations == 0:
            return np.array([]).reshape(0, 0)

        distance_matrix_km = np.zeros((num_locations, num_locations))

        # Fill the upper triangle and mirror it so the matrix is exactly symmetric
        for i in range(num_locations):
            for j in range(i + 1, num_locations):
                distance = float(distance_function(locations[i], locations[j]))
                if not math.isfinite(distance) or distance < 0:
                    raise ValueError(
                        f"Distance between locations {i} and {j} must be a non-negative number, got {distance}"
                    )
                distance_matrix_km[i, j] = distance
                distance_matrix_km[j, i] = distance

        logger.debug(f"Built {num_locations}x{num_locations} distance matrix")
        return distance_matrix_km

    @staticmethod
    def get_distance_function(distance_calculation: str) -> DistanceFunction:
        """
        Look up a built-in distance function by name.

        Raises:
            ValueError: If the name is not a known metric.
        """
        try:
            return DISTANCE_FUNCTIONS[distance_calculation]
        except KeyError:
            raise ValueError(
                f"Unknown distance calculation: {distance_calculation!r} "
                f"(expected one of: {', '.join(sorted(DISTANCE_FUNCTIONS))})"
            ) from None

    @staticmethod
    def is_symmetric(distance_matrix: np.ndarray, tolerance: float = SYMMETRY_TOLERANCE) -> bool:
        """Check whether entry [i][j] matches entry [j][i] within tolerance."""
        matrix = np.asarray(distance_matrix, dtype=float)
        if matrix.size == 0:
            return True
        return bool(np.allclose(matrix, matrix.T, rtol=0.0, atol=tolerance))

    @staticmethod
    def _haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Calculate the great circle distance between two points
        on the earth (specified in decimal degrees).

        Args:
            lat1, lon1: Coordinates of first point
            lat2, lon2: Coordinates of second point

        Returns:
            Distance in kilometers
        """
        # Convert decimal degrees to radians
        lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

        # Haversine formula
        dlon = lon2 - lon1
        dlat = lat2 - lat1
        a = np.sin(dlat/2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon/2)**2
        # Rounding can push a just past 1 for antipodal points
        c = 2 * np.arcsin(np.sqrt(min(a, 1.0)))

        return float(c * EARTH_RADIUS_KM)

    @staticmethod
    def _euclidean_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Calculate Euclidean distance between two points.
        This is useful for testing, where exact distances are easy to reason about.
        """
        return float(np.sqrt((lat2 - lat1)**2 + (lon2 - lon1)**2))


def haversine_km(origin: Location, destination: Location) -> float:
    return DistanceMatrixBuilder._haversine_distance(
        origin.latitude, origin.longitude, destination.latitude, destination.longitude
    )


def euclidean(origin: Location, destination: Location) -> float:
    return DistanceMatrixBuilder._euclidean_distance(
        origin.latitude, origin.longitude, destination.latitude, destination.longitude
    )


DISTANCE_FUNCTIONS: Dict[str, DistanceFunction] = {
    'haversine': haversine_km,
    'euclidean': euclidean,
}


def closed_tour_length(distance_matrix: np.ndarray, tour: List[int]) -> float:
    """
    Length of a tour including the closing edge back to its first stop.

    Tours with fewer than two stops have length zero.
    """
    if len(tour) < 2:
        return 0.0
    indices = np.asarray(tour, dtype=int)
    return float(distance_matrix[indices, np.roll(indices, -1)].sum())
