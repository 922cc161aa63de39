"""
Nearest-neighbor tour construction.

Builds a fast, deterministic tour by always moving to the closest
unvisited location. Used as a baseline for the ant colony refinement and,
optionally, to seed its pheromone matrix.
"""
from typing import List
import logging
import numpy as np

logger = logging.getLogger(__name__)


class NearestNeighborConstructor:
    """
    Greedy tour constructor over a distance matrix.
    """

    def construct(self, distance_matrix: np.ndarray, start_index: int = 0) -> List[int]:
        """
        Build a tour starting at start_index.

        At every step the unvisited index closest to the current one is
        chosen; ties go to the lowest index.

        Args:
            distance_matrix: Square matrix of distances.
            start_index: Index the tour starts from.

        Returns:
            List of location indices in visiting order.
        """
        matrix = np.asarray(distance_matrix, dtype=float)
        num_locations = matrix.shape[0] if matrix.ndim == 2 else 0
        if num_locations == 0:
            raise ValueError("Cannot build a tour from an empty distance matrix")
        if not 0 <= start_index < num_locations:
            raise ValueError(f"Start index {start_index} is outside [0, {num_locations})")

        visited = np.zeros(num_locations, dtype=bool)
        visited[start_index] = True
        tour = [start_index]
        current = start_index

        for _ in range(num_locations - 1):
            unvisited = np.flatnonzero(~visited)
            # argmin returns the first minimum and unvisited is ascending, so ties go to the lowest index
            current = int(unvisited[np.argmin(matrix[current, unvisited])])
            visited[current] = True
            tour.append(current)

        return tour
