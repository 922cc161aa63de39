"""
Implementation of tour refinement using Ant Colony Optimization.

Each call to AntColonyOptimizer.optimize owns its pheromone matrix. Within an
iteration the ants only read a snapshot of it; evaporation and deposit run
after every ant of that iteration has finished, so ants can be built on
worker threads without seeing a partial update.
"""
import logging
import numpy as np

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields, replace
from typing import List, Optional, Sequence

from tour_optimizer.core.constants import MIN_DISTANCE_EPSILON
from tour_optimizer.core.distance_matrix import closed_tour_length
from tour_optimizer.core.nearest_neighbor import NearestNeighborConstructor
from tour_optimizer.core.types import validate_tour
from tour_optimizer.settings import (
    ACO_ALPHA,
    ACO_ANT_COUNT,
    ACO_BETA,
    ACO_DECAY,
    ACO_ITERATION_COUNT,
    ACO_SEED_FROM_BASELINE,
    ACO_WORKERS,
)

# Set up logging
logger = logging.getLogger(__name__)

_ANT_SEED_UPPER_BOUND = np.iinfo(np.int64).max


@dataclass(frozen=True)
class ACOConfig:
    """
    Parameters of one ant colony run.

    Attributes:
        ant_count: Ants that build a tour in every iteration.
        iteration_count: Number of iterations to run.
        decay: Factor every pheromone entry is multiplied by after an iteration.
        alpha: Weight of pheromone in the desirability score.
        beta: Weight of the 1/distance heuristic in the desirability score.
        workers: Threads used to build the ants' tours; 1 builds them in order.
        seed_from_baseline: Raise the initial pheromone on the nearest-neighbor tour's edges.
        early_stop_rounds: Stop after this many iterations without a new best tour.
    """
    ant_count: int = 50
    iteration_count: int = 100
    decay: float = 0.95
    alpha: float = 1.0
    beta: float = 2.0
    workers: int = 1
    seed_from_baseline: bool = False
    early_stop_rounds: Optional[int] = None

    def __post_init__(self):
        if self.ant_count < 1:
            raise ValueError(f"ant_count must be at least 1, got {self.ant_count}")
        if self.iteration_count < 1:
            raise ValueError(f"iteration_count must be at least 1, got {self.iteration_count}")
        if not 0.0 < self.decay <= 1.0:
            raise ValueError(f"decay must be in (0, 1], got {self.decay}")
        if self.alpha < 0 or self.beta < 0:
            raise ValueError(f"alpha and beta must be non-negative, got alpha={self.alpha}, beta={self.beta}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.early_stop_rounds is not None and self.early_stop_rounds < 1:
            raise ValueError(f"early_stop_rounds must be at least 1, got {self.early_stop_rounds}")

    @classmethod
    def from_settings(cls) -> 'ACOConfig':
        """Build the default configuration from the app settings."""
        return cls(
            ant_count=ACO_ANT_COUNT,
            iteration_count=ACO_ITERATION_COUNT,
            decay=ACO_DECAY,
            alpha=ACO_ALPHA,
            beta=ACO_BETA,
            workers=ACO_WORKERS,
            seed_from_baseline=ACO_SEED_FROM_BASELINE,
        )

    def with_overrides(self, **overrides) -> 'ACOConfig':
        """
        Return a copy with the given fields replaced; None values are ignored.

        Raises:
            ValueError: If an override names no ACOConfig field or has an invalid value.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(
                f"Unknown ACO parameter(s): {', '.join(unknown)} "
                f"(expected one of: {', '.join(sorted(known))})"
            )
        changes = {name: value for name, value in overrides.items() if value is not None}
        return replace(self, **changes)


@dataclass
class ACOResult:
    """Outcome of an ant colony run."""
    best_tour: List[int] = field(default_factory=list)
    best_length: float = 0.0
    iterations: int = 0  # Iterations actually run
    best_iteration: int = 0  # Iteration that found best_tour


class AntColonyOptimizer:
    """
    Ant Colony Optimization over a distance matrix.
    """

    def __init__(
        self,
        config: Optional[ACOConfig] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize the optimizer.

        Args:
            config: Run parameters. Defaults to ACOConfig().
            rng: Random generator driving the run. Takes precedence over seed.
            seed: Seed for a new generator when rng is not given. A fixed seed
                and config reproduce the same tour.
        """
        self.config = config or ACOConfig()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def optimize(
        self,
        distance_matrix: np.ndarray,
        baseline_tour: Optional[Sequence[int]] = None
    ) -> ACOResult:
        """
        Search for a short closed tour.

        Args:
            distance_matrix: Square matrix of non-negative distances.
            baseline_tour: Tour used to seed the pheromone matrix when
                config.seed_from_baseline is set. Computed with the
                nearest-neighbor heuristic if not given.

        Returns:
            ACOResult holding the best tour found over the whole run.
        """
        distance = np.asarray(distance_matrix, dtype=float)
        if distance.ndim != 2 or distance.shape[0] != distance.shape[1]:
            raise ValueError("distance_matrix must be square")

        num_locations = distance.shape[0]
        if num_locations == 0:
            raise ValueError("Cannot optimize a tour over zero locations")
        if num_locations == 1:
            return ACOResult(best_tour=[0], best_length=0.0, iterations=0, best_iteration=0)

        config = self.config
        heuristic = self._heuristic_matrix(distance)
        pheromone = self._initial_pheromone(distance, baseline_tour)

        best_tour: Optional[List[int]] = None
        best_length = float('inf')
        best_iteration = 0
        rounds_without_improvement = 0
        iterations_run = 0

        logger.info(
            f"Starting ACO run: {num_locations} locations, {config.ant_count} ants, "
            f"{config.iteration_count} iterations, {config.workers} worker(s)"
        )

        executor = ThreadPoolExecutor(max_workers=config.workers) if config.workers > 1 else None
        try:
            for iteration in range(1, config.iteration_count + 1):
                iterations_run = iteration
                tours = self._construct_tours(pheromone, heuristic, executor)
                lengths = [closed_tour_length(distance, tour) for tour in tours]

                improved = False
                for tour, length in zip(tours, lengths):
                    if best_tour is None or length < best_length:
                        best_tour, best_length, best_iteration = tour, length, iteration
                        improved = True

                if improved:
                    rounds_without_improvement = 0
                    logger.debug(f"Iteration {iteration}: new best tour length {best_length:.6f}")
                else:
                    rounds_without_improvement += 1

                self._evaporate(pheromone)
                self._deposit(pheromone, tours, lengths)

                if config.early_stop_rounds and rounds_without_improvement >= config.early_stop_rounds:
                    logger.info(
                        f"Stopping after iteration {iteration}: no improvement for "
                        f"{rounds_without_improvement} iterations"
                    )
                    break
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        best_tour = validate_tour(best_tour, num_locations)
        logger.info(f"ACO run finished: best length {best_length:.6f} found in iteration {best_iteration}")

        return ACOResult(
            best_tour=best_tour,
            best_length=best_length,
            iterations=iterations_run,
            best_iteration=best_iteration
        )

    def _heuristic_matrix(self, distance: np.ndarray) -> np.ndarray:
        """(1/distance)^beta with zero distances replaced by a small epsilon."""
        safe_distance = np.maximum(distance, MIN_DISTANCE_EPSILON)
        if np.any(distance[~np.eye(distance.shape[0], dtype=bool)] < MIN_DISTANCE_EPSILON):
            logger.debug("Distance matrix has coincident locations; substituting epsilon distances")
        with np.errstate(over='ignore'):
            return np.power(1.0 / safe_distance, self.config.beta)

    def _initial_pheromone(
        self,
        distance: np.ndarray,
        baseline_tour: Optional[Sequence[int]]
    ) -> np.ndarray:
        num_locations = distance.shape[0]
        pheromone = np.full((num_locations, num_locations), 1.0 / num_locations)

        if self.config.seed_from_baseline:
            if baseline_tour is None:
                baseline_tour = NearestNeighborConstructor().construct(distance)
            tour = validate_tour(baseline_tour, num_locations)
            length = closed_tour_length(distance, tour)
            self._add_tour_pheromone(pheromone, tour, 1.0 / max(length, MIN_DISTANCE_EPSILON))
            logger.debug(f"Seeded pheromone from baseline tour of length {length:.6f}")

        return pheromone

    def _construct_tours(
        self,
        pheromone: np.ndarray,
        heuristic: np.ndarray,
        executor: Optional[ThreadPoolExecutor]
    ) -> List[List[int]]:
        """
        Let every ant build one tour against a snapshot of the pheromone matrix.

        Each ant draws from its own generator seeded by the run's generator, so
        the tours are the same whether ants run in order or on threads.
        """
        with np.errstate(over='ignore', invalid='ignore'):
            weights = np.power(pheromone, self.config.alpha) * heuristic
        ant_seeds = self.rng.integers(0, _ANT_SEED_UPPER_BOUND, size=self.config.ant_count)

        def build(ant_seed):
            return self._construct_tour(weights, np.random.default_rng(int(ant_seed)))

        if executor is None:
            return [build(ant_seed) for ant_seed in ant_seeds]
        # map() returns only once every ant is done, before pheromone is touched again
        return list(executor.map(build, ant_seeds))

    def _construct_tour(self, weights: np.ndarray, rng: np.random.Generator) -> List[int]:
        num_locations = weights.shape[0]
        start = int(rng.integers(num_locations))
        tour = [start]
        remaining = [index for index in range(num_locations) if index != start]
        current = start

        # Only unvisited indices are candidates, so exactly n-1 selections follow the start
        while remaining:
            position = self._select_next(weights[current, remaining], rng)
            current = remaining.pop(position)
            tour.append(current)

        return tour

    @staticmethod
    def _select_next(scores: np.ndarray, rng: np.random.Generator) -> int:
        """
        Pick a position in scores by roulette-wheel selection.

        Returns the position of the first candidate whose cumulative
        probability exceeds a uniform draw, falling back to the last candidate.
        """
        last = len(scores) - 1
        if last == 0:
            return 0

        scores = np.nan_to_num(scores, nan=0.0, posinf=np.inf)
        infinite = np.flatnonzero(np.isinf(scores))
        if infinite.size:
            return int(infinite[0])

        peak = scores.max()
        if peak <= 0.0:
            logger.debug("All candidate scores are zero; taking the last remaining candidate")
            return last

        # Scale by the peak first so the sum cannot overflow
        scaled = scores / peak
        cumulative = np.cumsum(scaled / scaled.sum())
        position = int(np.searchsorted(cumulative, rng.random(), side='right'))
        return min(position, last)

    def _evaporate(self, pheromone: np.ndarray) -> None:
        pheromone *= self.config.decay

    def _deposit(self, pheromone: np.ndarray, tours: List[List[int]], lengths: List[float]) -> None:
        for tour, length in zip(tours, lengths):
            self._add_tour_pheromone(pheromone, tour, 1.0 / max(length, MIN_DISTANCE_EPSILON))

    @staticmethod
    def _add_tour_pheromone(pheromone: np.ndarray, tour: Sequence[int], amount: float) -> None:
        """Add amount to every directed edge of the tour, closing edge included."""
        indices = np.asarray(tour, dtype=int)
        np.add.at(pheromone, (indices, np.roll(indices, -1)), amount)
