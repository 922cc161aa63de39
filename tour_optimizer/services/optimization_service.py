"""
Service for tour optimization.

This module ties the distance matrix, the nearest-neighbor baseline, the ant
colony refinement and the route evaluator together into one request.
"""
import dataclasses
import hashlib
import json
import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from tour_optimizer.core.ant_colony import ACOConfig, AntColonyOptimizer
from tour_optimizer.core.distance_matrix import DistanceFunction, DistanceMatrixBuilder, closed_tour_length
from tour_optimizer.core.nearest_neighbor import NearestNeighborConstructor
from tour_optimizer.core.route_evaluator import RouteEvaluator
from tour_optimizer.core.types import Location, OptimizationResult, TransportMode, validate_tour
from tour_optimizer.services.geocoding_service import GeocodingService
from tour_optimizer.settings import ACO_MAX_ITERATIONS, OPTIMIZATION_RESULT_CACHE_TIMEOUT

# Set up logging
logger = logging.getLogger(__name__)


class OptimizationService:
    """
    Service for optimizing the visiting order of a set of stops.
    """

    def __init__(
        self,
        aco_config: Optional[ACOConfig] = None,
        distance_function: Optional[DistanceFunction] = None,
        distance_calculation: str = 'haversine',
        evaluator: Optional[RouteEvaluator] = None,
        use_cache: bool = True
    ):
        """
        Initialize the optimization service.

        Args:
            aco_config: Base ACO parameters. Defaults to the values in settings.
            distance_function: Custom distance function. Results computed with
                one are never cached, since the function cannot be keyed.
            distance_calculation: Built-in metric used when no custom function is given.
            evaluator: Route evaluator. Defaults to RouteEvaluator().
            use_cache: Whether seeded results are stored in the Django cache.
        """
        self.aco_config = aco_config or ACOConfig.from_settings()
        self.distance_function = distance_function or DistanceMatrixBuilder.get_distance_function(
            distance_calculation
        )
        self.distance_calculation = distance_calculation
        self.evaluator = evaluator or RouteEvaluator()
        self.baseline_constructor = NearestNeighborConstructor()
        self.uses_haversine = distance_function is None and distance_calculation == 'haversine'
        self.use_cache = use_cache and distance_function is None

    def _resolve_config(self, aco_overrides: Optional[Dict[str, Any]]) -> ACOConfig:
        config = self.aco_config.with_overrides(**(aco_overrides or {}))
        if config.iteration_count > ACO_MAX_ITERATIONS:
            logger.warning(
                f"Requested {config.iteration_count} iterations exceeds the limit of "
                f"{ACO_MAX_ITERATIONS}; clamping"
            )
            config = dataclasses.replace(config, iteration_count=ACO_MAX_ITERATIONS)
        return config

    def _validate_locations(self, locations: Sequence[Location]) -> None:
        """Check that every location carries usable coordinates."""
        for index, location in enumerate(locations):
            latitude, longitude = location.latitude, location.longitude
            if not (math.isfinite(latitude) and math.isfinite(longitude)):
                raise ValueError(f"Location {index} has non-finite coordinates: ({latitude}, {longitude})")
            if self.uses_haversine:
                if not -90.0 <= latitude <= 90.0:
                    raise ValueError(f"Location {index} has latitude {latitude} outside [-90, 90]")
                if not -180.0 <= longitude <= 180.0:
                    raise ValueError(f"Location {index} has longitude {longitude} outside [-180, 180]")

    def _generate_cache_key(self, locations: Sequence[Location], config: ACOConfig, seed: int) -> str:
        """Generates a deterministic cache key from the input parameters."""
        key_parts = {
            # Order matters: it decides which stop index 0 refers to
            "coordinates": [list(location.as_pair()) for location in locations],
            "distance_calculation": self.distance_calculation,
            "config": dataclasses.asdict(config),
            "seed": seed,
        }
        serialized_params = json.dumps(key_parts, sort_keys=True)
        return "tour_result_" + hashlib.md5(serialized_params.encode('utf-8')).hexdigest()

    def optimize(
        self,
        locations: Sequence[Location],
        mode: Any,
        aco_overrides: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = None,
        start_time: Optional[datetime] = None
    ) -> OptimizationResult:
        """
        Optimize the visiting order of the given locations.

        Args:
            locations: Stops in input order.
            mode: Transport mode, as a TransportMode or its string value.
            aco_overrides: ACOConfig fields to override for this request.
            seed: RNG seed. Seeded requests are reproducible and cacheable.
            start_time: Departure time from the first stop. Defaults to now.

        Returns:
            OptimizationResult with the stops reordered and timed.

        Raises:
            InvalidTransportMode: If mode is not walking, bus or vehicle.
            ValueError: If a location or an ACO override is invalid.
        """
        transport_mode = TransportMode.from_value(mode)
        locations = list(locations)
        self._validate_locations(locations)
        start_time = start_time or timezone.now()
        num_locations = len(locations)

        if num_locations < 2:
            logger.info(f"Received {num_locations} location(s); returning input order unchanged")
            return OptimizationResult(
                route=tuple(range(num_locations)),
                locations=tuple(locations),
                mode=transport_mode,
                timestamps=(start_time,),
                statistics={
                    'cache_hit': False,
                    'best_iteration': 0,
                    'improvement_km': 0.0,
                    'improvement_percent': 0.0,
                },
            )

        config = self._resolve_config(aco_overrides)
        cache_key = None
        cached = None
        if self.use_cache and seed is not None:
            cache_key = self._generate_cache_key(locations, config, seed)
            cached = cache.get(cache_key)

        logger.info(f"Creating distance matrix using {self.distance_calculation} for {num_locations} locations")
        distance_matrix = DistanceMatrixBuilder.create_distance_matrix(
            locations, distance_function=self.distance_function
        )

        if cached:
            logger.info(f"Returning cached tour for key: {cache_key}")
            tour = validate_tour(cached['route'], num_locations)
            baseline_distance_km = cached['baseline_distance_km']
            iterations = cached['iterations']
            best_iteration = cached['best_iteration']
        else:
            if cache_key:
                logger.info(f"No cache hit for key: {cache_key}. Proceeding with optimization.")
            baseline_tour = self.baseline_constructor.construct(distance_matrix)
            baseline_distance_km = closed_tour_length(distance_matrix, baseline_tour)
            logger.debug(f"Nearest-neighbor baseline length: {baseline_distance_km:.3f} km")

            aco_result = AntColonyOptimizer(config=config, seed=seed).optimize(
                distance_matrix, baseline_tour=baseline_tour
            )
            tour = aco_result.best_tour
            iterations = aco_result.iterations
            best_iteration = aco_result.best_iteration

            if cache_key:
                cache_timeout_seconds = getattr(
                    settings, 'TOUR_OPTIMIZER_RESULT_CACHE_TIMEOUT', OPTIMIZATION_RESULT_CACHE_TIMEOUT
                )
                cache.set(cache_key, {
                    'route': list(tour),
                    'baseline_distance_km': baseline_distance_km,
                    'iterations': iterations,
                    'best_iteration': best_iteration,
                }, timeout=cache_timeout_seconds)
                logger.info(f"Cached tour for key: {cache_key} for {cache_timeout_seconds}s")

        metrics = self.evaluator.evaluate(tour, distance_matrix, transport_mode.speed_kmh, start_time)

        statistics = {
            'cache_hit': bool(cached),
            'best_iteration': best_iteration,
            'improvement_km': baseline_distance_km - metrics.total_distance_km,
            'improvement_percent': (
                (baseline_distance_km - metrics.total_distance_km) / baseline_distance_km * 100
                if baseline_distance_km > 0 else 0.0
            ),
        }

        logger.info(
            f"Optimized tour of {num_locations} stops: {metrics.total_distance_km:.3f} km "
            f"(baseline {baseline_distance_km:.3f} km), {metrics.total_time_minutes:.1f} min by {transport_mode.value}"
        )

        return OptimizationResult(
            route=tuple(tour),
            locations=tuple(locations[index] for index in tour),
            mode=transport_mode,
            total_distance_km=metrics.total_distance_km,
            total_time_minutes=metrics.total_time_minutes,
            timestamps=metrics.timestamps,
            baseline_distance_km=baseline_distance_km,
            iterations=iterations,
            statistics=statistics,
        )

    def optimize_addresses(
        self,
        addresses: Sequence[str],
        mode: Any,
        geocoder=None,
        **kwargs
    ) -> OptimizationResult:
        """
        Geocode free-text addresses, then optimize their visiting order.

        Args:
            addresses: Addresses in input order.
            mode: Transport mode, as a TransportMode or its string value.
            geocoder: Object with a geocode_many(addresses) method. Defaults
                to a GeocodingService configured from settings.
            **kwargs: Passed through to optimize().

        Raises:
            InvalidTransportMode: If mode is unknown. Checked before any lookup.
            GeocodeFailure: If an address cannot be resolved.
        """
        transport_mode = TransportMode.from_value(mode)
        if geocoder is None:
            geocoder = GeocodingService()

        locations: List[Location] = geocoder.geocode_many(list(addresses))
        logger.info(f"Geocoded {len(locations)} address(es)")
        return self.optimize(locations, transport_mode, **kwargs)
