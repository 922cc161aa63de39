from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from tour_optimizer.core.exceptions import TourOptimizerError
from tour_optimizer.core.types import Location
from tour_optimizer.services.optimization_service import OptimizationService
from tour_optimizer.utils.helpers import (
    describe_location,
    format_duration,
    format_route_for_display,
    safe_json_dumps,
)


class Command(BaseCommand):
    help = 'Optimize the visiting order of a set of stops and print the timed tour'

    def add_arguments(self, parser):
        parser.add_argument('--address', action='append', dest='address', default=None,
                            help='Free-text address of a stop; repeat for each stop')
        parser.add_argument('--coords', action='append', dest='coords', default=None,
                            help='Stop as "LAT,LON"; repeat for each stop')
        parser.add_argument('--mode', default='vehicle', help='walking, bus or vehicle (default: vehicle)')
        parser.add_argument('--seed', type=int, default=None, help='RNG seed for a reproducible tour')
        parser.add_argument('--ants', type=int, default=None, help='Ants per iteration')
        parser.add_argument('--iterations', type=int, default=None, help='Number of iterations')
        parser.add_argument('--decay', type=float, default=None, help='Pheromone decay factor in (0, 1]')
        parser.add_argument('--alpha', type=float, default=None, help='Pheromone weight')
        parser.add_argument('--beta', type=float, default=None, help='Distance heuristic weight')
        parser.add_argument('--workers', type=int, default=None, help='Threads used to build ant tours')
        parser.add_argument('--seed-from-baseline', action='store_true', dest='seed_from_baseline', default=None,
                            help='Seed pheromone with the nearest-neighbor tour')
        parser.add_argument('--start', default=None, help='ISO-8601 departure time (default: now)')
        parser.add_argument('--metric', choices=['haversine', 'euclidean'], default='haversine',
                            help='Distance metric (default: haversine)')
        parser.add_argument('--summary', action='store_true', help='Print a readable summary instead of JSON')

    def handle(self, *args, **options):
        addresses = options.get('address')
        coords = options.get('coords')
        if bool(addresses) == bool(coords):
            raise CommandError('Provide stops with either --address or --coords, not both')

        aco_overrides = {
            'ant_count': options.get('ants'),
            'iteration_count': options.get('iterations'),
            'decay': options.get('decay'),
            'alpha': options.get('alpha'),
            'beta': options.get('beta'),
            'workers': options.get('workers'),
            'seed_from_baseline': options.get('seed_from_baseline'),
        }
        start_time = self._parse_start(options.get('start'))

        try:
            service = OptimizationService(distance_calculation=options['metric'])
            if addresses:
                result = service.optimize_addresses(
                    addresses, options['mode'], aco_overrides=aco_overrides,
                    seed=options.get('seed'), start_time=start_time
                )
            else:
                locations = [self._parse_coords(value) for value in coords]
                result = service.optimize(
                    locations, options['mode'], aco_overrides=aco_overrides,
                    seed=options.get('seed'), start_time=start_time
                )
        except (TourOptimizerError, ValueError) as e:
            raise CommandError(str(e)) from e

        if options.get('summary'):
            self._write_summary(result)
        else:
            self.stdout.write(safe_json_dumps(result.to_dict(), indent=2))

    def _parse_coords(self, value):
        parts = [part.strip() for part in str(value).split(',')]
        if len(parts) != 2:
            raise CommandError(f'Invalid coordinates {value!r}; expected "LAT,LON"')
        try:
            return Location(latitude=float(parts[0]), longitude=float(parts[1]))
        except ValueError as e:
            raise CommandError(f'Invalid coordinates {value!r}; expected "LAT,LON"') from e

    def _parse_start(self, value):
        if not value:
            return None
        try:
            start_time = parse_datetime(value)
        except ValueError as e:
            raise CommandError(f'Invalid --start value {value!r}: {e}') from e
        if start_time is None:
            raise CommandError(f'Invalid --start value {value!r}; expected an ISO-8601 datetime')
        if timezone.is_naive(start_time):
            start_time = timezone.make_aware(start_time)
        return start_time

    def _write_summary(self, result):
        labels = [describe_location(location) for location in result.locations]
        self.stdout.write(self.style.SUCCESS(f'Optimized tour by {result.mode.value}'))
        self.stdout.write(f'Route: {format_route_for_display(labels)}')
        self.stdout.write(f'Total distance: {result.total_distance_km:.3f} km')
        self.stdout.write(f'Total time: {format_duration(result.total_time_minutes * 60)}')
        if result.baseline_distance_km is not None:
            self.stdout.write(f'Nearest-neighbor baseline: {result.baseline_distance_km:.3f} km')
        for position, (label, timestamp) in enumerate(zip(labels, result.timestamps), start=1):
            self.stdout.write(f'  {position}. {timestamp.isoformat()}  {label}')
