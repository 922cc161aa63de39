import unittest
from unittest.mock import MagicMock, patch
import math
import numpy as np

from tour_optimizer import settings as app_settings
from tour_optimizer.core.ant_colony import ACOConfig, ACOResult, AntColonyOptimizer
from tour_optimizer.core.distance_matrix import DistanceMatrixBuilder, closed_tour_length
from tour_optimizer.core.types import Location


def random_matrix(num_locations, seed):
    points = np.random.default_rng(seed).uniform(0, 100, size=(num_locations, 2))
    return np.linalg.norm(points[:, None, :] - points[None, :, :], axis=-1)


class TestACOConfig(unittest.TestCase):

    def test_defaults(self):
        config = ACOConfig()
        self.assertEqual(config.ant_count, 50)
        self.assertEqual(config.iteration_count, 100)
        self.assertEqual(config.decay, 0.95)
        self.assertEqual(config.alpha, 1.0)
        self.assertEqual(config.beta, 2.0)
        self.assertEqual(config.workers, 1)
        self.assertFalse(config.seed_from_baseline)
        self.assertIsNone(config.early_stop_rounds)

    def test_from_settings(self):
        config = ACOConfig.from_settings()
        self.assertEqual(config.ant_count, app_settings.ACO_ANT_COUNT)
        self.assertEqual(config.iteration_count, app_settings.ACO_ITERATION_COUNT)
        self.assertEqual(config.decay, app_settings.ACO_DECAY)
        self.assertEqual(config.workers, app_settings.ACO_WORKERS)

    def test_invalid_values_raise(self):
        invalid = [
            {'ant_count': 0},
            {'iteration_count': 0},
            {'decay': 0.0},
            {'decay': 1.5},
            {'alpha': -1.0},
            {'beta': -0.5},
            {'workers': 0},
            {'early_stop_rounds': 0},
        ]
        for kwargs in invalid:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValueError):
                    ACOConfig(**kwargs)

    def test_with_overrides_ignores_none(self):
        config = ACOConfig().with_overrides(ant_count=5, decay=None, workers=None)
        self.assertEqual(config.ant_count, 5)
        self.assertEqual(config.decay, 0.95)
        self.assertEqual(config.workers, 1)

    def test_with_overrides_validates(self):
        with self.assertRaises(ValueError):
            ACOConfig().with_overrides(decay=2.0)

    def test_with_overrides_rejects_unknown_names(self):
        with self.assertRaises(ValueError) as cm:
            ACOConfig().with_overrides(ants=3, ant_count=5)
        self.assertIn('ants', str(cm.exception))
        self.assertNotIsInstance(cm.exception, TypeError)


class TestAntColonyOptimizer(unittest.TestCase):

    def setUp(self):
        self.config = ACOConfig(ant_count=10, iteration_count=20)
        self.square_matrix = DistanceMatrixBuilder.create_distance_matrix(
            [Location(0, 0), Location(0, 1), Location(1, 1), Location(1, 0)],
            distance_calculation='euclidean'
        )

    def test_unit_square_finds_perimeter(self):
        result = AntColonyOptimizer(self.config, seed=42).optimize(self.square_matrix)

        self.assertIsInstance(result, ACOResult)
        self.assertEqual(sorted(result.best_tour), [0, 1, 2, 3])
        self.assertAlmostEqual(result.best_length, 4.0)
        self.assertAlmostEqual(closed_tour_length(self.square_matrix, result.best_tour), result.best_length)
        self.assertEqual(result.iterations, 20)
        self.assertGreaterEqual(result.best_iteration, 1)

    def test_single_location(self):
        result = AntColonyOptimizer(self.config, seed=1).optimize(np.zeros((1, 1)))
        self.assertEqual(result.best_tour, [0])
        self.assertEqual(result.best_length, 0.0)
        self.assertEqual(result.iterations, 0)

    def test_empty_matrix_raises(self):
        with self.assertRaises(ValueError):
            AntColonyOptimizer(self.config).optimize(np.zeros((0, 0)))

    def test_non_square_matrix_raises(self):
        with self.assertRaises(ValueError):
            AntColonyOptimizer(self.config).optimize(np.zeros((2, 3)))

    def test_output_is_a_permutation(self):
        matrix = random_matrix(12, seed=5)
        result = AntColonyOptimizer(ACOConfig(ant_count=8, iteration_count=5), seed=3).optimize(matrix)
        self.assertEqual(sorted(result.best_tour), list(range(12)))

    def test_same_seed_reproduces_tour(self):
        matrix = random_matrix(10, seed=11)
        config = ACOConfig(ant_count=6, iteration_count=8)

        first = AntColonyOptimizer(config, seed=123).optimize(matrix)
        second = AntColonyOptimizer(config, seed=123).optimize(matrix)

        self.assertEqual(first.best_tour, second.best_tour)
        self.assertEqual(first.best_length, second.best_length)

    def test_injected_generator_is_used(self):
        matrix = random_matrix(8, seed=2)
        config = ACOConfig(ant_count=5, iteration_count=5)

        first = AntColonyOptimizer(config, rng=np.random.default_rng(9)).optimize(matrix)
        second = AntColonyOptimizer(config, seed=9).optimize(matrix)

        self.assertEqual(first.best_tour, second.best_tour)

    def test_worker_count_does_not_change_result(self):
        matrix = random_matrix(9, seed=21)
        sequential = AntColonyOptimizer(
            ACOConfig(ant_count=12, iteration_count=6, workers=1), seed=77
        ).optimize(matrix)
        threaded = AntColonyOptimizer(
            ACOConfig(ant_count=12, iteration_count=6, workers=4), seed=77
        ).optimize(matrix)

        self.assertEqual(sequential.best_tour, threaded.best_tour)
        self.assertEqual(sequential.best_length, threaded.best_length)

    def test_returns_global_best_not_last_iteration(self):
        matrix = self.square_matrix
        optimizer = AntColonyOptimizer(ACOConfig(ant_count=1, iteration_count=3), seed=0)
        good, bad = [0, 1, 2, 3], [0, 2, 1, 3]

        with patch.object(optimizer, '_construct_tours', side_effect=[[bad], [good], [bad]]):
            result = optimizer.optimize(matrix)

        self.assertEqual(result.best_tour, good)
        self.assertAlmostEqual(result.best_length, 4.0)
        self.assertEqual(result.best_iteration, 2)
        self.assertEqual(result.iterations, 3)

    def test_coincident_locations(self):
        matrix = DistanceMatrixBuilder.create_distance_matrix(
            [Location(0, 0), Location(0, 0), Location(0, 1), Location(0, 1)],
            distance_calculation='euclidean'
        )
        result = AntColonyOptimizer(self.config, seed=4).optimize(matrix)

        self.assertEqual(sorted(result.best_tour), [0, 1, 2, 3])
        self.assertAlmostEqual(result.best_length, 2.0)

    def test_all_coincident_locations(self):
        result = AntColonyOptimizer(self.config, seed=4).optimize(np.zeros((5, 5)))
        self.assertEqual(sorted(result.best_tour), list(range(5)))
        self.assertEqual(result.best_length, 0.0)

    def test_early_stop(self):
        config = ACOConfig(ant_count=10, iteration_count=100, early_stop_rounds=2)
        result = AntColonyOptimizer(config, seed=8).optimize(self.square_matrix)

        self.assertLess(result.iterations, 100)
        self.assertEqual(result.iterations - result.best_iteration, 2)
        self.assertAlmostEqual(result.best_length, 4.0)


class TestPheromoneUpdates(unittest.TestCase):

    def setUp(self):
        self.square_matrix = DistanceMatrixBuilder.create_distance_matrix(
            [Location(0, 0), Location(0, 1), Location(1, 1), Location(1, 0)],
            distance_calculation='euclidean'
        )

    def test_initial_pheromone_is_uniform(self):
        optimizer = AntColonyOptimizer(ACOConfig())
        pheromone = optimizer._initial_pheromone(self.square_matrix, None)
        self.assertTrue(np.allclose(pheromone, 0.25))

    def test_seed_from_baseline_raises_baseline_edges(self):
        optimizer = AntColonyOptimizer(ACOConfig(seed_from_baseline=True))
        pheromone = optimizer._initial_pheromone(self.square_matrix, None)

        # Nearest-neighbor tour is 0 -> 1 -> 2 -> 3 -> 0 with length 4
        for i, j in [(0, 1), (1, 2), (2, 3), (3, 0)]:
            self.assertAlmostEqual(pheromone[i, j], 0.5)
        self.assertAlmostEqual(pheromone[1, 0], 0.25)
        self.assertAlmostEqual(pheromone[0, 2], 0.25)

    def test_seed_from_given_baseline(self):
        optimizer = AntColonyOptimizer(ACOConfig(seed_from_baseline=True))
        pheromone = optimizer._initial_pheromone(self.square_matrix, [0, 3, 2, 1])
        self.assertAlmostEqual(pheromone[0, 3], 0.5)
        self.assertAlmostEqual(pheromone[0, 1], 0.25)

    def test_deposit_is_directional_and_includes_closing_edge(self):
        pheromone = np.zeros((3, 3))
        AntColonyOptimizer._add_tour_pheromone(pheromone, [0, 1, 2], 1.0)

        expected = np.zeros((3, 3))
        expected[0, 1] = expected[1, 2] = expected[2, 0] = 1.0
        self.assertTrue(np.array_equal(pheromone, expected))

    def test_deposit_uses_inverse_tour_length(self):
        optimizer = AntColonyOptimizer(ACOConfig())
        pheromone = np.zeros((4, 4))
        optimizer._deposit(pheromone, [[0, 1, 2, 3], [0, 1, 2, 3]], [4.0, 4.0])
        self.assertAlmostEqual(pheromone[0, 1], 0.5)
        self.assertAlmostEqual(pheromone[3, 0], 0.5)

    def test_evaporation(self):
        optimizer = AntColonyOptimizer(ACOConfig(decay=0.5))
        pheromone = np.full((2, 2), 4.0)
        optimizer._evaporate(pheromone)
        self.assertTrue(np.allclose(pheromone, 2.0))


class TestSelectNext(unittest.TestCase):

    def setUp(self):
        self.rng = MagicMock()

    def test_single_candidate(self):
        self.assertEqual(AntColonyOptimizer._select_next(np.array([0.3]), self.rng), 0)
        self.rng.random.assert_not_called()

    def test_cumulative_selection(self):
        scores = np.array([1.0, 1.0])
        self.rng.random.return_value = 0.49
        self.assertEqual(AntColonyOptimizer._select_next(scores, self.rng), 0)
        self.rng.random.return_value = 0.5
        self.assertEqual(AntColonyOptimizer._select_next(scores, self.rng), 1)

    def test_zero_score_candidates_are_never_picked(self):
        self.rng.random.return_value = 0.0
        self.assertEqual(AntColonyOptimizer._select_next(np.array([0.0, 0.0, 5.0]), self.rng), 2)

    def test_rounding_falls_back_to_last(self):
        self.rng.random.return_value = math.nextafter(1.0, 0.0)
        scores = np.array([1e-300, 1e-300, 1e-300])
        self.assertIn(AntColonyOptimizer._select_next(scores, self.rng), (0, 1, 2))
        self.rng.random.return_value = 1.0
        self.assertEqual(AntColonyOptimizer._select_next(scores, self.rng), 2)

    def test_all_zero_scores_pick_last(self):
        self.assertEqual(AntColonyOptimizer._select_next(np.zeros(4), self.rng), 3)

    def test_infinite_score_wins(self):
        scores = np.array([1.0, np.inf, np.inf])
        self.assertEqual(AntColonyOptimizer._select_next(scores, self.rng), 1)

    def test_nan_scores_are_ignored(self):
        self.rng.random.return_value = 0.99
        scores = np.array([np.nan, 2.0, np.nan])
        self.assertEqual(AntColonyOptimizer._select_next(scores, self.rng), 1)


if __name__ == '__main__':
    unittest.main()
