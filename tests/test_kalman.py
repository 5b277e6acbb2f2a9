import unittest

from kbvbt.config import ANGLE_FILTER, FilterConfig
from kbvbt.signals import kalman


class ScalarEstimatorTests(unittest.TestCase):
    def test_constant_measurement_pulls_position_toward_it(self) -> None:
        estimator = kalman.ScalarEstimator()
        positions = [estimator.update(1.0, t).position for t in (0.0, 33.0, 66.0)]

        self.assertLess(positions[0], positions[1])
        self.assertLess(positions[1], positions[2])
        self.assertLess(positions[2], 1.0)
        self.assertGreater(positions[2], 0.8)
        self.assertLess(abs(estimator.velocity), 0.2)

    def test_converges_to_steady_state(self) -> None:
        estimator = kalman.ScalarEstimator()
        for i in range(300):
            estimator.update(1.0, i * 33.0)
        self.assertAlmostEqual(estimator.position, 1.0, delta=1e-3)
        self.assertAlmostEqual(estimator.velocity, 0.0, delta=1e-3)

    def test_tracks_constant_velocity(self) -> None:
        estimator = kalman.ScalarEstimator()
        for i in range(300):
            t = i * 33.0
            estimator.update(2.0 * t / 1000.0, t)
        self.assertAlmostEqual(estimator.velocity, 2.0, delta=0.05)

    def test_started_at_measurement_stays_exact(self) -> None:
        estimator = kalman.ScalarEstimator()
        estimator.reset(1.0)
        state = estimator.update(1.0, 0.0)
        self.assertEqual(state.position, 1.0)
        self.assertEqual(state.velocity, 0.0)

    def test_first_update_uses_default_dt(self) -> None:
        estimator = kalman.ScalarEstimator()
        self.assertEqual(estimator._step_dt(5000.0), kalman.DEFAULT_DT)

    def test_dt_is_clamped(self) -> None:
        estimator = kalman.ScalarEstimator()
        estimator.update(0.0, 1000.0)
        self.assertEqual(estimator._step_dt(1000.0), kalman.MIN_DT)
        self.assertEqual(estimator._step_dt(900.0), kalman.MIN_DT)
        self.assertEqual(estimator._step_dt(5000.0), kalman.MAX_DT)
        self.assertAlmostEqual(estimator._step_dt(1033.0), 0.033)

    def test_reset_restores_initial_variances(self) -> None:
        config = FilterConfig(initial_position_variance=2.0, initial_velocity_variance=3.0)
        estimator = kalman.ScalarEstimator(config)
        for i in range(10):
            estimator.update(float(i), i * 33.0)

        estimator.reset()
        state = estimator.state
        self.assertEqual(state.position, 0.0)
        self.assertEqual(state.velocity, 0.0)
        self.assertEqual(state.position_variance, 2.0)
        self.assertEqual(state.velocity_variance, 3.0)
        self.assertEqual(state.covariance, 0.0)
        self.assertIsNone(estimator.last_timestamp)

    def test_zero_variance_filter_is_rejected_before_update(self) -> None:
        with self.assertRaises(ValueError):
            kalman.ScalarEstimator(FilterConfig(0.0, 0.0, 0.0, 0.0))

        estimator = kalman.ScalarEstimator(FilterConfig(0.0, 1e-9, 0.0, 0.0))
        state = estimator.update(1.0, 0.0)
        self.assertEqual(state.position, 0.0)
        self.assertEqual(state.velocity, 0.0)

    def test_returned_state_is_immutable(self) -> None:
        state = kalman.ScalarEstimator().update(1.0, 0.0)
        with self.assertRaises(Exception):
            state.position = 5.0  # type: ignore[misc]


class VectorEstimatorTests(unittest.TestCase):
    def test_axes_are_filtered_independently(self) -> None:
        estimator = kalman.VectorEstimator()
        estimator.reset((1.0, 2.0, 3.0))
        position, velocity = estimator.update((1.0, 2.0, 3.0), 0.0)
        self.assertEqual(position, kalman.Vector3(1.0, 2.0, 3.0))
        self.assertEqual(velocity, kalman.Vector3(0.0, 0.0, 0.0))
        self.assertEqual(estimator.speed(), 0.0)

    def test_speed_is_velocity_norm(self) -> None:
        estimator = kalman.VectorEstimator()
        for i in range(200):
            t = i * 33.0
            estimator.update((0.3 * t / 1000.0, 0.4 * t / 1000.0, 0.0), t)
        self.assertAlmostEqual(estimator.speed(), 0.5, delta=0.02)


class AngleEstimatorTests(unittest.TestCase):
    def test_defaults_to_angle_noise(self) -> None:
        self.assertEqual(kalman.AngleEstimator().config, ANGLE_FILTER)

    def test_reports_angle_and_angular_velocity(self) -> None:
        estimator = kalman.AngleEstimator()
        estimator.reset(90.0)
        angle, angular_velocity = estimator.update(90.0, 0.0)
        self.assertEqual(angle, 90.0)
        self.assertEqual(angular_velocity, 0.0)
        self.assertEqual(estimator.angle, 90.0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
