import unittest

from kbvbt.config import FatigueThresholds
from kbvbt.repdetect.fatigue import FatigueAnalyzer
from kbvbt.repdetect.models import AlertKind, Hand, JointAngleExtrema, RepData, Severity


def make_rep(number: int, peak: float, power: float) -> RepData:
    return RepData(
        rep_number=number,
        start_time=number * 1000.0,
        end_time=number * 1000.0 + 800.0,
        duration=800.0,
        peak_velocity=peak,
        mean_velocity=peak / 3,
        peak_height=1.1,
        lockout_duration=100.0,
        phases=(),
        joint_angles=JointAngleExtrema(),
        power=power,
        hand=Hand.RIGHT,
    )


class FatigueAnalyzerTests(unittest.TestCase):
    def test_no_alerts_while_baseline_fills(self) -> None:
        analyzer = FatigueAnalyzer()
        for i, peak in enumerate([1.0, 0.5, 0.1], start=1):
            self.assertEqual(analyzer.observe(make_rep(i, peak, 100.0), set_number=1), [])
        self.assertTrue(analyzer.baseline_ready)
        self.assertAlmostEqual(analyzer.baseline_velocity, 0.5333333, places=5)

    def test_critical_velocity_drop(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(velocity_drop_critical=33.0, baseline_reps=2))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        analyzer.observe(make_rep(2, 0.9, 100.0), 1)
        alerts = analyzer.observe(make_rep(3, 0.6, 100.0), 1)

        self.assertEqual(len(alerts), 1)
        alert = alerts[0]
        self.assertEqual(alert.kind, AlertKind.VELOCITY_DROP)
        self.assertEqual(alert.severity, Severity.CRITICAL)
        self.assertEqual(alert.rep_number, 3)
        self.assertEqual(alert.set_number, 1)
        self.assertEqual(alert.timestamp, 3800.0)
        self.assertAlmostEqual(alert.velocity_drop_percent, 36.842, places=3)
        self.assertEqual(alert.message, "Critical velocity drop: 36.8% below baseline")

    def test_warning_velocity_drop(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        alerts = analyzer.observe(make_rep(2, 0.8, 100.0), 1)
        self.assertEqual([(a.kind, a.severity) for a in alerts], [(AlertKind.VELOCITY_DROP, Severity.WARNING)])
        self.assertTrue(alerts[0].message.startswith("Velocity dropping: 20.0%"))

    def test_velocity_and_power_graded_independently(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 2)
        alerts = analyzer.observe(make_rep(2, 0.8, 60.0), 2)

        by_kind = {a.kind: a for a in alerts}
        self.assertEqual(by_kind[AlertKind.VELOCITY_DROP].severity, Severity.WARNING)
        self.assertEqual(by_kind[AlertKind.POWER_DROP].severity, Severity.CRITICAL)
        self.assertIsNone(by_kind[AlertKind.POWER_DROP].velocity_drop_percent)
        self.assertEqual(by_kind[AlertKind.POWER_DROP].set_number, 2)

    def test_power_warning_only(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        alerts = analyzer.observe(make_rep(2, 1.0, 75.0), 1)
        self.assertEqual([(a.kind, a.severity) for a in alerts], [(AlertKind.POWER_DROP, Severity.WARNING)])

    def test_baseline_freezes(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        analyzer.observe(make_rep(2, 0.5, 50.0), 1)
        self.assertEqual(analyzer.baseline_velocity, 1.0)
        self.assertEqual(analyzer.baseline_power, 100.0)

    def test_zero_baseline_never_alerts(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 0.0, 0.0), 1)
        self.assertEqual(analyzer.observe(make_rep(2, 0.0, 0.0), 1), [])

    def test_reset_clears_baseline_but_keeps_alerts(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        analyzer.observe(make_rep(2, 0.5, 100.0), 1)
        analyzer.reset()

        self.assertFalse(analyzer.baseline_ready)
        self.assertEqual(analyzer.baseline_velocity, 0.0)
        self.assertEqual(len(analyzer.alerts), 1)
        self.assertEqual(analyzer.observe(make_rep(3, 0.2, 10.0), 2), [])

    def test_alerts_are_logged_as_warnings(self) -> None:
        analyzer = FatigueAnalyzer(FatigueThresholds(baseline_reps=1))
        analyzer.observe(make_rep(1, 1.0, 100.0), 1)
        with self.assertLogs("kbvbt.repdetect.fatigue", level="WARNING") as logs:
            analyzer.observe(make_rep(2, 0.5, 100.0), 1)
        self.assertIn("Critical velocity drop", logs.output[0])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
