"""Velocity/power drift detection against a per-set baseline."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from kbvbt.config import FatigueThresholds
from kbvbt.repdetect.aggregator import percent_drop
from kbvbt.repdetect.models import AlertKind, FatigueAlert, RepData, Severity

logger = logging.getLogger(__name__)


class FatigueAnalyzer:
    """Compares each rep against the mean of the set's first reps.

    The baseline collects the first ``baseline_reps`` reps of a set and then
    freezes. Reps observed while it is still filling never raise alerts.
    Velocity and power are graded independently, so one rep can produce two
    alerts.
    """

    def __init__(self, thresholds: Optional[FatigueThresholds] = None) -> None:
        self.thresholds = thresholds or FatigueThresholds()
        self._baseline_velocities: List[float] = []
        self._baseline_powers: List[float] = []
        self._alerts: List[FatigueAlert] = []

    @property
    def alerts(self) -> List[FatigueAlert]:
        return list(self._alerts)

    @property
    def baseline_ready(self) -> bool:
        return len(self._baseline_velocities) >= self.thresholds.baseline_reps

    @property
    def baseline_velocity(self) -> float:
        return float(np.mean(self._baseline_velocities)) if self._baseline_velocities else 0.0

    @property
    def baseline_power(self) -> float:
        return float(np.mean(self._baseline_powers)) if self._baseline_powers else 0.0

    def reset(self) -> None:
        self._baseline_velocities = []
        self._baseline_powers = []

    def observe(self, rep: RepData, set_number: int) -> List[FatigueAlert]:
        """Grade ``rep`` against the baseline, then feed the baseline if still filling."""
        new_alerts: List[FatigueAlert] = []
        if self.baseline_ready:
            velocity_drop = percent_drop(self.baseline_velocity, rep.peak_velocity)
            power_drop = percent_drop(self.baseline_power, rep.power)
            t = self.thresholds

            velocity_severity = _grade(velocity_drop, t.velocity_drop_warning, t.velocity_drop_critical)
            if velocity_severity is Severity.CRITICAL:
                message = f"Critical velocity drop: {velocity_drop:.1f}% below baseline"
            else:
                message = f"Velocity dropping: {velocity_drop:.1f}% below baseline"
            if velocity_severity is not None:
                new_alerts.append(
                    FatigueAlert(
                        timestamp=rep.end_time,
                        set_number=set_number,
                        rep_number=rep.rep_number,
                        kind=AlertKind.VELOCITY_DROP,
                        severity=velocity_severity,
                        message=message,
                        velocity_drop_percent=velocity_drop,
                    )
                )

            power_severity = _grade(power_drop, t.power_drop_warning, t.power_drop_critical)
            if power_severity is Severity.CRITICAL:
                message = f"Critical power drop: {power_drop:.1f}% below baseline"
            else:
                message = f"Power dropping: {power_drop:.1f}% below baseline"
            if power_severity is not None:
                new_alerts.append(
                    FatigueAlert(
                        timestamp=rep.end_time,
                        set_number=set_number,
                        rep_number=rep.rep_number,
                        kind=AlertKind.POWER_DROP,
                        severity=power_severity,
                        message=message,
                    )
                )
        else:
            self._baseline_velocities.append(rep.peak_velocity)
            self._baseline_powers.append(rep.power)
            if self.baseline_ready:
                logger.debug(
                    "baseline frozen: velocity %.2f power %.0f W",
                    self.baseline_velocity,
                    self.baseline_power,
                )

        for alert in new_alerts:
            logger.warning("set %d rep %d: %s", alert.set_number, alert.rep_number, alert.message)
        self._alerts.extend(new_alerts)
        return new_alerts


def _grade(drop: float, warning: float, critical: float) -> Optional[Severity]:
    if drop >= critical:
        return Severity.CRITICAL
    if drop >= warning:
        return Severity.WARNING
    return None
