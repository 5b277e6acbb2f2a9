"""kbvbt: velocity-based training analysis for kettlebell snatches.

This package hosts the Kalman estimators, snatch phase classification,
rep/set aggregation, power estimation and fatigue tracking that turn a
stream of pose landmarks into training metrics.
"""

__all__ = [
    "cli",
    "config",
    "events",
]

__version__ = "0.1.0"
