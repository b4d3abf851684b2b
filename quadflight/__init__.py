"""Quadcopter simulation components, state estimators, safety checks and minimum-jerk trajectories."""

__version__ = "0.1.0"