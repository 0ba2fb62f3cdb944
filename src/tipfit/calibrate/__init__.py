"""Penalty-weight calibration."""

from .pen_search import (
    CalibrationError,
    calibrate_pen,
    median_parameters,
    select_pen,
    simulate_crossval_ensemble,
)

__all__ = [
    "CalibrationError",
    "calibrate_pen",
    "median_parameters",
    "select_pen",
    "simulate_crossval_ensemble",
]
