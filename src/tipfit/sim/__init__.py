"""Trajectory simulation helpers."""

from .simulator import (
    Phase,
    Termination,
    downsample,
    simulate_from_params,
    simulate_ou,
    simulate_tipping,
    stationary_initial_state,
)

__all__ = [
    "Phase",
    "Termination",
    "downsample",
    "simulate_from_params",
    "simulate_ou",
    "simulate_tipping",
    "stationary_initial_state",
]
