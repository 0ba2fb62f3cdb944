"""Estimation and validation of stochastic tipping-point models."""

__version__ = "0.3.0"
