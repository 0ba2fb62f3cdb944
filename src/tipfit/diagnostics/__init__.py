"""Goodness-of-fit helpers."""

from .residuals import residual_summary, strang_residuals

__all__ = ["residual_summary", "strang_residuals"]
