"""Two-stage maximum-likelihood estimators."""

from .ou import fit_ou, ou_objective, ou_start_values, ou_transition
from .tipping import derived_quantities, fit_tipping, penalty_term, strang_terms, tipping_objective

__all__ = [
    "derived_quantities",
    "fit_ou",
    "fit_tipping",
    "ou_objective",
    "ou_start_values",
    "ou_transition",
    "penalty_term",
    "strang_terms",
    "tipping_objective",
]
