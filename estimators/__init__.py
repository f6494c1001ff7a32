# Importing the strategy modules registers them by name
from . import sme_bracket, turnover  # noqa: F401
from .base import Estimator, derive_estimates
from .registry import available_estimators, get_estimator

__all__ = [
    "Estimator",
    "derive_estimates",
    "available_estimators",
    "get_estimator",
]
