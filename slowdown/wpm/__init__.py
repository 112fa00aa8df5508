"""Speaking-rate calculation."""

from .rate_window import RateWindow, classify
from .types import Observation, RateStatus, RateUpdate

__all__ = ["RateWindow", "classify", "Observation", "RateStatus", "RateUpdate"]
