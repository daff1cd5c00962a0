"""
Simulation Package.

Drives the flow engine over time and exposes the results.

Components:
- service: PredictionService (pull and push surface), GamePrediction
- ticker: SimulationClock (tagged fixed-cadence ticks)
"""

from .service import GamePrediction, PredictionService, PredictionCallback
from .ticker import SimulationClock, TickTag

__all__ = [
    "GamePrediction",
    "PredictionService",
    "PredictionCallback",
    "SimulationClock",
    "TickTag",
]
