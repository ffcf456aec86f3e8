"""
Prediction models

This module contains the pluggable models the orchestrator fans out to:
- Predictor: capability contract for all models
- Registry: registration and instantiation of enabled models
- Built-in weather, soil, crop, irrigation, energy and alert models
"""

# Import models to trigger registration
from .alert import AlertPredictor
from .base import (
    PredictionContext,
    Predictor,
    PredictorBase,
    PredictorRegistry,
    register_predictor,
    registry,
)
from .crop import CropPredictor
from .energy import EnergyPredictor
from .irrigation import IrrigationPredictor
from .soil import SoilPredictor
from .weather import WeatherPredictor

__all__ = [
    "registry",
    "PredictorRegistry",
    "Predictor",
    "PredictorBase",
    "PredictionContext",
    "register_predictor",
    "WeatherPredictor",
    "SoilPredictor",
    "CropPredictor",
    "IrrigationPredictor",
    "EnergyPredictor",
    "AlertPredictor",
]
