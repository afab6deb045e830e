"""Modeling module for the comfort regression model and its trainer."""

from .comfort_model import ComfortModel, ModelConfig, FitConfig, TrainingLog
from .trainer import ComfortModelTrainer

__all__ = [
    "ComfortModel",
    "ModelConfig",
    "FitConfig",
    "TrainingLog",
    "ComfortModelTrainer",
]
