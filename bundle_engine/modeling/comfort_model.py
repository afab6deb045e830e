"""
Regression model for comfort prediction.

The model maps the 12-dimensional product feature vector to two outputs,
(ease, performance), each in [0, 1]. It is a small feed-forward network
(sklearn MLPRegressor, hidden layers 29-16-8, relu, adam) whose outputs are
clipped to [0, 1] at prediction time.

Lifecycle:
- initialize(): load persisted weights; when none exist (the normal case on
  a fresh install) fall back to freshly initialized weights
- predict(): single-vector inference
- fit(): train a NEW estimator on a holdout split, then swap it in
- save(): persist to a temp file and atomically move it into place

Key Design Decisions:
- Training never mutates the estimator that is serving predictions; a score
  computed during training sees either the old or the new weights
- A missing weights file is expected and recovered from; a failed save is
  raised, because trained weights would otherwise be lost silently
"""

import logging
import os
import threading
import warnings
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import joblib
import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.model_selection import train_test_split
from sklearn.neural_network import MLPRegressor

from ..errors import ModelPersistenceError
from ..feature_engineering import FEATURE_NAMES, NUM_FEATURES, TARGET_NAMES

logger = logging.getLogger(__name__)

NUM_OUTPUTS = len(TARGET_NAMES)


@dataclass
class ModelConfig:
    """
    Network architecture and persistence settings.

    Attributes:
        hidden_layer_sizes: Units per hidden layer
        learning_rate: Adam learning rate
        alpha: L2 regularization strength
        random_seed: Seed for weight initialization and data splits
        model_path: Where weights are persisted
    """
    hidden_layer_sizes: Tuple[int, ...] = (29, 16, 8)
    learning_rate: float = 0.001
    alpha: float = 0.0001
    random_seed: int = 42
    model_path: str = "artifacts/models/comfort_model.joblib"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ModelConfig":
        """Create from main config dictionary."""
        modeling_config = config.get("modeling", {})
        global_config = config.get("global", {})
        return cls(
            hidden_layer_sizes=tuple(modeling_config.get("hidden_layer_sizes", (29, 16, 8))),
            learning_rate=modeling_config.get("learning_rate", 0.001),
            alpha=modeling_config.get("alpha", 0.0001),
            random_seed=global_config.get("random_seed", 42),
            model_path=global_config.get("model_path", "artifacts/models/comfort_model.joblib")
        )


@dataclass
class FitConfig:
    """
    Training-cycle settings.

    Attributes:
        epochs: Maximum passes over the training data (the only bound on a fit)
        batch_size: Minibatch size
        validation_split: Fraction of pairs held out for validation
    """
    epochs: int = 200
    batch_size: int = 32
    validation_split: float = 0.2

    def validate(self) -> None:
        """Validate configuration values."""
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if not 0 <= self.validation_split < 1:
            raise ValueError(f"validation_split must be in [0, 1), got {self.validation_split}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FitConfig":
        modeling_config = config.get("modeling", {})
        return cls(
            epochs=modeling_config.get("epochs", 200),
            batch_size=modeling_config.get("batch_size", 32),
            validation_split=modeling_config.get("validation_split", 0.2)
        )


@dataclass
class TrainingLog:
    """Summary of one fit cycle."""
    n_samples: int
    n_train: int
    n_validation: int
    epochs_run: int
    final_loss: float
    loss_curve: List[float] = field(default_factory=list)
    validation_mse: Optional[float] = None
    validation_mae: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ComfortModel:
    """
    Feed-forward comfort model with atomic weight swaps.

    Attributes:
        config: ModelConfig with architecture and persistence settings
    """

    def __init__(self, config: Optional[ModelConfig] = None):
        self.config = config or ModelConfig()
        self._estimator: Optional[MLPRegressor] = None
        self._swap_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._estimator is not None

    @property
    def model_path(self) -> Path:
        return Path(self.config.model_path)

    def initialize(self) -> None:
        """
        Load persisted weights, or start from fresh weights if none exist.

        Safe to call repeatedly; a ready model is left untouched.
        """
        if self.is_ready:
            return

        try:
            self.load()
            logger.info(f"Loaded pre-trained comfort model weights from {self.model_path}")
        except FileNotFoundError:
            logger.info("No pre-trained weights found, using fresh model")
            self._swap(self._create_fresh_estimator())
        except Exception as e:
            logger.warning(f"Could not load weights from {self.model_path} ({e}), using fresh model")
            self._swap(self._create_fresh_estimator())

        logger.info("Comfort model ready")

    def _create_estimator(self, max_iter: int = 200, batch_size: Any = "auto") -> MLPRegressor:
        return MLPRegressor(
            hidden_layer_sizes=self.config.hidden_layer_sizes,
            activation="relu",
            solver="adam",
            learning_rate_init=self.config.learning_rate,
            alpha=self.config.alpha,
            batch_size=batch_size,
            max_iter=max_iter,
            shuffle=True,
            random_state=self.config.random_seed
        )

    def _create_fresh_estimator(self) -> MLPRegressor:
        """
        Build an estimator with initialized (untrained) weights.

        sklearn allocates weights on the first partial_fit, so the network is
        primed with a single step on a neutral sample: an all-zero feature
        vector mapped to 0.5 for every output.
        """
        estimator = self._create_estimator()
        estimator.partial_fit(
            np.zeros((1, NUM_FEATURES)),
            np.full((1, NUM_OUTPUTS), 0.5)
        )
        return estimator

    def _swap(self, estimator: MLPRegressor) -> None:
        with self._swap_lock:
            self._estimator = estimator

    def predict(self, vector: Sequence[float]) -> np.ndarray:
        """
        Predict (ease, performance) for one feature vector.

        Args:
            vector: 12 features in FEATURE_NAMES order

        Returns:
            Array of shape (2,) with values in [0, 1]
        """
        return self.predict_batch(np.asarray(vector, dtype=float).reshape(1, -1))[0]

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        """
        Predict for a feature matrix (N x 12).

        Returns:
            Array of shape (N, 2) clipped to [0, 1]
        """
        estimator = self._estimator
        if estimator is None:
            raise RuntimeError("Model must be initialized before predict")

        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != NUM_FEATURES:
            raise ValueError(f"Expected feature matrix with {NUM_FEATURES} columns, got shape {X.shape}")

        preds = np.asarray(estimator.predict(X), dtype=float).reshape(len(X), -1)
        return np.clip(preds, 0.0, 1.0)

    def fit(self, X: np.ndarray, y: np.ndarray, fit_config: Optional[FitConfig] = None) -> TrainingLog:
        """
        Train a new estimator and swap it in.

        Args:
            X: Training features (N x 12)
            y: Targets (N x 2): avg_ease, avg_performance
            fit_config: Epochs, batch size and validation split

        Returns:
            TrainingLog with loss curve and holdout metrics
        """
        fit_config = fit_config or FitConfig()
        fit_config.validate()

        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if len(X) != len(y):
            raise ValueError(f"X and y must have same length: {len(X)} vs {len(y)}")

        n_validation = int(len(X) * fit_config.validation_split)
        if n_validation > 0:
            X_train, X_val, y_train, y_val = train_test_split(
                X, y,
                test_size=n_validation,
                random_state=self.config.random_seed
            )
        else:
            X_train, y_train = X, y
            X_val, y_val = None, None

        logger.info(f"Training comfort model: {len(X_train)} train / {n_validation} validation samples, "
                    f"epochs={fit_config.epochs}, batch_size={fit_config.batch_size}")

        estimator = self._create_estimator(
            max_iter=fit_config.epochs,
            batch_size=min(fit_config.batch_size, len(X_train))
        )
        with warnings.catch_warnings():
            # Hitting the epoch bound is the expected way a fit ends
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            estimator.fit(X_train, y_train)

        loss_curve = [float(v) for v in getattr(estimator, "loss_curve_", [])]
        for epoch in range(0, len(loss_curve), 10):
            logger.debug(f"Epoch {epoch}: loss = {loss_curve[epoch]:.4f}")

        validation_mse = None
        validation_mae = None
        if X_val is not None:
            val_preds = np.clip(np.asarray(estimator.predict(X_val)).reshape(len(X_val), -1), 0.0, 1.0)
            validation_mse = float(np.mean((val_preds - y_val) ** 2))
            validation_mae = float(np.mean(np.abs(val_preds - y_val)))
            logger.info(f"Validation metrics: MSE={validation_mse:.4f}, MAE={validation_mae:.4f}")

        self._swap(estimator)

        return TrainingLog(
            n_samples=len(X),
            n_train=len(X_train),
            n_validation=n_validation,
            epochs_run=int(estimator.n_iter_),
            final_loss=float(estimator.loss_),
            loss_curve=loss_curve,
            validation_mse=validation_mse,
            validation_mae=validation_mae
        )

    def save(self, filepath: Optional[str] = None) -> None:
        """
        Persist the current weights.

        Writes to a temporary file next to the target and renames it into
        place, so readers never observe a partially written file.

        Raises:
            RuntimeError: If the model has not been initialized
            ModelPersistenceError: If the weights could not be written
        """
        estimator = self._estimator
        if estimator is None:
            raise RuntimeError("Cannot save uninitialized model")

        path = Path(filepath) if filepath else self.model_path
        state = {
            "model": estimator,
            "config": asdict(self.config),
            "feature_names": list(FEATURE_NAMES),
            "target_names": list(TARGET_NAMES),
            "saved_at": datetime.now(timezone.utc).isoformat()
        }

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(state, tmp_path, compress=3)
            os.replace(tmp_path, path)
        except Exception as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise ModelPersistenceError(f"Failed to save comfort model to {path}: {e}") from e

        logger.info(f"Saved comfort model to {path}")

    def load(self, filepath: Optional[str] = None) -> None:
        """
        Load persisted weights and swap them in.

        Raises:
            FileNotFoundError: If no weights have been saved yet
            ValueError: If the file was trained on a different feature layout
        """
        path = Path(filepath) if filepath else self.model_path
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")

        state = joblib.load(path)
        if state.get("feature_names") != list(FEATURE_NAMES):
            raise ValueError(f"Model at {path} was trained on a different feature layout")

        self._swap(state["model"])
