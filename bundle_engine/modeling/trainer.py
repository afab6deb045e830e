"""
Training-set assembly and fit cycle for the comfort model.

Each reviewed product contributes one training pair:
    input  = product feature vector (12 features)
    target = [avg_ease, avg_performance] from its platform reviews

Key Design Decisions:
- Products without reviews are excluded; their statistics are the neutral
  0.5 prior, and learning the prior as a target would teach the model nothing
- Fewer than min_training_samples pairs is not enough signal; training is
  skipped (logged, not raised)
- Training is not incremental: every call retrains from the full current
  catalog snapshot and then persists the new weights
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..catalog.store import DocumentStore
from ..errors import InsufficientDataError
from ..feature_engineering import FEATURE_NAMES, TARGET_NAMES, build_feature_frame
from .comfort_model import ComfortModel, FitConfig, TrainingLog

logger = logging.getLogger(__name__)


class ComfortModelTrainer:
    """
    Trainer for the comfort model.

    Attributes:
        store: Document store to read products and reviews from
        model: The comfort model that is trained and persisted
        fit_config: Epochs, batch size and validation split
        min_training_samples: Minimum reviewed products required to train
        max_training_products: Upper bound on products sampled per run
    """

    def __init__(
        self,
        store: DocumentStore,
        model: ComfortModel,
        config: Optional[Dict[str, Any]] = None
    ):
        config = config or {}
        modeling_config = config.get("modeling", {})

        self.store = store
        self.model = model
        self.fit_config = FitConfig.from_config(config)
        self.min_training_samples = modeling_config.get("min_training_samples", 10)
        self.max_training_products = modeling_config.get("max_training_products", 1000)

        logger.info(f"Initialized trainer (min_samples={self.min_training_samples}, "
                    f"max_products={self.max_training_products})")

    def build_training_frame(self) -> pd.DataFrame:
        """
        Tabulate features and review statistics for the sampled products.

        Returns:
            DataFrame (one row per reviewed product) with FEATURE_NAMES and
            TARGET_NAMES columns
        """
        products = self.store.products.find(limit=self.max_training_products)
        product_ids = [p.id for p in products]

        reviews_by_product: Dict[str, List[Any]] = defaultdict(list)
        for review in self.store.reviews.find({"product_id": product_ids}):
            reviews_by_product[review.product_id].append(review)

        frame = build_feature_frame(products, reviews_by_product)
        reviewed = frame[frame["review_count"] > 0]

        logger.info(f"Training frame: {len(reviewed)} reviewed of {len(frame)} sampled products")
        return reviewed

    def build_training_set(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Assemble model inputs and targets.

        Returns:
            Tuple of (X, y) with shapes (N, 12) and (N, 2)
        """
        frame = self.build_training_frame()
        X = frame[FEATURE_NAMES].to_numpy(dtype=float)
        y = frame[TARGET_NAMES].to_numpy(dtype=float)
        return X, y

    def train(self) -> Optional[TrainingLog]:
        """
        Retrain the model from the current catalog and persist the weights.

        Returns:
            TrainingLog, or None when there was not enough data to train

        Raises:
            ModelPersistenceError: If the trained weights could not be saved
        """
        self.model.initialize()

        X, y = self.build_training_set()
        try:
            self._check_sample_count(len(X))
        except InsufficientDataError as e:
            logger.info(f"Skipping training: {e}")
            return None

        log = self.model.fit(X, y, self.fit_config)
        self.model.save()

        logger.info(f"Model training completed: {log.epochs_run} epochs, final loss {log.final_loss:.4f}")
        return log

    def _check_sample_count(self, n_samples: int) -> None:
        if n_samples < self.min_training_samples:
            raise InsufficientDataError(
                f"{n_samples} reviewed products, need at least {self.min_training_samples}"
            )
