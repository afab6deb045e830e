"""
Bundle evaluation engine.

The engine wires the catalog store to the scoring, training and
reconciliation components and exposes the operations callers use:

- evaluate_compatibility / score_product / score_bundle / evaluate_bundle
- train / reconcile / update_all_comfort_scores
- status

Key Design Decisions:
- One engine (and one scorer and model) per process, built from config at
  startup and passed to whatever needs it
- The trainer and the scorer share the same model object, so weights
  trained here are served immediately
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .bundles import BundleService
from .catalog import CatalogService, DocumentStore, Product
from .compatibility import CompatibilityReport, check_compatibility
from .fusion import ComfortScore
from .inference import ComfortScorer
from .modeling import ComfortModel, ComfortModelTrainer, ModelConfig, TrainingLog
from .reconciliation import CatalogReconciler, ReconcileStats

logger = logging.getLogger(__name__)


@dataclass
class BundleEvaluation:
    """Compatibility and comfort for one candidate part set."""
    compatibility: CompatibilityReport
    comfort: ComfortScore

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compatibility": self.compatibility.to_dict(),
            "comfort": self.comfort.to_dict()
        }


class BundleEvaluationEngine:
    """
    Entry point for bundle evaluation.

    Attributes:
        store: Document store shared by every component
        model: The process-wide comfort model
        scorer: Comfort scorer
        trainer: Comfort model trainer
        reconciler: Duplicate-product reconciler
        catalog: Catalog service
        bundles: Bundle service
    """

    def __init__(
        self,
        store: DocumentStore,
        model: ComfortModel,
        config: Optional[Dict[str, Any]] = None
    ):
        self.config = config or {}
        self.store = store
        self.model = model
        self.scorer = ComfortScorer(store, model)
        self.trainer = ComfortModelTrainer(store, model, self.config)
        self.reconciler = CatalogReconciler(store)
        self.catalog = CatalogService(store)
        self.bundles = BundleService(store, self.scorer)

    @classmethod
    def from_config(cls, config: Dict[str, Any], store: Optional[DocumentStore] = None) -> "BundleEvaluationEngine":
        """Create an engine (and its model) from the main config dictionary."""
        model = ComfortModel(ModelConfig.from_config(config))
        return cls(store or DocumentStore(), model, config)

    def evaluate_compatibility(self, parts: Mapping[Any, Optional[Product]]) -> CompatibilityReport:
        return check_compatibility(parts)

    def score_product(self, product_id: str, return_breakdown: bool = False) -> ComfortScore:
        """
        Score one product and cache the overall score on it.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        score = self.scorer.score_product(product_id, return_breakdown=return_breakdown)
        self.store.products.update(product_id, {"comfort_score": score.overall})
        return score

    def score_bundle(self, parts: Mapping[Any, Optional[Product]]) -> ComfortScore:
        return self.scorer.score_bundle(parts)

    def evaluate_bundle(self, parts: Mapping[Any, Optional[Product]]) -> BundleEvaluation:
        """Run the compatibility checks and comfort scoring on one part set."""
        return BundleEvaluation(
            compatibility=self.evaluate_compatibility(parts),
            comfort=self.score_bundle(parts)
        )

    def train(self) -> Optional[TrainingLog]:
        return self.trainer.train()

    def reconcile(self) -> ReconcileStats:
        return self.reconciler.reconcile()

    def update_all_comfort_scores(self) -> Dict[str, int]:
        """
        Recompute and store the comfort score of every product.

        Returns:
            Dictionary with updated, failed and total counts
        """
        product_ids = [p.id for p in self.store.products.find()]
        updated = 0
        failed = 0

        for product_id in product_ids:
            try:
                self.score_product(product_id)
                updated += 1
            except Exception:
                logger.exception(f"Error updating comfort score for product {product_id}")
                failed += 1

        logger.info(f"Updated comfort scores: {updated} updated, {failed} failed, {len(product_ids)} total")
        return {"updated": updated, "failed": failed, "total": len(product_ids)}

    def status(self) -> Dict[str, Any]:
        return {
            **self.scorer.status(),
            "catalog": self.store.stats()
        }
