"""
Command-line runner for the bundle evaluation engine.

Usage:
    python -m bundle_engine.run --config configs/config.yaml train
    python -m bundle_engine.run reconcile
    python -m bundle_engine.run score-all --output artifacts/reports/comfort_scores.csv
    python -m bundle_engine.run evaluate --part CPU=<id> --part Motherboard=<id>

Every command works on the catalog snapshot named by global.catalog_path.
When the snapshot does not exist a synthetic demo catalog is generated
instead. Commands that change the catalog write it back to the snapshot path.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional

import pandas as pd

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def build_engine(config: Dict[str, Any]):
    """
    Load the catalog and construct the engine.

    Falls back to a synthetic catalog when the snapshot is missing. Runs the
    reconciler first when reconciliation.enabled_on_startup is set.
    """
    from .data_loading import load_catalog, create_synthetic_catalog
    from .engine import BundleEvaluationEngine

    global_config = config.get("global", {})
    catalog_path = global_config.get("catalog_path", "data/catalog.json")

    try:
        store = load_catalog(catalog_path)
    except FileNotFoundError as e:
        logger.error(f"Catalog not found: {e}")
        logger.info("Creating synthetic catalog for demonstration...")
        store = create_synthetic_catalog(random_seed=global_config.get("random_seed", 42))

    engine = BundleEvaluationEngine.from_config(config, store)

    if config.get("reconciliation", {}).get("enabled_on_startup", False):
        stats = engine.reconcile()
        logger.info(f"Startup reconciliation: {stats.to_dict()}")

    return engine


def cmd_train(engine, config: Dict[str, Any], args: argparse.Namespace) -> int:
    log = engine.train()
    if log is None:
        logger.info("Not enough reviewed products to train; model unchanged")
        return 0

    logger.info(f"Trained on {log.n_train} samples ({log.n_validation} held out), "
                f"validation MSE={log.validation_mse}")
    return 0


def cmd_reconcile(engine, config: Dict[str, Any], args: argparse.Namespace) -> int:
    from .data_loading import save_catalog

    stats = engine.reconcile()
    print(json.dumps(stats.to_dict(), indent=2))

    save_catalog(engine.store, config.get("global", {}).get("catalog_path", "data/catalog.json"))
    return 0


def cmd_score_all(engine, config: Dict[str, Any], args: argparse.Namespace) -> int:
    """Score every product, write the scores back, and export a CSV report."""
    from .data_loading import save_catalog

    summary = engine.update_all_comfort_scores()

    rows = []
    for product in engine.store.products.find():
        rows.append({
            "product_id": product.id,
            "name": product.name,
            "category": product.category.value,
            "group_key": product.group_key,
            "average_price": product.price_range.average,
            "shop_rating": product.ratings.overall.average,
            "platform_reviews": len(product.platform_reviews),
            "comfort_score": product.comfort_score
        })

    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values(["category", "comfort_score"], ascending=[True, False])

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    logger.info(f"Wrote comfort score report for {len(df)} products to {output_path}")

    save_catalog(engine.store, config.get("global", {}).get("catalog_path", "data/catalog.json"))
    return 0 if summary["failed"] == 0 else 1


def _parse_part_args(part_args: List[str]) -> Dict[str, str]:
    parts = {}
    for item in part_args:
        if "=" not in item:
            raise ValueError(f"Expected CATEGORY=PRODUCT_ID, got '{item}'")
        category, product_id = item.split("=", 1)
        parts[category.strip()] = product_id.strip()
    return parts


def cmd_evaluate(engine, config: Dict[str, Any], args: argparse.Namespace) -> int:
    """Evaluate a part set given as CATEGORY=PRODUCT_ID pairs."""
    from .errors import ProductNotFoundError

    parts = {}
    for category, product_id in _parse_part_args(args.part or []).items():
        product = engine.store.products.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        parts[category] = product

    evaluation = engine.evaluate_bundle(parts)
    print(json.dumps(evaluation.to_dict(), indent=2))
    return 0


COMMANDS = {
    "train": cmd_train,
    "reconcile": cmd_reconcile,
    "score-all": cmd_score_all,
    "evaluate": cmd_evaluate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bundle evaluation engine: compatibility, comfort scoring and catalog maintenance"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("train", help="Retrain the comfort model from catalog reviews")
    subparsers.add_parser("reconcile", help="Merge duplicate products")

    score_parser = subparsers.add_parser("score-all", help="Recompute every product's comfort score")
    score_parser.add_argument(
        "--output",
        type=str,
        default="artifacts/reports/comfort_scores.csv",
        help="Path of the CSV report"
    )

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a candidate part set")
    evaluate_parser.add_argument(
        "--part",
        action="append",
        metavar="CATEGORY=PRODUCT_ID",
        help="Part selection (repeat per category)"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the runner."""
    from .configs import load_config, validate_config

    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        for issue in validate_config(config):
            logger.warning(f"Config issue: {issue}")
        setup_logging(config.get("global", {}).get("log_level", "INFO"))

        engine = build_engine(config)
        return COMMANDS[args.command](engine, config, args)
    except Exception as e:
        logger.exception(f"Command '{args.command}' failed with error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
