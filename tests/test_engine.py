"""Tests for the engine facade, catalog snapshots and the CLI runner."""

import json

import pandas as pd
import pytest
import yaml

from bundle_engine.catalog import Category
from bundle_engine.data_loading import create_synthetic_catalog, load_catalog, save_catalog
from bundle_engine.engine import BundleEvaluationEngine
from bundle_engine.errors import ProductNotFoundError
from bundle_engine.modeling import ComfortModel
from bundle_engine.run import main

from conftest import FakeModel


@pytest.fixture
def engine(store):
    return BundleEvaluationEngine(store, FakeModel())


class TestEngine:
    """Tests for the produced operations."""

    def test_from_config(self, tmp_path):
        engine = BundleEvaluationEngine.from_config({
            "global": {"model_path": str(tmp_path / "m.joblib")},
            "modeling": {"min_training_samples": 3},
        })
        assert isinstance(engine.model, ComfortModel)
        assert engine.trainer.min_training_samples == 3
        assert engine.scorer.model is engine.model
        assert engine.bundles.scorer is engine.scorer

    def test_score_product_caches_overall(self, engine, store, make_product):
        product = make_product()
        score = engine.score_product(product.id)
        assert store.products.find_by_id(product.id).comfort_score == score.overall == 24

    def test_score_missing_product(self, engine):
        with pytest.raises(ProductNotFoundError):
            engine.score_product("missing")

    def test_evaluate_bundle(self, engine, make_product):
        cpu = make_product(category=Category.CPU, specifications={"socket": "AM5"})
        board = make_product(category=Category.MOTHERBOARD, brand="ASUS", model="Z790",
                             specifications={"socket": "LGA1700"})

        evaluation = engine.evaluate_bundle({"CPU": cpu, "Motherboard": board})
        assert evaluation.compatibility.score == 75
        assert evaluation.comfort.ease > 0
        assert evaluation.to_dict()["compatibility"]["compatible"] is False

    def test_update_all_comfort_scores(self, engine, store, make_product, monkeypatch):
        products = [make_product(model=f"M{i}") for i in range(3)]
        original = engine.scorer.score_product

        def flaky(product_id, **kwargs):
            if product_id == products[1].id:
                raise RuntimeError("boom")
            return original(product_id, **kwargs)

        monkeypatch.setattr(engine.scorer, "score_product", flaky)
        assert engine.update_all_comfort_scores() == {"updated": 2, "failed": 1, "total": 3}
        assert store.products.find_by_id(products[0].id).comfort_score == 24

    def test_reconcile_and_status(self, engine, make_product):
        make_product(model="Dup")
        make_product(model=" dup ")
        assert engine.reconcile().merged == 1

        status = engine.status()
        assert status["features"] == 12
        assert status["catalog"]["products"] == 1


class TestCatalogSnapshots:
    """Tests for JSON snapshots and the synthetic catalog."""

    def test_save_and_load(self, tmp_path, store, make_product, make_review):
        product = make_product()
        review = make_review(product.id)
        path = tmp_path / "catalog.json"

        save_catalog(store, str(path))
        loaded = load_catalog(str(path))

        assert loaded.stats() == store.stats()
        restored = loaded.products.find_by_id(product.id)
        assert restored.to_dict() == store.products.find_by_id(product.id).to_dict()
        assert loaded.reviews.find_by_id(review.id).created_at == review.created_at

    def test_load_rejects_non_object(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps([1, 2]))
        with pytest.raises(ValueError):
            load_catalog(str(path))

    def test_synthetic_catalog_has_duplicates(self):
        store = create_synthetic_catalog(n_products=21, n_users=10, n_duplicates=3, random_seed=1)
        assert store.products.count() == 24

        engine = BundleEvaluationEngine(store, FakeModel())
        stats = engine.reconcile()
        assert stats.merged == 3
        assert stats.total_groups == 21

    def test_synthetic_catalog_is_reproducible(self):
        first = create_synthetic_catalog(n_products=14, n_users=5, random_seed=3)
        second = create_synthetic_catalog(n_products=14, n_users=5, random_seed=3)
        assert [p.name for p in first.products.find()] == [p.name for p in second.products.find()]
        assert first.reviews.count() == second.reviews.count()


@pytest.fixture
def cli_config(tmp_path):
    config = {
        "global": {
            "log_level": "INFO",
            "random_seed": 42,
            "model_path": str(tmp_path / "models" / "comfort_model.joblib"),
            "catalog_path": str(tmp_path / "catalog.json"),
        },
        "modeling": {"hidden_layer_sizes": [8, 4], "epochs": 5, "min_training_samples": 3},
        "reconciliation": {"enabled_on_startup": True},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


class TestRunner:
    """Tests for the command-line runner."""

    def test_score_all_writes_report(self, tmp_path, cli_config):
        output = tmp_path / "report.csv"
        assert main(["--config", str(cli_config), "score-all", "--output", str(output)]) == 0

        report = pd.read_csv(output)
        assert len(report) > 0
        assert report["comfort_score"].between(0, 100).all()
        assert (tmp_path / "catalog.json").exists()

    def test_train(self, tmp_path, cli_config):
        assert main(["--config", str(cli_config), "train"]) == 0
        assert (tmp_path / "models" / "comfort_model.joblib").exists()

    def test_evaluate_unknown_product(self, cli_config):
        assert main(["--config", str(cli_config), "evaluate", "--part", "CPU=missing"]) == 1

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "nope.yaml"), "reconcile"]) == 1
