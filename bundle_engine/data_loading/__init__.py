"""Data loading module for catalog snapshots and the synthetic demo catalog."""

from .loaders import load_catalog, save_catalog
from .synthetic import create_synthetic_catalog

__all__ = [
    "load_catalog",
    "save_catalog",
    "create_synthetic_catalog",
]
