"""Reconciliation module for merging duplicate catalog products."""

from .merge import CatalogReconciler, ReconcileStats

__all__ = [
    "CatalogReconciler",
    "ReconcileStats",
]
