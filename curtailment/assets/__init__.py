"""Tracked generation assets (BM Units) and their ownership metadata."""

from .classifier import AssetClassifier, get_asset_classifier, set_asset_classifier

__all__ = [
    "AssetClassifier",
    "get_asset_classifier",
    "set_asset_classifier",
]
