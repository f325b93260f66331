"""Asset classifier -- the set of tracked wind BM Units and their owners.

Process-wide reference state with an explicit lifecycle:

    classifier = get_asset_classifier()      # lazily loads on first lookup
    classifier.is_tracked("T_WHILW-1")
    classifier.invalidate()                  # next lookup reloads from disk

The reference dataset is a JSON list of BM Unit entries with at least
``elexonBmUnit`` and ``leadPartyName``. When ``fuelType`` is present only
wind units are tracked. Tests build classifiers with ``from_entries``.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from curtailment.core.config import settings
from curtailment.core.enums import FuelType
from curtailment.core.exceptions import NotFoundError
from curtailment.core.utils.logging_config import get_logger

logger = get_logger("assets.classifier")


class AssetClassifier:
    """Answers "is this unit tracked, and who owns it" in O(1).

    Args:
        mapping_path: JSON reference dataset path. Ignored when the classifier
            is built from in-memory entries.
        tracked_fuel: Fuel type kept when entries carry ``fuelType``.
    """

    def __init__(
        self,
        mapping_path: str | Path | None = None,
        tracked_fuel: FuelType = FuelType.WIND,
    ) -> None:
        self.mapping_path = Path(mapping_path or settings.bmu_mapping_path)
        self.tracked_fuel = tracked_fuel
        self._entries: list[Mapping[str, Any]] | None = None
        self._owners: dict[str, str | None] | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[Mapping[str, Any]],
        tracked_fuel: FuelType = FuelType.WIND,
    ) -> AssetClassifier:
        """Build a classifier from in-memory reference entries."""
        classifier = cls(mapping_path=Path("<memory>"), tracked_fuel=tracked_fuel)
        classifier._entries = list(entries)
        classifier._index(classifier._entries)
        return classifier

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def load(self) -> None:
        """(Re)load the reference dataset and rebuild the lookup index.

        Raises:
            NotFoundError: If the dataset is missing or not a JSON list.
        """
        with self._lock:
            if self._entries is None:
                self._entries = self._read_mapping()
            self._index(self._entries)

    def invalidate(self) -> None:
        """Drop cached state; the next lookup reloads the dataset.

        Classifiers built from in-memory entries keep their entries and only
        rebuild the index.
        """
        with self._lock:
            if str(self.mapping_path) != "<memory>":
                self._entries = None
            self._owners = None
        logger.info("asset_classifier_invalidated", path=str(self.mapping_path))

    @property
    def is_loaded(self) -> bool:
        return self._owners is not None

    def _read_mapping(self) -> list[Mapping[str, Any]]:
        try:
            with self.mapping_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise NotFoundError(
                f"BM Unit mapping not found at {self.mapping_path}"
            ) from exc
        except json.JSONDecodeError as exc:
            raise NotFoundError(
                f"BM Unit mapping at {self.mapping_path} is not valid JSON: {exc}"
            ) from exc

        if not isinstance(data, list):
            raise NotFoundError(
                f"BM Unit mapping at {self.mapping_path} must be a JSON list"
            )
        return data

    def _index(self, entries: list[Mapping[str, Any]]) -> None:
        owners: dict[str, str | None] = {}
        for entry in entries:
            unit_id = entry.get("elexonBmUnit")
            if not unit_id:
                continue
            fuel = entry.get("fuelType")
            if fuel is not None and str(fuel).upper() != self.tracked_fuel.value:
                continue
            owners[str(unit_id)] = entry.get("leadPartyName")
        self._owners = owners
        logger.info(
            "asset_classifier_loaded",
            tracked_units=len(owners),
            source=str(self.mapping_path),
        )

    def _ensure_loaded(self) -> dict[str, str | None]:
        if self._owners is None:
            self.load()
        assert self._owners is not None
        return self._owners

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def is_tracked(self, unit_id: str) -> bool:
        return unit_id in self._ensure_loaded()

    def lead_party(self, unit_id: str) -> str | None:
        """Owner display name, or None for untracked or anonymous units."""
        return self._ensure_loaded().get(unit_id)

    @property
    def tracked_units(self) -> frozenset[str]:
        return frozenset(self._ensure_loaded())

    def __len__(self) -> int:
        return len(self._ensure_loaded())


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------
_classifier: AssetClassifier | None = None


def get_asset_classifier() -> AssetClassifier:
    """Return the process-wide classifier, creating it on first call.

    When ``settings.asset_reload_on_start`` is set the dataset is loaded
    eagerly so a bad mapping file fails fast.
    """
    global _classifier
    if _classifier is None:
        _classifier = AssetClassifier()
        if settings.asset_reload_on_start:
            _classifier.load()
    return _classifier


def set_asset_classifier(classifier: AssetClassifier | None) -> None:
    """Replace (or with None, reset) the process-wide classifier."""
    global _classifier
    _classifier = classifier
