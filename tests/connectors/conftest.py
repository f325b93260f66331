"""Connector-specific pytest fixtures.

Loads sample Elexon settlement stack responses from tests/fixtures/.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


def _load_json(filename: str) -> Any:
    """Load a JSON fixture file."""
    filepath = FIXTURES_DIR / filename
    with filepath.open("r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def elexon_bid_response() -> dict[str, Any]:
    """Sample bid stack for 2025-03-04 period 16."""
    return _load_json("elexon_bid_sample.json")


@pytest.fixture
def elexon_offer_response() -> dict[str, Any]:
    """Sample offer stack for 2025-03-04 period 16."""
    return _load_json("elexon_offer_sample.json")
