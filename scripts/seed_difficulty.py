"""Seed the difficulty_history table from a JSON file.

The file holds a list of objects with ``effective_at`` (ISO timestamp; naive
values are taken as UTC), ``difficulty`` and optionally ``block_height``.

Idempotent: uses INSERT ... ON CONFLICT DO UPDATE on the unique effective_at column.
Run: python scripts/seed_difficulty.py path/to/difficulty.json
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from curtailment.core.database import build_upsert, get_sync_session
from curtailment.core.models import DifficultyRecord


def load_entries(path: Path) -> list[dict[str, Any]]:
    """Read and normalise difficulty entries from *path*."""
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a JSON list")

    entries: list[dict[str, Any]] = []
    for item in raw:
        effective_at = datetime.fromisoformat(str(item["effective_at"]).replace("Z", "+00:00"))
        if effective_at.tzinfo is None:
            effective_at = effective_at.replace(tzinfo=timezone.utc)
        difficulty = float(item["difficulty"])
        if difficulty <= 0:
            raise ValueError(f"non-positive difficulty at {effective_at.isoformat()}")
        entries.append(
            {
                "effective_at": effective_at,
                "difficulty": difficulty,
                "block_height": item.get("block_height"),
                "source": item.get("source", path.name),
            }
        )
    return entries


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python scripts/seed_difficulty.py path/to/difficulty.json")
        return 1

    entries = load_entries(Path(args[0]))
    if not entries:
        print("No difficulty entries found.")
        return 0

    session = get_sync_session()
    try:
        stmt = build_upsert(
            session.get_bind().dialect.name,
            DifficultyRecord,
            entries,
            ["effective_at"],
            ["difficulty", "block_height", "source"],
        )
        session.execute(stmt)
        session.commit()
        total = session.query(DifficultyRecord).count()
        print(f"Seeded {len(entries)} difficulty epochs ({total} total in table).")
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
