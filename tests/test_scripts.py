"""Tests for the operational scripts: the reconcile CLI and the difficulty seeder."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from curtailment.core.exceptions import NotFoundError


# ---------------------------------------------------------------------------
# reconcile CLI argument parsing
# ---------------------------------------------------------------------------
class TestParseArgs:
    def test_process_day(self):
        from scripts.reconcile import parse_args

        args = parse_args(["process-day", "2025-03-04"])
        assert args.command == "process-day"
        assert args.date == date(2025, 3, 4)

    def test_process_range_with_concurrency(self):
        from scripts.reconcile import parse_args

        args = parse_args(["process-range", "2025-03-01", "2025-03-31", "--concurrency", "3"])
        assert args.start == date(2025, 3, 1)
        assert args.end == date(2025, 3, 31)
        assert args.concurrency == 3

    def test_verify_bitcoin_models_and_fix(self):
        from scripts.reconcile import parse_args

        args = parse_args(["verify-bitcoin", "2025-03-04", "--model", "S9", "--model", "M20S", "--fix"])
        assert args.models == ["S9", "M20S"]
        assert args.fix is True

    def test_invalid_date_exits(self):
        from scripts.reconcile import parse_args

        with pytest.raises(SystemExit):
            parse_args(["process-day", "04/03/2025"])

    def test_command_required(self):
        from scripts.reconcile import parse_args

        with pytest.raises(SystemExit):
            parse_args([])


# ---------------------------------------------------------------------------
# reconcile CLI commands
# ---------------------------------------------------------------------------
class TestMain:
    def test_process_day_complete_exits_zero(self):
        from scripts import reconcile

        service = MagicMock()
        service.reconcile_date = AsyncMock(return_value={"complete": True, "missing_periods": []})
        with patch.object(reconcile, "_build_service", return_value=service):
            assert reconcile.main(["process-day", "2025-03-04"]) == 0
        service.reconcile_date.assert_awaited_once_with(date(2025, 3, 4))

    def test_process_day_incomplete_exits_one(self):
        from scripts import reconcile

        service = MagicMock()
        service.reconcile_date = AsyncMock(return_value={"complete": False, "missing_periods": [9]})
        with patch.object(reconcile, "_build_service", return_value=service):
            assert reconcile.main(["process-day", "2025-03-04"]) == 1

    def test_ledger_error_is_reported(self, capsys):
        from scripts import reconcile

        service = MagicMock()
        service.reprocess_date = AsyncMock(side_effect=NotFoundError("No difficulty record"))
        with patch.object(reconcile, "_build_service", return_value=service):
            assert reconcile.main(["reprocess-day", "2019-01-01"]) == 1
        assert "No difficulty record" in capsys.readouterr().err

    def test_reversed_range_rejected(self, capsys):
        from scripts import reconcile

        assert reconcile.main(["process-range", "2025-03-31", "2025-03-01"]) == 1
        assert "is after end" in capsys.readouterr().err

    def test_format_seconds(self):
        from scripts.reconcile import _format_seconds

        assert _format_seconds(12.34) == "12.3s"
        assert _format_seconds(125) == "2m5s"


# ---------------------------------------------------------------------------
# Difficulty seeder
# ---------------------------------------------------------------------------
class TestSeedDifficulty:
    def test_load_entries(self, tmp_path):
        from scripts.seed_difficulty import load_entries

        path = tmp_path / "difficulty.json"
        path.write_text(
            json.dumps(
                [
                    {"effective_at": "2025-03-02T17:40:00Z", "difficulty": 110.57e12, "block_height": 886_032},
                    {"effective_at": "2024-12-30T03:15:00", "difficulty": "109.78e12"},
                ]
            )
        )

        entries = load_entries(path)

        assert entries[0]["effective_at"] == datetime(2025, 3, 2, 17, 40, tzinfo=timezone.utc)
        assert entries[0]["block_height"] == 886_032
        assert entries[1]["effective_at"].tzinfo == timezone.utc
        assert entries[1]["difficulty"] == pytest.approx(109.78e12)
        assert entries[1]["source"] == "difficulty.json"

    def test_rejects_non_positive_difficulty(self, tmp_path):
        from scripts.seed_difficulty import load_entries

        path = tmp_path / "difficulty.json"
        path.write_text(json.dumps([{"effective_at": "2025-01-01T00:00:00Z", "difficulty": 0}]))
        with pytest.raises(ValueError, match="non-positive"):
            load_entries(path)

    def test_rejects_non_list(self, tmp_path):
        from scripts.seed_difficulty import load_entries

        path = tmp_path / "difficulty.json"
        path.write_text(json.dumps({"effective_at": "2025-01-01T00:00:00Z"}))
        with pytest.raises(ValueError, match="JSON list"):
            load_entries(path)
