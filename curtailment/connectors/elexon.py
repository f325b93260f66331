"""Elexon BMRS settlement stack connector.

Fetches accepted bid and offer volumes per settlement period from the
Elexon Insights API:

    /balancing/settlement/stack/all/bid/{date}/{period}
    /balancing/settlement/stack/all/offer/{date}/{period}

Both stacks are requested concurrently and concatenated. No filtering
happens here; the curtailment filter decides what is kept.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

from curtailment.connectors.base import BaseConnector, SettlementRecord
from curtailment.core.config import settings
from curtailment.core.exceptions import DataParsingError
from curtailment.core.utils.parsing import parse_flag, parse_numeric_value


class ElexonConnector(BaseConnector):
    """Connector for the Elexon BMRS balancing settlement stack.

    Usage::

        async with ElexonConnector() as conn:
            records = await conn.fetch(date(2025, 3, 4), 16)
    """

    SOURCE_NAME: str = "ELEXON"
    BASE_URL: str = "https://data.elexon.co.uk/bmrs/api/v1"
    STACK_SIDES: tuple[str, ...] = ("bid", "offer")

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url or settings.elexon_base_url,
            timeout_seconds=timeout_seconds or settings.elexon_timeout_seconds,
            max_in_flight=max_in_flight or settings.elexon_max_in_flight,
        )

    @staticmethod
    def stack_path(side: str, settlement_date: date, settlement_period: int) -> str:
        return (
            f"/balancing/settlement/stack/all/{side}/"
            f"{settlement_date.isoformat()}/{settlement_period}"
        )

    async def fetch(
        self, settlement_date: date, settlement_period: int
    ) -> list[SettlementRecord]:
        """Fetch bid and offer stack records for one settlement period."""
        payloads = await asyncio.gather(
            *(
                self._get_json(self.stack_path(side, settlement_date, settlement_period))
                for side in self.STACK_SIDES
            )
        )

        records: list[SettlementRecord] = []
        for side, payload in zip(self.STACK_SIDES, payloads):
            records.extend(self._parse_stack(payload, side, settlement_period))

        self.log.debug(
            "stack_fetched",
            settlement_date=str(settlement_date),
            settlement_period=settlement_period,
            records=len(records),
        )
        return records

    def _parse_stack(
        self, payload: Any, side: str, settlement_period: int
    ) -> list[SettlementRecord]:
        """Parse one stack response body into SettlementRecords.

        Raises:
            DataParsingError: If the body has no ``data`` list or an item
                lacks a unit id or volume.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise DataParsingError(
                f"{self.SOURCE_NAME}: unexpected {side} stack format for "
                f"period {settlement_period}"
            )

        parsed: list[SettlementRecord] = []
        for item in payload["data"]:
            try:
                unit_id = item.get("id") or item.get("bmUnit")
                volume = parse_numeric_value(item.get("volume"))
                if not unit_id or volume is None:
                    raise ValueError("missing id or volume")
                original_price = parse_numeric_value(item.get("originalPrice"))
                final_price = parse_numeric_value(item.get("finalPrice"))
                parsed.append(
                    SettlementRecord(
                        unit_id=str(unit_id),
                        volume=volume,
                        original_price=original_price or 0.0,
                        final_price=final_price or 0.0,
                        so_flag=parse_flag(item.get("soFlag")),
                        cadl_flag=parse_flag(item.get("cadlFlag")),
                        lead_party_name=item.get("leadPartyName"),
                    )
                )
            except (AttributeError, ValueError) as exc:
                raise DataParsingError(
                    f"{self.SOURCE_NAME}: malformed {side} stack item in "
                    f"period {settlement_period}: {exc}"
                ) from exc
        return parsed
