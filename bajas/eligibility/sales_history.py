"""Per-client sales history over any SalesStore."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from bajas.eligibility.dates import DateNormalizer
from bajas.models import SaleRecord, normalize_code
from bajas.storage.base import SalesStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SalesHistory:
    """Sales of one client after date normalization.

    ``dates`` holds only valid dates, most recent first. ``raw_count`` counts
    every stored row, so "no sales" and "only undateable sales" stay
    distinguishable.
    """

    client_code: str
    raw_count: int
    dates: tuple[date, ...]
    latest_record: SaleRecord | None = None

    @property
    def most_recent(self) -> date | None:
        return self.dates[0] if self.dates else None

    @property
    def has_sales(self) -> bool:
        return self.raw_count > 0

    @property
    def all_undateable(self) -> bool:
        return self.raw_count > 0 and not self.dates

    @property
    def latest_client_name(self) -> str:
        """Name captured on the most recent sale (empty when unknown)."""
        return self.latest_record.client_name if self.latest_record else ""


class SalesHistoryIndex:
    """Looks up and normalizes the sales of a client.

    Reads go to the store on every call; nothing is cached here.
    """

    def __init__(self, store: SalesStore, normalizer: DateNormalizer | None = None):
        self.store = store
        self.normalizer = normalizer or DateNormalizer()

    async def history(self, client_code: str) -> SalesHistory:
        code = normalize_code(client_code)
        # Exact match on the trimmed code, whatever the adapter returned
        records = [
            record
            for record in await self.store.get_sales_by_client(code)
            if record.client_code == code
        ]

        dated: list[tuple[date, SaleRecord]] = []
        for record in records:
            sale_date = self.normalizer.normalize(record.sale_date)
            if sale_date is not None:
                dated.append((sale_date, record))

        raw_count = len(records)
        dated.sort(key=lambda pair: pair[0], reverse=True)

        named = [record for _, record in dated] + records
        latest_record = next((r for r in named if r.client_name), None)

        if raw_count and not dated:
            logger.warning(
                f"Client {code}: {raw_count} sale rows but none with a valid date"
            )

        return SalesHistory(
            client_code=code,
            raw_count=raw_count,
            dates=tuple(sale_date for sale_date, _ in dated),
            latest_record=latest_record,
        )

    async def sales_for(self, client_code: str) -> list[date]:
        """Valid sale dates for the client, most recent first."""
        return list((await self.history(client_code)).dates)

    async def most_recent(self, client_code: str) -> date | None:
        return (await self.history(client_code)).most_recent
