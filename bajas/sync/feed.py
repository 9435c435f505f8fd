"""Route planning feed acquisition.

The planning sheet is a Google Sheet shared as "anyone with the link"; its
CSV export is fetched over HTTP. When no URL is configured, or the fetch
fails, a local CSV copy is read instead.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Any

import httpx
import pandas as pd

from bajas.config import SyncConfig
from bajas.errors import FeedUnavailableError
from bajas.sync.types import FeedRecord

logger = logging.getLogger(__name__)

_SHEET_ID = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_GID = re.compile(r"[#&?]gid=(\d+)")

EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={gid}"


def sheet_export_url(url: str) -> str:
    """Turn a Google Sheets share/edit URL into its CSV export URL.

    Raises:
        ValueError: If no spreadsheet id can be found in ``url``
    """
    match = _SHEET_ID.search(url)
    if match is None:
        raise ValueError(f"Not a Google Sheets URL: {url}")

    gid_match = _GID.search(url)
    gid = gid_match.group(1) if gid_match else "0"
    return EXPORT_URL.format(sheet_id=match.group(1), gid=gid)


def parse_csv(text: str) -> list[dict[str, str]]:
    """Parse CSV text into row dicts with trimmed headers and values.

    A leading byte-order mark is ignored and fully blank rows are dropped.
    """
    text = text.lstrip("\ufeff")
    if not text.strip():
        return []

    df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    df.columns = [str(column).strip() for column in df.columns]
    df = df.apply(lambda column: column.str.strip())

    rows = df.to_dict(orient="records")
    return [row for row in rows if any(value for value in row.values())]


class PlanningFeed:
    """Reads planning rows from the remote sheet, falling back to a local CSV."""

    def __init__(
        self,
        sheet_url: str | None = None,
        fallback_csv: Path | None = None,
        timeout: float = 10.0,
        user_agent: str = "Mozilla/5.0 (compatible; SistemaBajas/1.0)",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.sheet_url = sheet_url
        self.fallback_csv = fallback_csv
        self.timeout = timeout
        self.user_agent = user_agent
        self.transport = transport

    @classmethod
    def from_config(cls, config: SyncConfig) -> PlanningFeed:
        return cls(
            sheet_url=config.sheet_url,
            fallback_csv=config.fallback_csv_path,
            timeout=config.http_timeout_seconds,
            user_agent=config.user_agent,
        )

    async def fetch_remote(self) -> list[dict[str, Any]]:
        """Download and parse the sheet's CSV export.

        Raises:
            httpx.HTTPError: On network failure or non-2xx status
            ValueError: If the sheet URL is malformed
        """
        if not self.sheet_url:
            raise ValueError("No planning sheet URL configured")

        url = sheet_export_url(self.sheet_url)
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()

        rows = parse_csv(response.text)
        logger.info(f"Fetched {len(rows)} planning rows from the remote sheet")
        return rows

    def read_fallback(self) -> list[dict[str, Any]]:
        """Read the local CSV copy.

        Raises:
            FileNotFoundError: If no fallback file is configured or it is missing
        """
        if self.fallback_csv is None or not self.fallback_csv.exists():
            raise FileNotFoundError(f"Planning fallback CSV not found: {self.fallback_csv}")

        rows = parse_csv(self.fallback_csv.read_text(encoding="utf-8-sig"))
        logger.info(f"Read {len(rows)} planning rows from {self.fallback_csv}")
        return rows

    async def fetch_rows(self) -> list[dict[str, Any]]:
        """Remote sheet first, then the local CSV.

        Raises:
            FeedUnavailableError: If neither source can be read
        """
        remote_error: Exception | None = None

        if self.sheet_url:
            try:
                return await self.fetch_remote()
            except (httpx.HTTPError, ValueError) as e:
                remote_error = e
                logger.warning(f"Planning sheet unreachable, using local CSV: {e}")

        try:
            return self.read_fallback()
        except (OSError, ValueError) as e:
            detail = f"remote: {remote_error}; " if remote_error else ""
            raise FeedUnavailableError(
                f"No planning data available ({detail}local: {e})"
            ) from e

    async def fetch(self) -> list[FeedRecord]:
        """Fetch and normalize the planning rows."""
        return [FeedRecord.from_raw(row) for row in await self.fetch_rows()]
