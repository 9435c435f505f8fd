"""Bulk import of the sales and client workbooks.

The sales export ("VentasPOD") has three banner rows above the header, so
the header sits on row 4. Only client code, date and client name are kept.
CSV files are accepted as well as xlsx.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from bajas.config import ImportConfig
from bajas.db.clients import add_sales, clear_sales, upsert_clients
from bajas.eligibility.dates import DateNormalizer
from bajas.errors import WorkbookFormatError
from bajas.models import Client, SaleRecord, normalize_code
from bajas.storage.snapshot import (
    CLIENT_CODE,
    CLIENT_NAME,
    ROUTE,
    SALES_CODE,
    SALES_DATE,
    SALES_NAME,
    ZONE,
    Snapshot,
    canonical_row,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """Result of a bulk import."""

    rows_read: int = 0
    imported: int = 0
    skipped: int = 0
    inserted: int = 0
    updated: int = 0
    replaced: bool = False


def read_sheet(
    path: Path,
    sheet: str | None = None,
    header_row: int = 1,
) -> list[dict[str, Any]]:
    """Read one sheet into row dicts; blank cells become None.

    Args:
        path: .xlsx/.xls or .csv file
        sheet: Sheet name (first sheet when None; ignored for CSV)
        header_row: 1-based row holding the column headers

    Raises:
        FileNotFoundError: If the file does not exist
        WorkbookFormatError: If the sheet is missing or the file is unreadable
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {path}")

    header = max(header_row - 1, 0)
    suffix = path.suffix.lower()

    try:
        if suffix == ".csv":
            df = pd.read_csv(path, header=header, encoding="utf-8-sig")
        elif suffix in (".xlsx", ".xls"):
            df = pd.read_excel(
                path,
                sheet_name=sheet if sheet is not None else 0,
                header=header,
                engine="openpyxl" if suffix == ".xlsx" else None,
            )
        else:
            raise WorkbookFormatError(f"Unsupported file format: {path.suffix}")
    except ValueError as e:
        # pandas reports a missing worksheet as ValueError
        raise WorkbookFormatError(f"Cannot read {path.name}: {e}") from e

    df.columns = [str(column).strip() for column in df.columns]
    df = df.astype(object).where(pd.notna(df), None)

    logger.info(f"Read {len(df)} rows from {path.name}")
    return df.to_dict(orient="records")


def _require_columns(rows: list[Mapping[str, Any]], required: Iterable[str], source: str) -> None:
    if not rows:
        return
    present = set(canonical_row(rows[0]))
    missing = [column for column in required if column not in present]
    if missing:
        raise WorkbookFormatError(f"{source}: missing columns {', '.join(missing)}")


def sales_from_rows(
    rows: Iterable[Mapping[str, Any]],
    normalizer: DateNormalizer | None = None,
) -> tuple[list[SaleRecord], int]:
    """Keep rows with a client code and a valid date.

    Returns:
        (sales with ``sale_date`` as date, skipped row count)
    """
    normalizer = normalizer or DateNormalizer()
    sales: list[SaleRecord] = []
    skipped = 0

    for raw in rows:
        row = canonical_row(raw)
        code = normalize_code(row.get(SALES_CODE))
        sale_date = normalizer.normalize(row.get(SALES_DATE))
        if not code or sale_date is None:
            skipped += 1
            continue
        sales.append(
            SaleRecord(client_code=code, sale_date=sale_date, client_name=row.get(SALES_NAME))
        )

    return sales, skipped


def clients_from_rows(rows: Iterable[Mapping[str, Any]]) -> tuple[list[Client], int]:
    clients: list[Client] = []
    skipped = 0
    for raw in rows:
        row = canonical_row(raw)
        code = normalize_code(row.get(CLIENT_CODE))
        if not code:
            skipped += 1
            continue
        clients.append(
            Client(code=code, name=row.get(CLIENT_NAME), route=row.get(ROUTE), zone=row.get(ZONE))
        )
    return clients, skipped


async def import_sales(
    session: AsyncSession,
    path: Path,
    config: ImportConfig | None = None,
    replace: bool = False,
) -> ImportSummary:
    """Load the sales workbook into ``sales``.

    With ``replace`` the ledger is emptied first, in the same transaction.
    """
    path = Path(path)
    config = config or ImportConfig()
    rows = read_sheet(path, config.sales_sheet, config.sales_header_row)
    _require_columns(rows, (SALES_CODE, SALES_DATE), path.name)

    sales, skipped = sales_from_rows(rows)

    if replace:
        await clear_sales(session)
    imported = await add_sales(session, sales)

    summary = ImportSummary(
        rows_read=len(rows),
        imported=imported,
        skipped=skipped,
        inserted=imported,
        replaced=replace,
    )
    logger.info(
        f"Sales import from {path.name}: {imported} imported, {skipped} skipped"
        + (" (ledger replaced)" if replace else "")
    )
    return summary


async def import_clients(
    session: AsyncSession,
    path: Path,
    config: ImportConfig | None = None,
) -> ImportSummary:
    """Upsert the client registry from a workbook (CODIGO, NOMBRE, RUTA, ZONA)."""
    path = Path(path)
    config = config or ImportConfig()
    rows = read_sheet(path, config.clients_sheet, config.clients_header_row)
    _require_columns(rows, (CLIENT_CODE, CLIENT_NAME), path.name)

    clients, skipped = clients_from_rows(rows)
    stats = await upsert_clients(session, clients)

    logger.info(
        f"Client import from {path.name}: {stats['inserted']} new, "
        f"{stats['updated']} updated, {skipped} skipped"
    )
    return ImportSummary(
        rows_read=len(rows),
        imported=len(clients),
        skipped=skipped,
        inserted=stats["inserted"],
        updated=stats["updated"],
    )


def build_snapshot(
    sales_path: Path,
    clients_path: Path | None = None,
    routes_path: Path | None = None,
    config: ImportConfig | None = None,
) -> Snapshot:
    """Load the three workbooks into a fresh snapshot (dates kept raw)."""
    config = config or ImportConfig()
    sales_rows = read_sheet(sales_path, config.sales_sheet, config.sales_header_row)
    _require_columns(sales_rows, (SALES_CODE, SALES_DATE), Path(sales_path).name)

    client_rows = (
        read_sheet(clients_path, config.clients_sheet, config.clients_header_row)
        if clients_path
        else []
    )
    route_rows = read_sheet(routes_path) if routes_path else []

    return Snapshot.from_rows(
        sales_rows=sales_rows,
        client_rows=client_rows,
        route_rows=route_rows,
    )
