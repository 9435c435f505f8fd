"""Sale date normalization.

Sales arrive as native dates (relational store), spreadsheet serial numbers
(xlsx snapshots) or strings (CSV exports). Everything is reduced to a
``datetime.date`` or ``None``.

Spreadsheet serials follow the 1900 date system: serial 1 is 1900-01-01 and
the tool counts a non-existent 1900-02-29, so for every serial from 61 on the
calendar date is ``1900-01-01 + (serial - 2) days`` (equivalently, days since
1899-12-30). Serial 44927 is 2023-01-01 and 45778 is 2025-05-01.
"""

from __future__ import annotations

import logging
import math
import numbers
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

logger = logging.getLogger(__name__)

SERIAL_EPOCH = date(1900, 1, 1)
SERIAL_OFFSET_DAYS = 2
MIN_PLAUSIBLE_YEAR = 2000

_TEXT_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet serial to a calendar date (fractional part is time of day).

    Raises:
        OverflowError: If the serial falls outside the representable date range
        ValueError: If the serial is NaN
    """
    days = math.floor(serial)
    return SERIAL_EPOCH + timedelta(days=days - SERIAL_OFFSET_DAYS)


def serial_for(value: date) -> int:
    """Inverse of serial_to_date."""
    return (value - SERIAL_EPOCH).days + SERIAL_OFFSET_DAYS


class DateNormalizer:
    """Turns heterogeneous raw date values into calendar dates.

    ``normalize`` never raises: anything it cannot read, and anything that
    lands before ``min_year``, comes back as ``None``.
    """

    def __init__(self, min_year: int = MIN_PLAUSIBLE_YEAR):
        self.min_year = min_year

    def normalize(self, value: Any) -> date | None:
        try:
            parsed = self._parse(value)
        except (ArithmeticError, ValueError, TypeError) as exc:
            logger.debug("Unreadable sale date %r: %s", value, exc)
            return None

        if parsed is None:
            return None

        if parsed.year < self.min_year:
            logger.warning(
                "Implausible sale date %s (raw value %r), year before %d",
                parsed.isoformat(),
                value,
                self.min_year,
            )
            return None

        return parsed

    def _parse(self, value: Any) -> date | None:
        if value is None or isinstance(value, bool):
            return None

        # NaN and NaT compare unequal to themselves
        if value != value:
            return None

        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        if isinstance(value, (numbers.Real, Decimal)):
            return serial_to_date(float(value))

        if isinstance(value, str):
            return self._parse_text(value.strip())

        return None

    def _parse_text(self, text: str) -> date | None:
        if not text:
            return None

        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass

        for fmt in _TEXT_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        logger.debug("Sale date string not recognised: %r", text)
        return None


_default = DateNormalizer()


def normalize_date(value: Any) -> date | None:
    """Convenience function: normalize with the default plausibility guard."""
    return _default.normalize(value)
