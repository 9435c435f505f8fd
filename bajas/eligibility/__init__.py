"""Eligibility decision core: dates, sales history, attribution, rules."""

from bajas.eligibility.attribution import AttributionResolver
from bajas.eligibility.dates import DateNormalizer, normalize_date, serial_for
from bajas.eligibility.engine import STALE_AFTER_DAYS, EligibilityEngine, decide
from bajas.eligibility.sales_history import SalesHistory, SalesHistoryIndex

__all__ = [
    "AttributionResolver",
    "DateNormalizer",
    "EligibilityEngine",
    "STALE_AFTER_DAYS",
    "SalesHistory",
    "SalesHistoryIndex",
    "decide",
    "normalize_date",
    "serial_for",
]
