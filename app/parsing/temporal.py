"""
app/parsing/temporal.py

Best-effort conversion of free-form date strings into naive datetimes.

Order of attempts:

1. a general calendar parse (``pandas.to_datetime``),
2. a ``D/D/YYYY`` or ``D-D-YYYY`` shape read as month/day/year,
3. the same groups read as day/month/year.

Only strings carrying an explicit four-digit year are considered, and
relative words such as ``today`` are refused, so a value never depends on
when the batch runs. Strings where both leading numbers are <= 12 are
ambiguous between steps 2 and 3; :func:`is_ambiguous_day_month` lets
callers surface that. Timezone-aware inputs are converted to UTC and
returned naive so every date in a result set is comparable.
"""

from __future__ import annotations

import re
import warnings
from datetime import datetime

import pandas as pd

_NUMERIC_DATE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{4})")
_EXPLICIT_YEAR = re.compile(r"\d{4}")
_RELATIVE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def _calendar_parse(raw: str) -> datetime | None:
    with warnings.catch_warnings():
        # pandas warns when it has to fall back to dateutil per element.
        warnings.simplefilter("ignore", UserWarning)
        try:
            parsed = pd.to_datetime(raw, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed is None or pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed.to_pydatetime()


def _build(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def normalize_date(raw: str | None) -> datetime | None:
    """
    Convert *raw* into a naive datetime, or ``None`` when nothing fits.
    """

    if raw is None:
        return None
    text = str(raw).strip()
    if not text or text.lower() in _RELATIVE_WORDS:
        return None
    if _EXPLICIT_YEAR.search(text) is None:
        return None

    parsed = _calendar_parse(text)
    if parsed is not None:
        return parsed

    match = _NUMERIC_DATE.search(text)
    if match is None:
        return None
    first, second, year = (int(group) for group in match.groups())
    return _build(year, first, second) or _build(year, second, first)


def is_ambiguous_day_month(raw: str | None) -> bool:
    """
    True when *raw* is a numeric date whose first two parts could both be a month.
    """

    if not raw:
        return False
    match = _NUMERIC_DATE.search(str(raw))
    if match is None:
        return False
    first, second = int(match.group(1)), int(match.group(2))
    return first != second and 1 <= first <= 12 and 1 <= second <= 12
