from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from dateutil import parser

from ..config import CONFIG, DateConfig

RE_NUMERIC_DATE = re.compile(r"\d+(?:[-/.]\d+)*")
_SENTINEL_DEFAULTS = (dt.datetime(2000, 1, 1), dt.datetime(2001, 2, 2))


def normalize_name(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", str(value).strip())


def normalize_passport_number(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", "", str(value).strip()).upper()


def parse_strict_date(value: str, dates: Optional[DateConfig] = None) -> Optional[dt.date]:
    """Parse a date only if it is in the configured layout and exists on the calendar."""
    dates = dates or CONFIG.dates
    if not re.fullmatch(dates.pattern, value):
        return None
    try:
        return dt.datetime.strptime(value, dates.strftime).date()
    except ValueError:
        return None


def normalize_date(value: Optional[str], dates: Optional[DateConfig] = None) -> str:
    """Coerce a model-supplied date into the configured layout.

    Values already in the layout are returned untouched. So are all-digit
    values such as "1990-13-04" or "1990": guessing which part is the day would
    hide the error. Text dates like "02 JAN 1990" are parsed with dateutil, but
    only when day, month and year are all spelled out; otherwise the raw value
    is returned so validation can report it.
    """
    dates = dates or CONFIG.dates
    if not value:
        return ""
    raw = str(value).strip()
    if parse_strict_date(raw, dates) or RE_NUMERIC_DATE.fullmatch(raw):
        return raw
    dayfirst = dates.convention != "us"
    yearfirst = dates.convention == "iso"
    try:
        # A part missing from the text is filled from `default`, so two
        # different defaults disagree exactly when something was missing.
        parsed = [
            parser.parse(raw, default=default, dayfirst=dayfirst, yearfirst=yearfirst)
            for default in _SENTINEL_DEFAULTS
        ]
    except (ValueError, OverflowError):
        return raw
    if parsed[0].date() != parsed[1].date():
        return raw
    return parsed[0].date().strftime(dates.strftime)
