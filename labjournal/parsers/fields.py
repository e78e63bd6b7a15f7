from datetime import date
from typing import AbstractSet, Dict, List, Optional

from labjournal.catalog.metrics import lookup_by_display_name
from labjournal.commons.logger import logger

from .base import (
    DATE_KEY,
    DEFAULT_IGNORED_KEYS,
    EVENT_KEY,
    RawFields,
    _iter_pairs,
    _trim,
    is_blank,
    parse_number,
)
from .dates import parse_date
from .models import BloodTestRecord, ParseInfo


def parse_fields(
    raw_fields: RawFields,
    today: Optional[date] = None,
    default_date: Optional[date] = None,
    strict_dates: bool = False,
    ignored_keys: AbstractSet[str] = DEFAULT_IGNORED_KEYS,
) -> ParseInfo:
    """
    Turn one lab sheet (Chinese field name -> text) into a BloodTestRecord.

    Nothing here raises: unknown field names go to ``unrecognized_keys`` and
    non-numeric metric values to ``invalid_values``. A date that cannot be read
    keeps ``default_date`` (today) unless ``strict_dates`` is set, in which case
    it is reported as an invalid value as well.
    """
    today = today or date.today()
    record_date = default_date or today
    event = ""
    values: Dict[str, float] = {}
    unrecognized: List[str] = []
    invalid: List[str] = []
    date_error: Optional[str] = None

    for raw_key, raw_value in _iter_pairs(raw_fields):
        key = _trim(raw_key)
        val = _trim(raw_value)
        if is_blank(val):
            continue

        if key == EVENT_KEY:
            event = val
        elif key == DATE_KEY:
            parsed = parse_date(val, today=today)
            if parsed is not None:
                record_date = parsed
            elif strict_dates:
                date_error = f"{key}={val}"
                invalid.append(date_error)
            else:
                logger.debug(f"Unreadable date '{val}', keeping {record_date.isoformat()}")
        elif key in ignored_keys:
            continue
        else:
            definition = lookup_by_display_name(key)
            if definition is None:
                unrecognized.append(key)
                continue
            number = parse_number(val)
            if number is None:
                invalid.append(f"{key}={val}")
            else:
                values[definition.key] = number

    record = BloodTestRecord(date=record_date, event=event, values=values)
    return ParseInfo(
        record=record,
        unrecognized_keys=unrecognized,
        invalid_values=invalid,
        date_error=date_error,
    )
