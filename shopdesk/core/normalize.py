"""
Boundary normalization for stored numbers and timestamps.

Documents written by different storefront revisions hold the same field
as a number or a string, and timestamps as epoch seconds, epoch
milliseconds, ``{"seconds": ..., "nanoseconds": ...}`` mappings, ISO
strings or datetimes. Everything is converted here, once, as documents
enter the application.
"""

import math
from datetime import datetime, timezone

from .errors import DataShapeError

_MISSING = object()

# Epoch values above this are milliseconds (year 5138 in seconds)
_EPOCH_MS_THRESHOLD = 1e11


def first_present(data, *keys, default=None):
    """Value of the first key present and not None"""
    for key in keys:
        value = data.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def parse_number(value):
    if isinstance(value, bool):
        raise DataShapeError(f"Boolean is not a number: {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(',', '.'))
        except ValueError:
            raise DataShapeError(f"Not a number: {value!r}")
    else:
        raise DataShapeError(f"Not a number: {value!r}")
    if not math.isfinite(number):
        raise DataShapeError(f"Not a finite number: {value!r}")
    return number


def parse_int(value):
    number = parse_number(value)
    if not number.is_integer():
        raise DataShapeError(f"Not a whole number: {value!r}")
    return int(number)


def number_or(value, default=0.0):
    try:
        return parse_number(value)
    except DataShapeError:
        return default


def int_or(value, default=0):
    try:
        return parse_int(value)
    except DataShapeError:
        return default


def _from_epoch(seconds, value):
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise DataShapeError(f"Timestamp out of range: {value!r}")


def parse_timestamp(value):
    """Aware UTC datetime from any of the stored timestamp shapes"""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, dict):
        seconds = value.get('seconds', value.get('_seconds'))
        nanos = value.get('nanoseconds', value.get('_nanoseconds', 0)) or 0
        if seconds is None:
            raise DataShapeError(f"Timestamp mapping without seconds: {value!r}")
        return _from_epoch(parse_number(seconds) + parse_number(nanos) / 1e9, value)

    if isinstance(value, str):
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except (ValueError, DataShapeError):
            pass
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            raise DataShapeError(f"Unparseable timestamp: {value!r}")

    seconds = parse_number(value)
    if abs(seconds) > _EPOCH_MS_THRESHOLD:
        seconds = seconds / 1000.0
    return _from_epoch(seconds, value)


def timestamp_or_none(value):
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except DataShapeError:
        return None


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return default


def sort_newest_first(items, key='created_at'):
    """Stable sort by a normalized timestamp, missing timestamps last"""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(items, key=lambda item: item.get(key) or floor, reverse=True)


def utc_now_iso():
    """Timestamp in the shape ShopDesk writes"""
    return datetime.now(timezone.utc).isoformat()
