# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Filters: named value rewriting functions, applied in order by the
# `transforms` attribute of a FieldSpec (`{'transforms': ['trim', 'lowercase']}`).
#
# The type converters (toString, toNumber, toFloat, toInteger, toBoolean,
# toDate) are registered as filters too, and can be used directly.


from typing import *
from datetime import date, datetime, timezone
import json
import math
import re

import structlog

from .base import (
    UNDEF,
    CastError,
    isnil,
    islist,
    ismap,
    tolist,
)
from .registry import Registry


log = structlog.get_logger(__name__)


R_FLOAT_PREFIX = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')
R_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'


def to_string(val: Any = UNDEF) -> Any:
    """
    Convert to a string.

    - undefined -> CastError
    - None      -> None
    - bool      -> 'true' / 'false'
    - number    -> 1234 -> '1234', 1.0 -> '1'
    - dict      -> JSON
    - list      -> '1,2,three'
    - other     -> str(val)
    """
    if val is None:
        return val

    if val is UNDEF:
        raise CastError('Failed to cast to String')

    if isinstance(val, str):
        return val

    if isinstance(val, bool):
        return 'true' if val else 'false'

    if isinstance(val, float) and math.isfinite(val) and val.is_integer():
        return str(int(val))

    if ismap(val):
        try:
            return json.dumps(val, separators=(',', ':'))
        except (TypeError, ValueError) as err:
            raise CastError('Failed to cast to String') from err

    if islist(val):
        return ','.join('' if isnil(v) else to_string(v) for v in val)

    return str(val)


def _parse_number(val: Any) -> Union[int, float]:
    if isinstance(val, (int, float)):
        return val
    try:
        return int(val)
    except ValueError:
        return float(val)


def _parse_float(val: str) -> float:
    m = R_FLOAT_PREFIX.match(val)
    if m is None:
        raise ValueError(val)
    return float(m.group(1))


def _parse_int(val: Any, radix: int = 10) -> int:
    if isinstance(val, (int, float)):
        return int(val)

    s = str(val).strip().lower()
    sign = 1
    if s[:1] in ('+', '-'):
        sign = -1 if '-' == s[0] else 1
        s = s[1:]
    if 16 == radix and s.startswith('0x'):
        s = s[2:]

    valid = R_DIGITS[:radix]
    end = 0
    while end < len(s) and s[end] in valid:
        end += 1
    if 0 == end:
        raise ValueError(val)

    return sign * int(s[:end], radix)


def convert_number(val: Any = UNDEF,
                   convertor: Optional[Callable] = None,
                   radix: Optional[int] = None) -> Any:
    """
    Convert to a number with `convertor` (default: a full parse, or an
    integer parse if a `radix` is given).

    - None      -> None
    - ''        -> undefined
    - bool      -> 1 / 0
    - number    -> convertor(number)
    - string    -> parsed, or CastError
    - other     -> CastError
    """
    if val is None:
        return val

    if isinstance(val, str) and '' == val:
        return UNDEF

    if isinstance(val, bool):
        return 1 if val else 0

    if convertor is None:
        convertor = _parse_number if radix is None else _parse_int

    if isinstance(val, (int, float, str)):
        try:
            out = convertor(val, radix) if radix is not None else convertor(val)
        except (ValueError, OverflowError) as err:
            raise CastError('Failed to cast to Number') from err

        if isinstance(out, (int, float)) and not math.isnan(out):
            return out

    raise CastError('Failed to cast to Number')


def to_number(val: Any = UNDEF) -> Any:
    return convert_number(val, _parse_number)


def to_float(val: Any = UNDEF) -> Any:
    "Convert to a float. A numeric prefix is enough: '12.5kg' -> 12.5."
    return convert_number(val, lambda v: float(v) if not isinstance(v, str) else _parse_float(v))


def to_integer(val: Any = UNDEF, radix: int = 10) -> Any:
    "Convert to an int, truncating. Strings are read in base `radix`."
    return convert_number(val, _parse_int, radix)


def to_boolean(val: Any = UNDEF) -> Any:
    """
    Convert to a bool. None stays None, the strings '0' and 'false'
    are False, 'true' is True, everything else by truthiness.
    """
    if val is None:
        return val
    if isinstance(val, str):
        if val in ('0', 'false'):
            return False
        if 'true' == val:
            return True
    return bool(val)


def _isodate(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f"{dt.microsecond // 1000:03d}Z"


def to_date(val: Any = UNDEF) -> Any:
    """
    Convert to an ISO 8601 date string (UTC, millisecond precision).

    - undefined, list, bool -> CastError
    - None, ''              -> None
    - date/datetime         -> ISO string
    - number                -> milliseconds since the epoch
    - string                -> numeric milliseconds, or an ISO date
    """
    if val is UNDEF or islist(val) or isinstance(val, bool):
        raise CastError('Failed to cast to Date')

    if val is None or (isinstance(val, str) and '' == val):
        return None

    if isinstance(val, datetime):
        return _isodate(val)

    if isinstance(val, date):
        return _isodate(datetime(val.year, val.month, val.day))

    try:
        if isinstance(val, str):
            try:
                val = float(val)
            except ValueError:
                return _isodate(datetime.fromisoformat(val.strip().replace('Z', '+00:00')))

        if isinstance(val, (int, float)):
            return _isodate(datetime.fromtimestamp(val / 1000, tz=timezone.utc))

    except (ValueError, OverflowError, OSError) as err:
        raise CastError('Failed to cast to Date') from err

    raise CastError('Failed to cast to Date')


def filter_trim(val: str) -> str:
    return val.strip()


def filter_nowhite(val: str) -> str:
    return val.replace(' ', '')


def filter_uppercase(val: str) -> str:
    return val.upper()


def filter_lowercase(val: str) -> str:
    return val.lower()


FILTERS = Registry('filters', {
    'trim': filter_trim,
    'nowhite': filter_nowhite,
    'uppercase': filter_uppercase,
    'lowercase': filter_lowercase,
    'toString': to_string,
    'toNumber': to_number,
    'toFloat': to_float,
    'toInteger': to_integer,
    'toBoolean': to_boolean,
    'toDate': to_date,
})


def filter_value(val: Any, names: Any, filters: Optional[Registry] = None) -> Any:
    """
    Apply the named filters to `val`, in order. Nil values are not
    filtered. An unknown name is logged and skipped. Errors raised by a
    filter propagate.
    """
    if isnil(val):
        return val

    filters = FILTERS if filters is None else filters

    for name in tolist(names):
        fn = filters.resolve(name)
        if fn is None:
            log.warning('filter.unknown', name=name, available=filters.available())
            continue
        val = fn(val)

    return val


def add(name: str, fn: Callable) -> Callable:
    "Register a named filter in the shared registry."
    return FILTERS.register(name, fn)


def available() -> List[str]:
    "Names of all the shared filters."
    return FILTERS.available()


__all__ = [
    'FILTERS',
    'add',
    'available',
    'convert_number',
    'filter_value',
    'to_boolean',
    'to_date',
    'to_float',
    'to_integer',
    'to_number',
    'to_string',
]
