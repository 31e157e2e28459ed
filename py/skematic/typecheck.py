# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Type checks: named predicates answering "is this value of type T",
# used by the `type` attribute of a FieldSpec. Also deep equality.


from typing import *
from datetime import date
import math

from .base import (
    UNDEF,
    ModelError,
    islist,
    ismap,
    typify,
)
from .registry import Registry


def type_string(val: Any) -> bool:
    return isinstance(val, str)


def type_number(val: Any) -> bool:
    "Ints and floats, but not bool, and not NaN."
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return False
    return not (isinstance(val, float) and math.isnan(val))


def type_integer(val: Any) -> bool:
    "Whole numbers. A float with no fractional part counts."
    if not type_number(val):
        return False
    if isinstance(val, float):
        return math.isfinite(val) and val.is_integer()
    return True


def type_array(val: Any) -> bool:
    return islist(val)


def type_boolean(val: Any) -> bool:
    return isinstance(val, bool)


def type_object(val: Any) -> bool:
    return ismap(val)


def type_date(val: Any) -> bool:
    return isinstance(val, date)


def type_function(val: Any) -> bool:
    return callable(val)


def type_undefined(val: Any) -> bool:
    return val is UNDEF


def type_null(val: Any) -> bool:
    return val is None


def type_error(val: Any) -> bool:
    return isinstance(val, BaseException)


TYPES = Registry('types', {
    'string': type_string,
    'integer': type_integer,
    'number': type_number,
    'array': type_array,
    'boolean': type_boolean,
    'object': type_object,
    'date': type_date,
    'function': type_function,
    'undefined': type_undefined,
    'null': type_null,
    'error': type_error,
})


def is_type(name: str, val: Any = UNDEF, types: Optional[Registry] = None) -> bool:
    """
    Check `val` against the named type. Raises ModelError for a name
    that is not registered; the value checker treats unknown names as
    a pass before ever calling this.
    """
    check = (TYPES if types is None else types).resolve(name)
    if check is None:
        raise ModelError(f"Unknown type: {name}")
    return bool(check(val))


def equal(a: Any, b: Any) -> bool:
    "Deep structural equality. Bools never equal numbers."
    if a is b:
        return True

    if islist(a):
        if not islist(b) or len(a) != len(b):
            return False
        return all(equal(x, y) for x, y in zip(a, b))

    if ismap(a):
        if not ismap(b) or len(a) != len(b):
            return False
        return all(k in b and equal(v, b[k]) for k, v in a.items())

    if isinstance(a, bool) or isinstance(b, bool):
        return False

    if typify(a) != typify(b):
        return False

    return a == b


__all__ = [
    'TYPES',
    'equal',
    'is_type',
    'typify',
]
