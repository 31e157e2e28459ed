# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Skematic base
# =============
#
# Sentinels, string constants, errors and the minor utilities shared by
# every Skematic module.
#
# Minor utilities
# - isnode, islist, ismap, isfunc: identify value kinds.
# - isnil: undefined or None.
# - isempty: undefined or the empty string.
# - getprop: safely get a property value by key.
# - items: list entries of a map or list as [key, value] pairs.
# - tolist: wrap a scalar in a list (None and undefined give []).
# - stringify: human-friendly string version of a value.
# - typify: raw type name of a value.
# - strkey: render a map key or list index as a string.
# - callwith: call a user callback, passing the context if it asks for it.


from typing import *
from datetime import date
import inspect
import json


# General strings.
S_array = 'array'
S_boolean = 'boolean'
S_date = 'date'
S_error = 'error'
S_function = 'function'
S_integer = 'integer'
S_null = 'null'
S_number = 'number'
S_object = 'object'
S_string = 'string'
S_undefined = 'undefined'
S_MT = ''

# FieldSpec attributes.
S_allowNull = 'allowNull'
S_default = 'default'
S_errors = 'errors'
S_generate = 'generate'
S_lock = 'lock'
S_model = 'model'
S_primaryKey = 'primaryKey'
S_required = 'required'
S_rules = 'rules'
S_show = 'show'
S_transform = 'transform'
S_transforms = 'transforms'
S_type = 'type'
S_write = 'write'

# Error codes. Callers match on these, do not change them.
E_required = 'required'
E_allowNull = 'allowNull'
E_wrongType = 'wrongType:'
E_unknownRule = 'unknownRule:'
E_writePermissions = 'writePermissions'
E_invalidObject = 'invalidObject'
E_invalidKey = 'invalidKey'


class _Sentinel:
    """A named singleton marker. Falsy, and survives copy and pickle."""

    __slots__ = ('_name',)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, _memo):
        return self

    def __reduce__(self):
        return self._name


# The undefined value. Distinct from None, which is null.
UNDEF = _Sentinel('UNDEF')

# Marks an optional argument that was not passed at all.
# UNDEF is a legitimate provided value, NOTHING is not.
NOTHING = _Sentinel('NOTHING')


class SkematicError(Exception):
    "Base class for all Skematic errors."


class ModelError(SkematicError, ValueError):
    """
    The model (or an option) is malformed: a non-callable transform,
    a generator op with no function, an unresolvable sub-model, or
    nesting deeper than the depth limit.
    """


class CastError(SkematicError, ValueError):
    "A value could not be converted to the requested type."


def isnode(val: Any = UNDEF) -> bool:
    "Value is a node - a map (dict) or list."
    return isinstance(val, (dict, list))


def ismap(val: Any = UNDEF) -> bool:
    "Value is a map (dict)."
    return isinstance(val, dict)


def islist(val: Any = UNDEF) -> bool:
    "Value is a list."
    return isinstance(val, list)


def isfunc(val: Any = UNDEF) -> bool:
    "Value is a function."
    return callable(val)


def isnil(val: Any = UNDEF) -> bool:
    "Value is undefined or None."
    return val is UNDEF or val is None


def isempty(val: Any = UNDEF) -> bool:
    "Value is undefined or the empty string. None is NOT empty."
    return val is UNDEF or (isinstance(val, str) and val == S_MT)


def getprop(val: Any = UNDEF, key: Any = UNDEF, alt: Any = UNDEF) -> Any:
    """
    Safely get a property of a node. Undefined arguments return `alt`.
    A key that is absent returns `alt`, but a key present with value
    None returns None.
    """
    if val is UNDEF or val is None or key is UNDEF:
        return alt

    if ismap(val):
        return val.get(key, alt)

    if islist(val):
        try:
            key = int(key)
        except (TypeError, ValueError):
            return alt
        if 0 <= key < len(val):
            return val[key]

    return alt


def items(val: Any = UNDEF) -> List[Tuple[Any, Any]]:
    "List the entries of a map, or the indexed elements of a list."
    if ismap(val):
        return list(val.items())
    if islist(val):
        return list(enumerate(val))
    return []


def tolist(val: Any = UNDEF) -> list:
    "Wrap a scalar in a list. Lists pass through. Nil values give []."
    if isnil(val):
        return []
    if islist(val):
        return val
    if isinstance(val, tuple):
        return list(val)
    return [val]


def strkey(key: Any = UNDEF) -> str:
    if key is UNDEF or key is None or isinstance(key, bool):
        return S_MT
    if isinstance(key, str):
        return key
    if isinstance(key, float):
        return str(int(key))
    return str(key)


def typify(value: Any = UNDEF) -> str:
    "The raw type name of a value."
    if value is UNDEF:
        return S_undefined
    if value is None:
        return S_null
    if isinstance(value, bool):
        return S_boolean
    if isinstance(value, (int, float)):
        return S_number
    if isinstance(value, str):
        return S_string
    if isinstance(value, list):
        return S_array
    if isinstance(value, date):
        return S_date
    if isinstance(value, BaseException):
        return S_error
    if callable(value):
        return S_function
    return S_object


def stringify(val: Any, maxlen: int = UNDEF) -> str:
    "Safely stringify a value for printing (NOT JSON!)."
    valstr = S_MT

    if val is UNDEF:
        return valstr

    if isinstance(val, str):
        valstr = val
    else:
        try:
            valstr = json.dumps(val, sort_keys=True, separators=(',', ':'), default=str)
            valstr = valstr.replace('"', '')
        except (TypeError, ValueError):
            valstr = str(val)

    if maxlen is not UNDEF and 3 < maxlen < len(valstr):
        valstr = valstr[:maxlen - 3] + '...'

    return valstr


def _required_positional(fn: Callable) -> int:
    try:
        params = inspect.signature(fn).parameters.values()
    except (ValueError, TypeError):
        return 0
    return len([p for p in params
                if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
                and p.default is p.empty])


def callwith(fn: Callable, args: list, context: Any = UNDEF) -> Any:
    """
    Call a user callback with `args`. The enclosing data (`context`) is
    appended only when the callback declares a further required
    positional parameter for it, so `fn(value)` and
    `fn(value, context)` both work.
    """
    if _required_positional(fn) > len(args):
        return fn(*args, context)
    return fn(*args)
