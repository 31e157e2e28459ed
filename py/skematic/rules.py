# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Rules: named boolean predicates referenced from the `rules` attribute
# of a FieldSpec, as `{'rules': {'minLength': 3, 'match': ['^a', 'i']}}`.
#
# A rule is called as `rule(value, *params)`, where `params` is the rule
# parameter spread if it is a list. A rule may raise on a value it cannot
# handle (say `minLength` on a number); the value checker counts that as
# a failure.


from typing import *
import re

from .base import (
    UNDEF,
    isempty,
    isnil,
    islist,
)
from .registry import Registry
from .typecheck import equal, type_number


R_EMAIL = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
R_ALPHA = re.compile(r'^[a-zA-Z]+$')
R_ALPHANUM = re.compile(r'^[a-zA-Z0-9]+$')

# Adapted from the @diegoperini URL validator (https://gist.github.com/729294).
R_URL = re.compile(
    r'^(?!mailto:)(?:(?:https?|ftp)://)?(?:\S+(?::\S*)?@)?'
    r'(?:(?:[1-9]\d?|1\d\d|2[01]\d|22[0-3])'
    r'(?:\.(?:1?\d{1,2}|2[0-4]\d|25[0-5])){2}'
    r'(?:\.(?:[0-9]\d?|1\d\d|2[0-4]\d|25[0-4]))'
    r'|(?:(?:[a-z\u00a1-\uffff0-9]+-?)*[a-z\u00a1-\uffff0-9]+)'
    r'(?:\.(?:[a-z\u00a1-\uffff0-9]+-?)*[a-z\u00a1-\uffff0-9]+)*'
    r'(?:\.(?:[a-z\u00a1-\uffff]{2,}))'
    r'|localhost)'
    r'(?::\d{2,5})?(?:/[^\s]*)?$',
    re.IGNORECASE)

MAX_URL_LEN = 2083

# JS style regex flags. Others ('g', 'u', 'y') have no meaning for a test.
REGEX_FLAGS = {
    'i': re.IGNORECASE,
    'm': re.MULTILINE,
    's': re.DOTALL,
}


def rule_required(val: Any = UNDEF, *_) -> bool:
    "Value is set: not undefined, None or the empty string."
    return not (isnil(val) or isempty(val))


def rule_isEmpty(val: Any = UNDEF, *_) -> bool:
    "Value is undefined or the empty string. None is NOT empty."
    return isempty(val)


def rule_notEmpty(val: Any = UNDEF, *_) -> bool:
    return not isempty(val)


def rule_eq(val: Any, match: Any) -> bool:
    return equal(val, match)


def rule_neq(val: Any, match: Any) -> bool:
    return not equal(val, match)


def rule_minLength(val: Any, limit: int) -> bool:
    return len(val) >= limit


def rule_maxLength(val: Any, limit: int) -> bool:
    return len(val) <= limit


def rule_min(val: Any, limit: Any) -> bool:
    return val >= limit


def rule_max(val: Any, limit: Any) -> bool:
    return val <= limit


def _choices(args: tuple) -> list:
    # Choices are either a single list, or spread as arguments.
    if 1 == len(args) and islist(args[0]):
        return args[0]
    return list(args)


def rule_oneOf(val: Any, *choices: Any) -> bool:
    "Value is one of the listed choices (a whitelist)."
    return any(equal(val, c) for c in _choices(choices))


def rule_notOneOf(val: Any, *choices: Any) -> bool:
    "Value is none of the listed choices (a blacklist)."
    return not rule_oneOf(val, *choices)


def rule_has(arr: Any, val: Any) -> bool:
    "The list value contains `val`."
    return any(equal(item, val) for item in arr)


def rule_hasNot(arr: Any, val: Any) -> bool:
    return not rule_has(arr, val)


def rule_isEmail(val: Any, *_) -> bool:
    return isinstance(val, str) and R_EMAIL.search(val) is not None


def rule_isUrl(val: Any, *_) -> bool:
    return isinstance(val, str) and len(val) < MAX_URL_LEN \
        and R_URL.search(val) is not None


def rule_isAlpha(val: Any, *_) -> bool:
    return isinstance(val, str) and R_ALPHA.search(val) is not None


def rule_isAlphaNum(val: Any, *_) -> bool:
    return isinstance(val, str) and R_ALPHANUM.search(val) is not None


def rule_isNumber(val: Any, *_) -> bool:
    "A real number. NaN and bools are not numbers."
    return type_number(val)


def rule_isString(val: Any, *_) -> bool:
    return isinstance(val, str)


def _regex(exp: Any, flags: str = '') -> re.Pattern:
    if isinstance(exp, re.Pattern):
        return exp
    reflags = 0
    for flag in flags or '':
        reflags |= REGEX_FLAGS.get(flag, 0)
    return re.compile(exp, reflags)


def rule_match(val: Any, exp: Any, flags: str = '') -> bool:
    """
    String value matches the regular expression `exp` (anywhere in the
    string, anchor it if you need to). `exp` is a compiled pattern, or a
    pattern string with optional JS style `flags` ("i", "m", "s").
    """
    return _regex(exp, flags).search(val) is not None


def rule_notMatch(val: Any, exp: Any, flags: str = '') -> bool:
    return not rule_match(val, exp, flags)


RULES = Registry('rules', {
    'required': rule_required,
    'isEmpty': rule_isEmpty,
    'notEmpty': rule_notEmpty,
    'eq': rule_eq,
    'neq': rule_neq,
    'minLength': rule_minLength,
    'maxLength': rule_maxLength,
    'min': rule_min,
    'max': rule_max,
    'oneOf': rule_oneOf,
    'notOneOf': rule_notOneOf,
    'has': rule_has,
    'hasNot': rule_hasNot,
    'isEmail': rule_isEmail,
    'isUrl': rule_isUrl,
    'isAlpha': rule_isAlpha,
    'isAlphaNum': rule_isAlphaNum,
    'isNumber': rule_isNumber,
    'isString': rule_isString,
    'match': rule_match,
    'notMatch': rule_notMatch,
})


__all__ = [
    'RULES',
]
