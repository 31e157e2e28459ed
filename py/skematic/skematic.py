# Copyright (c) 2025 Voxgig Ltd. MIT LICENSE.
#
# Skematic
# ========
#
# Format and validate in-memory JSON-like data against a declarative model.
# A model maps field keys to field specs:
#
#   {'name': {'type': 'string', 'default': 'Anon', 'rules': {'minLength': 2}},
#    'tags': {'type': 'array', 'model': {'type': 'string'}}}
#
# Main utilities
# - format: normalize data to a model (defaults, generators, transforms,
#   sub-models, scope projection). Never modifies the input.
# - validate: check data against a model, returning {valid, errors}.
# - check_value: the list of failures of a single value against a field spec.
# - create_from: build fresh data from model defaults.
#
# Minor utilities
# - resolve_default: value, or the field default if the value is empty.
# - can_compute, compute_value, run_generator: field generators.
# - resolve_message: error message for a failed rule.
# - isin: scope matching.
# - strip: remove keys by value.
# - id_map: rename an external id key to the model primary key.
# - resolve_model: look up a model referenced by string.
# - use_generators: load named generator functions.


from typing import *

import structlog

from .base import (
    UNDEF,
    NOTHING,
    ModelError,
    S_MT,
    S_allowNull,
    S_array,
    S_default,
    S_errors,
    S_generate,
    S_lock,
    S_model,
    S_object,
    S_primaryKey,
    S_required,
    S_rules,
    S_show,
    S_transform,
    S_transforms,
    S_type,
    S_write,
    E_allowNull,
    E_invalidKey,
    E_invalidObject,
    E_required,
    E_unknownRule,
    E_writePermissions,
    E_wrongType,
    callwith,
    getprop,
    isempty,
    isfunc,
    islist,
    ismap,
    isnil,
    isnode,
    items,
    stringify,
    strkey,
    tolist,
)
from .registry import Registry
from .rules import RULES, rule_required
from .transforms import FILTERS, filter_value
from .typecheck import TYPES, equal


log = structlog.get_logger(__name__)


# Named generator functions, used by `{'fn': 'name'}` generator ops.
GENERATORS = Registry('generators')

# Models referenced by string from a field `model`.
MODELS = Registry('models')

# Default limit on model nesting (catches self-referencing models).
MAX_DEPTH = 64

# Longer unknown keys are truncated in key check errors.
MAX_USER_KEY_LEN = 48

# Attributes that mark a mapping as a single field spec rather than a
# model of fields (when their value is not itself a mapping).
FIELD_ATTRS = {
    S_type, S_default, S_required, S_allowNull, S_rules, S_errors,
    S_transform, S_transforms, S_generate, S_model, S_show, S_write,
    S_lock, S_primaryKey,
}


def _opt(opts: Any, name: str, alt: Any = UNDEF) -> Any:
    val = getprop(opts, name)
    return alt if val is UNDEF else val


def _registry(opts: Any, name: str, alt: Registry) -> Registry:
    reg = _opt(opts, name, None)
    return alt if reg is None else reg


def _hasfieldattr(model: Any) -> bool:
    return any(k in FIELD_ATTRS and not ismap(v) for k, v in model.items())


def _isfieldspec(model: Any) -> bool:
    """
    A mapping with a field attribute that has a non-mapping value, or
    with only field attributes where one holds a non-empty mapping that
    is not itself field-like (`{'default': {'a': 1}}`,
    `{'rules': {'minLength': 2}}`).
    """
    if not ismap(model) or 0 == len(model):
        return False

    if _hasfieldattr(model):
        return True

    return all(k in FIELD_ATTRS for k in model) and \
        any(0 < len(v) and not _hasfieldattr(v) for v in model.values())


def _ismodel(model: Any) -> bool:
    "A mapping of field keys to field specs."
    return ismap(model) and not _isfieldspec(model)


def _checkdepth(depth: int, opts: Any) -> None:
    maxdepth = _opt(opts, 'maxdepth', MAX_DEPTH)
    if depth > maxdepth:
        raise ModelError(f"Model nesting exceeds maximum depth: {maxdepth} " +
                         "(does a sub-model refer to itself?)")


def _checkspec(spec: Any) -> None:
    transform = getprop(spec, S_transform)
    if not isnil(transform) and not isfunc(transform):
        raise ModelError('Expect .transform value to be a function(), got: ' +
                         stringify(transform, 44))


def resolve_model(ref: Any, opts: Any = None) -> Any:
    """
    Resolve a model given by string, using the `resolve` option (a
    callable or a Registry) or else the shared MODELS registry. Models
    that are not strings are returned as is.
    """
    if not isinstance(ref, str):
        return ref

    resolver = _opt(opts, 'resolve', None)

    if resolver is None:
        model = MODELS.resolve(ref)
    elif isinstance(resolver, Registry):
        model = resolver.resolve(ref)
    else:
        model = resolver(ref)

    if model is None or model is UNDEF:
        raise ModelError(f"Unknown model: {ref}")

    log.debug('model.resolve', ref=ref)
    return model


def use_generators(lib: Dict[str, Callable], replace: bool = True) -> Registry:
    "Load a library of named generator functions (replacing the current one)."
    return GENERATORS.load(lib, replace=replace)


# Default values
# ==============

def _default(val: Any, spec: Any) -> Any:
    dflt = getprop(spec, S_default)
    if dflt is UNDEF:
        return val
    return dflt if isnil(val) or isempty(val) else val


def resolve_default(val: Any, spec: Any) -> Any:
    """
    Return `val`, or the field default if `val` is empty (undefined,
    None or ''). A falsy default (False, 0, '') is still a default.

    Given a map value and a model, default each model field of a
    shallow copy of the map.
    """
    if not ismap(spec):
        return val

    if ismap(val):
        out = dict(val)
        for key, fspec in items(spec):
            if ismap(fspec) and S_default in fspec and fspec[S_default] is not UNDEF:
                out[key] = _default(out.get(key, UNDEF), fspec)
        return out

    return _default(val, spec)


# Generators
# ==========

def can_compute(spec: Any, opts: Any = None, val: Any = NOTHING) -> bool:
    """
    Should the field generator run? `val` is the provided value, if any.

    Flags of a generator spec:
    - once: only when the `once` option is set.
    - preserve: not when a value is provided.
    - require: only when a value is provided.
    """
    gen = getprop(spec, S_generate)

    if isnil(gen):
        return False

    if isfunc(gen):
        return True

    provided = val is not NOTHING

    if getprop(gen, 'once') and not _opt(opts, 'once', False):
        return False
    if provided and getprop(gen, 'preserve'):
        return False
    if getprop(gen, 'require') and not provided:
        return False

    return True


def compute_value(spec: Any,
                  opts: Any = None,
                  val: Any = NOTHING,
                  context: Any = UNDEF) -> Any:
    """
    Generate a field value if the generator can run, otherwise return
    the provided value (undefined if none). A generator given as a plain
    function is called with no arguments, or with the `context` (the
    enclosing data) if it takes one.
    """
    if not can_compute(spec, opts, val):
        return UNDEF if val is NOTHING else val

    gen = getprop(spec, S_generate)

    if isfunc(gen):
        return callwith(gen, [], context)

    return run_generator(gen,
                         bool(_opt(opts, 'once', False)),
                         val,
                         _registry(opts, 'generators', GENERATORS))


def run_generator(gen: Any,
                  runonce: bool = False,
                  val: Any = NOTHING,
                  generators: Optional[Registry] = None) -> Any:
    """
    Run the ops of a generator spec as a pipeline. An op is a function,
    or `{'fn': function-or-name, 'args': [...]}`. The provided value (if
    any) is appended to the arguments of the first op. The result of
    each op is prepended to the arguments of the next. Function
    arguments are called to get their value.
    """
    if not ismap(gen):
        raise ModelError('Generator must be a function or a map with ops, got: ' +
                         stringify(gen, 44))

    if getprop(gen, 'once') and not runonce:
        raise ModelError('Must pass `runonce` flag for `once` generators')

    generators = GENERATORS if generators is None else generators
    provided = val is not NOTHING

    ops = getprop(gen, 'ops')
    ops = ops if islist(ops) and 0 < len(ops) else [ops]

    out = UNDEF

    for i, op in enumerate(ops):
        args = []

        if isfunc(op):
            fn = op
        else:
            fn = getprop(op, 'fn')
            if not isfunc(fn):
                fn = generators.resolve(fn)
            args = list(tolist(getprop(op, 'args')))

        if not isfunc(fn):
            raise ModelError('No generator method: ' +
                             stringify(getprop(op, 'fn', op), 44))

        if 0 == i and provided:
            args.append(val)

        if 0 < i and out is not UNDEF:
            args.insert(0, out)

        args = [arg() if isfunc(arg) else arg for arg in args]

        out = fn(*args)

    return out


# Value checks
# ============

def resolve_message(errors: Any, key: str) -> str:
    """
    Message for the failed check `key`: the `errors` string itself, or
    errors[key], or errors['default'], or else just the key.
    """
    if isinstance(errors, str) and S_MT != errors:
        return errors

    if ismap(errors):
        for name in (key, S_default):
            msg = errors.get(name)
            if not isnil(msg) and S_MT != msg:
                return msg

    return key


def isin(have: Any, need: Any) -> bool:
    """
    Do the scopes you HAVE meet the scopes you NEED? Each is a string or
    a list of strings. Passes if any scope matches exactly, or if
    nothing is needed.
    """
    need = tolist(need)
    if 0 == len(need):
        return True
    return any(scope in need for scope in tolist(have))


def check_value(val: Any,
                spec: Any,
                parent: Any = None,
                opts: Any = None) -> List[str]:
    """
    Check a single value against a field spec, returning the list of
    failures (empty if the value is valid).

    Null policy:

                    required | req & allowNull | allowNull | !allowNull
        undefined     fail          fail            pass        fail
        None          fail          pass            pass        fail

    Then the type check, then each rule in turn. A rule given as a
    function is called with the value, and the enclosing data (`parent`)
    if it takes it. A rule that raises counts as failed. Finally the
    `write` scopes are checked against the `scopes` option.
    """
    if not ismap(spec):
        return []

    _checkspec(spec)

    errs = []
    errors = getprop(spec, S_errors)
    rules = getprop(spec, S_rules)
    hasrules = ismap(rules) and 0 < len(rules)
    required = bool(getprop(spec, S_required, False))
    allownull = getprop(spec, S_allowNull)

    # NOT NULL fails both ways.
    if isnil(val) and allownull is False:
        return [resolve_message(errors, E_required),
                resolve_message(errors, E_allowNull)]

    if isnil(val) and not required and not hasrules:
        return []

    if val is None and allownull and not hasrules:
        return []

    if required and not rule_required(val):
        return [resolve_message(errors, E_required)]

    vtype = getprop(spec, S_type)
    if isinstance(vtype, str) and val is not UNDEF:
        check = _registry(opts, 'types', TYPES).resolve(vtype)
        if check is not None and not check(val):
            return [E_wrongType + vtype]

    if hasrules:
        rulereg = _registry(opts, 'rules', RULES)

        for name, param in rules.items():
            userfn = isfunc(param)

            if not userfn:
                rule = rulereg.resolve(name)
                if rule is None:
                    errs.append(E_unknownRule + strkey(name))
                    continue

            try:
                if userfn:
                    valid = callwith(param, [val], parent)
                else:
                    valid = rule(val, *(param if islist(param) else [param]))
            except Exception as err:
                log.debug('rule.error', rule=name, error=repr(err))
                valid = False

            if not valid:
                errs.append(resolve_message(errors, name))

    if not _opt(opts, 'unscope', False):
        if not isin(_opt(opts, 'scopes', None), getprop(spec, S_write)):
            errs.append(E_writePermissions)

    return errs


# Format
# ======

def format(model: Any, data: Any = UNDEF, opts: Any = None) -> Any:
    """
    Format `data` to `model`, returning new data (the input is not
    modified). Undefined or None data gives data created from the model
    defaults, see `create_from`.

    Options (default):
    - defaults (True): apply field defaults.
    - generate (True): run field generators.
    - once (False): run generators flagged `once`.
    - transform (True): apply field transforms.
    - sparse (False): only process keys present in the data.
    - strict (False): remove keys not in the model.
    - unlock (False): keep provided values of `lock` fields.
    - unscope (False): ignore `show` scopes.
    - scopes (None): scope or list of scopes held by the caller.
    - strip (None): list of values to remove keys for.
    - mapIdFrom (None): external id key to rename to the primary key.
    """
    opts = {} if opts is None else opts
    model = resolve_model(model, opts)

    if isnil(data):
        return create_from(model, opts)

    out = _dive(model, data, opts, UNDEF, 0)

    mapidfrom = _opt(opts, 'mapIdFrom', None)
    if mapidfrom:
        out = id_map(model, out, mapidfrom)

    return out


def create_from(model: Any, opts: Any = None) -> Any:
    """
    Create data from the model: each field gets its default, array
    fields get an empty list, object fields with a sub-model are created
    from the sub-model. The result is then formatted with `once` set, so
    one-time generators run.
    """
    model = resolve_model(model, opts)
    onceopts = {**(opts or {}), 'once': True}

    data = _rawcreate(model, opts, 0)

    if data is UNDEF:
        return _makevalue(UNDEF, model, onceopts)

    return _dive(model, data, onceopts, UNDEF, 0)


def _rawcreate(model: Any, opts: Any, depth: int) -> Any:
    _checkdepth(depth, opts)

    if _isfieldspec(model):
        return _createfield(model, opts, depth)

    if not ismap(model):
        return {}

    data = {}

    for key, spec in model.items():
        if ismap(spec):
            val = _createfield(spec, opts, depth)
            if val is not UNDEF:
                data[key] = val

    return data


def _createfield(spec: Any, opts: Any, depth: int) -> Any:
    val = _default(UNDEF, spec)
    ftype = getprop(spec, S_type)

    if val is UNDEF and S_array == ftype:
        val = []

    # Object sub-models (untyped fields are taken as objects).
    sub = getprop(spec, S_model)
    if not isnil(sub) and ftype in (UNDEF, None, S_object):
        sub = resolve_model(sub, opts)
        if _ismodel(sub):
            val = _rawcreate(sub, opts, depth + 1)

    return val


def _makevalue(parent: Any, spec: Any, opts: Any, val: Any = NOTHING) -> Any:
    "Apply default, generator and transforms to one value."
    _checkspec(spec)

    provided = val is not NOTHING
    out = val if provided else UNDEF

    if _opt(opts, 'defaults', True) is not False:
        out = _default(out, spec)

    if _opt(opts, 'generate', True) is not False:
        if can_compute(spec, opts, out if provided else NOTHING):
            out = compute_value(spec, opts, out if provided else NOTHING, parent)

    if _opt(opts, 'transform', True) is not False:
        names = getprop(spec, S_transforms)
        if not isnil(names) and not isnil(out):
            out = filter_value(out, names, _registry(opts, 'filters', FILTERS))

        transform = getprop(spec, S_transform)
        if not isnil(transform) and not isnil(out):
            out = callwith(transform, [out], parent)

    return out


def _dive(model: Any, payload: Any, opts: Any, parent: Any, depth: int) -> Any:
    _checkdepth(depth, opts)

    model = resolve_model(model, opts)
    if not ismap(model):
        return payload

    if parent is UNDEF:
        parent = payload

    data = payload

    if ismap(payload) and _ismodel(model):
        data = dict(payload)

        if _opt(opts, 'strict', False):
            for key in [k for k in data if k not in model]:
                del data[key]

        keys = list(data.keys()) if _opt(opts, 'sparse', False) else list(model.keys())

        unlock = _opt(opts, 'unlock', False)
        unscope = _opt(opts, 'unscope', False)
        scopes = _opt(opts, 'scopes', None)

        for key in keys:
            spec = model.get(key)
            if not ismap(spec):
                continue

            if not unlock and getprop(spec, S_lock):
                data.pop(key, None)

            show = getprop(spec, S_show)
            if not unscope and not isnil(show) and not isin(scopes, show):
                data.pop(key, None)
                continue

            provided = key in data
            val = data[key] if provided else UNDEF

            if provided and (islist(val) or S_array == getprop(spec, S_type)):
                out = _dive(spec, val, opts, parent, depth + 1)
            else:
                out = _makevalue(parent, spec, opts, val if provided else NOTHING)
                out = _divesub(spec, out, opts, parent, depth)

            # Absent keys stay absent unless a value was produced.
            if provided:
                if out is not data[key]:
                    data[key] = out
            elif out is not UNDEF:
                data[key] = out

    elif islist(payload) and not isnil(getprop(model, S_model)):
        sub = resolve_model(model[S_model], opts)
        data = list(payload)

        for i, elem in enumerate(data):
            if ismap(elem) and _ismodel(sub):
                data[i] = _dive(sub, elem, opts, elem, depth + 1)
            else:
                data[i] = _makevalue(parent, sub, opts, elem)

        data = _makevalue(parent, model, opts, data)

    else:
        data = _makevalue(parent, model, opts, payload)
        data = _divesub(model, data, opts, parent, depth)

    stripvals = _opt(opts, 'strip', None)
    if not isnil(stripvals) and ismap(data):
        data = strip(stripvals, data)

    return data


def _divesub(spec: Any, val: Any, opts: Any, parent: Any, depth: int) -> Any:
    "Format a map value with the object sub-model of its field, if any."
    sub = getprop(spec, S_model)
    if not ismap(val) or isnil(sub):
        return val

    sub = resolve_model(sub, opts)
    if not _ismodel(sub):
        return val

    return _dive(sub, val, opts, parent, depth + 1)


def strip(values: Any, data: Any) -> Any:
    """
    Copy of the map `data` without the keys whose value matches one of
    `values` (the same object, or an equal scalar).
    """
    if not ismap(data):
        return data

    values = tolist(values) if not (values is None or values is UNDEF) else [values]

    def matches(val):
        return any(val is sv or (not isnode(val) and not isnode(sv) and equal(val, sv))
                   for sv in values)

    return {k: v for k, v in data.items() if not matches(v)}


def id_map(model: Any, data: Any, idfield: str) -> Any:
    """
    Rename the key `idfield` to the model primary key field, in a map or
    in each map of a list. No change if the model has no primary key, or
    if the primary key is generated.
    """
    pk = next((k for k, spec in items(model)
               if ismap(spec) and getprop(spec, S_primaryKey)), None)

    if pk is None or not isnil(getprop(model[pk], S_generate)):
        return data

    def remap(elem):
        if not ismap(elem) or idfield not in elem:
            return elem
        elem = dict(elem)
        elem[pk] = elem.pop(idfield)
        return elem

    if islist(data):
        return [remap(elem) for elem in data]

    return remap(data)


# Validate
# ========

def validate(model: Any, data: Any = UNDEF, opts: Any = None) -> Dict[str, Any]:
    """
    Validate `data` against `model`, returning `{'valid': bool, 'errors': ...}`.
    Errors are None when valid. For map data they are a map of field key
    to a list of failures (or to nested errors for sub-models, with list
    elements keyed by index). For scalar data they are a list.

    Options (default):
    - keyCheckOnly (False): only check that data keys are in the model.
    - strict (False): check keys first, then validate.
    - sparse (False): only validate keys present in the data.
    - unscope (False): ignore `write` scopes.
    - scopes (None): scope or list of scopes held by the caller.
    """
    opts = {} if opts is None else opts
    model = resolve_model(model, opts)

    if _opt(opts, 'keyCheckOnly', False):
        return _checkkeys(model, data)

    if _opt(opts, 'strict', False):
        checked = _checkkeys(model, data)
        if not checked['valid']:
            return checked

    if _opt(opts, 'sparse', False):
        return _sparse(model, data, opts, 0)

    return _validate(model, data, opts, 0)


def _result(errs: Any) -> Dict[str, Any]:
    errs = errs if errs else None
    return {'valid': errs is None, 'errors': errs}


def _checkkeys(model: Any, data: Any) -> Dict[str, Any]:
    if not ismap(data):
        return _result({'data': [E_invalidObject]})

    errs = {}
    for key in data:
        if not ismap(model) or key not in model:
            shortkey = strkey(key)
            if MAX_USER_KEY_LEN < len(shortkey):
                shortkey = shortkey[:MAX_USER_KEY_LEN - 3] + '...'
            errs[shortkey] = [E_invalidKey]

    return _result(errs)


def _validate(model: Any, data: Any, opts: Any, depth: int) -> Dict[str, Any]:
    _checkdepth(depth, opts)

    if _isfieldspec(model):
        return _result(_checkfield(model, data, None, opts, depth, _validate))

    if not ismap(data):
        return _result(check_value(data, model, None, opts))

    errs = {}

    for key, spec in items(model):
        if not ismap(spec):
            continue

        val = data.get(key, UNDEF)

        # Optional fields that are empty (after defaults) are not checked.
        required = getprop(spec, S_required) or getprop(spec, S_allowNull) is False
        if not required:
            dval = _default(val, spec)
            if isnil(dval) or isempty(dval):
                continue

        ferrs = _checkfield(spec, val, data, opts, depth, _validate)
        if ferrs:
            errs[key] = ferrs

    return _result(errs)


def _sparse(model: Any, data: Any, opts: Any, depth: int) -> Dict[str, Any]:
    _checkdepth(depth, opts)

    if not ismap(data) or _isfieldspec(model):
        return _validate(model, data, opts, depth)

    errs = {}

    for key, val in data.items():
        spec = getprop(model, key)
        if not ismap(spec):
            continue

        ferrs = _checkfield(spec, val, data, opts, depth, _sparse)
        if ferrs:
            errs[key] = ferrs

    return _result(errs)


def _checkfield(spec: Any, val: Any, data: Any, opts: Any, depth: int,
                nested: Callable) -> Any:
    "Errors of one field (a list or a map), or None."
    sub = getprop(spec, S_model)

    if isnil(sub):
        return check_value(val, spec, data, opts) or None

    sub = resolve_model(sub, opts)

    if S_array == getprop(spec, S_type) or islist(val):
        if not islist(val):
            return check_value(val, spec, data, opts) or None

        elemerrs = {}
        for idx, elem in enumerate(val):
            if ismap(elem) and _ismodel(sub):
                ferrs = nested(sub, elem, opts, depth + 1)['errors']
            else:
                ferrs = check_value(elem, sub, data, opts) or None
            if ferrs:
                elemerrs[strkey(idx)] = ferrs

        return elemerrs or None

    if ismap(val) and _ismodel(sub):
        return nested(sub, val, opts, depth + 1)['errors']

    return check_value(val, spec, data, opts) or None


class Skematic:
    """
    A model bound to default options. Options passed to `format` and
    `validate` are merged over the bound ones.
    """

    def __init__(self, model: Any, opts: Optional[Dict[str, Any]] = None) -> None:
        self.model = model
        self.opts = dict(opts or {})

    def _conf(self, opts: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {**self.opts, **opts} if opts else self.opts

    def format(self, data: Any = UNDEF, opts: Optional[Dict[str, Any]] = None) -> Any:
        return format(self.model, data, self._conf(opts))

    def validate(self, data: Any = UNDEF, opts: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return validate(self.model, data, self._conf(opts))

    def check_value(self, key: str, val: Any, parent: Any = None,
                    opts: Optional[Dict[str, Any]] = None) -> List[str]:
        "Check one value against the field `key` of the bound model."
        conf = self._conf(opts)
        spec = getprop(resolve_model(self.model, conf), key)
        return check_value(val, spec, parent, conf)
