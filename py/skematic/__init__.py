# skematic init

from .base import (
    UNDEF,
    NOTHING,
    CastError,
    ModelError,
    SkematicError,
    typify,
)

from .registry import Registry

from .rules import RULES

from .typecheck import (
    TYPES,
    equal,
    is_type,
)

from .transforms import (
    FILTERS,
    convert_number,
    filter_value,
    to_boolean,
    to_date,
    to_float,
    to_integer,
    to_number,
    to_string,
)

from .skematic import (
    GENERATORS,
    MODELS,
    Skematic,
    can_compute,
    check_value,
    compute_value,
    create_from,
    format,
    id_map,
    isin,
    resolve_default,
    resolve_message,
    resolve_model,
    run_generator,
    strip,
    use_generators,
    validate,
)


__all__ = [
    'CastError',
    'FILTERS',
    'GENERATORS',
    'MODELS',
    'ModelError',
    'NOTHING',
    'RULES',
    'Registry',
    'Skematic',
    'SkematicError',
    'TYPES',
    'UNDEF',
    'can_compute',
    'check_value',
    'compute_value',
    'convert_number',
    'create_from',
    'equal',
    'filter_value',
    'format',
    'id_map',
    'is_type',
    'isin',
    'resolve_default',
    'resolve_message',
    'resolve_model',
    'run_generator',
    'strip',
    'to_boolean',
    'to_date',
    'to_float',
    'to_integer',
    'to_number',
    'to_string',
    'typify',
    'use_generators',
    'validate',
]
