"""Built-in definitions every registry starts with."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from .definitions import (
    EnumTypeDefinition,
    InputTypeDefinition,
    ListTypeDefinition,
    NonNullTypeDefinition,
    ObjectTypeDefinition,
    ScalarTypeDefinition,
    TypeDefinition,
)

# Filter operators, symbol -> description
OP_LT = 'LT'
OP_LTE = 'LTE'
OP_EQ = 'EQ'
OP_GTE = 'GTE'
OP_GT = 'GT'
OP_NEQ = 'NEQ'

SEARCH_OPERATORS: Dict[str, str] = {
    OP_LT: 'Less than',
    OP_LTE: 'Less than equal',
    OP_EQ: 'Equal operator',
    OP_GTE: 'Greater than equal',
    OP_GT: 'Greater than',
    OP_NEQ: 'Not equal operator',
}

SORT_ASC = 'asc'
SORT_DESC = 'desc'

SCALAR_TYPES = {
    'Int': int,
    'Float': float,
    'Boolean': bool,
    'String': str,
    'DateTime': datetime,
}

SEARCH_OPERATOR = 'SearchOperator'
SEARCH_FILTER = 'SearchFilter'
SEARCH_FILTER_INPUT = 'SearchFilterInput'
SORTING_ORIENTATION = 'SortingOrientation'


def scalar_definitions() -> List[TypeDefinition]:
    """``X``, ``X!`` and ``[X]`` for every built-in scalar."""
    out: List[TypeDefinition] = []
    for name, python_type in SCALAR_TYPES.items():
        scalar = ScalarTypeDefinition(name, python_type)
        out.extend([scalar, NonNullTypeDefinition(scalar), ListTypeDefinition(scalar)])
    return out


def search_operator() -> EnumTypeDefinition:
    return EnumTypeDefinition(
        SEARCH_OPERATOR,
        'Search filter operator',
        {symbol: {'value': symbol, 'description': desc} for symbol, desc in SEARCH_OPERATORS.items()},
    )


def sorting_orientation() -> EnumTypeDefinition:
    return EnumTypeDefinition(
        SORTING_ORIENTATION,
        'Sorting orientation (ascending or descending).',
        {
            'ASC': {'value': SORT_ASC, 'description': 'Ascending sort'},
            'DESC': {'value': SORT_DESC, 'description': 'Descending sort'},
        },
    )


def search_filters(operator: EnumTypeDefinition, string: ScalarTypeDefinition) -> List[TypeDefinition]:
    """``SearchFilterInput``/``SearchFilter`` (``{operator, value}``) and their list forms."""
    filter_input = InputTypeDefinition(SEARCH_FILTER_INPUT, 'Search filter input')
    filter_input.add_field('operator', NonNullTypeDefinition(operator))
    filter_input.add_field('value', string)
    filter_output = ObjectTypeDefinition(SEARCH_FILTER, 'Search filter')
    filter_output.add_field('operator', NonNullTypeDefinition(operator))
    filter_output.add_field('value', string)
    return [
        filter_input,
        filter_output,
        ListTypeDefinition(filter_input),
        ListTypeDefinition(filter_output),
    ]


def builtin_definitions() -> List[TypeDefinition]:
    scalars = scalar_definitions()
    string = next(d for d in scalars if d.name == 'String')
    operator = search_operator()
    return [*scalars, operator, sorting_orientation(), *search_filters(operator, string)]  # type: ignore[arg-type]
