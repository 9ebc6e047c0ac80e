"""Lowering/Lifting Engine - host values to foreign-call values and back"""

from . import buffer_codec
from .errors import UnsupportedTypeError
from .types import TypeKind, TypeReference


# Scalars passed through unchanged in both directions
IDENTITY_KINDS = frozenset({TypeKind.U32, TypeKind.U64, TypeKind.FLOAT, TypeKind.DOUBLE})


def lower_expr(value: str, type_: TypeReference) -> str:
    """Expression converting host value `value` into its foreign-call form"""
    if type_.kind in IDENTITY_KINDS:
        return value
    if type_.kind is TypeKind.BOOLEAN:
        return f'(1 if {value} else 0)'
    if type_.kind is TypeKind.STRING:
        return f'_lower_string({value})'
    if type_.kind is TypeKind.ENUM:
        return f'{value}.value'
    if type_.kind in (TypeKind.BYTES, TypeKind.RECORD, TypeKind.OPTIONAL):
        size = buffer_codec.size_fn(type_)
        write = buffer_codec.write_fn(type_)
        return f'_lower_buffer({value}, {size}, {write})'
    raise UnsupportedTypeError(type_)


def lift_expr(value: str, type_: TypeReference) -> str:
    """Expression converting foreign-call result `value` into a host value"""
    if type_.kind in IDENTITY_KINDS:
        return value
    if type_.kind is TypeKind.BOOLEAN:
        return f'({value} != 0)'
    if type_.kind is TypeKind.STRING:
        return f'_lift_string({value})'
    if type_.kind is TypeKind.ENUM:
        return f'{type_.name}._from_ordinal({value})'
    if type_.kind in (TypeKind.BYTES, TypeKind.RECORD, TypeKind.OPTIONAL):
        return f'_lift_buffer({value}, {buffer_codec.read_fn(type_)})'
    raise UnsupportedTypeError(type_)
