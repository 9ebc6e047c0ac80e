"""Type mapping from interface types to ctypes and Python declarations"""

from typing import Optional

from .errors import UnsupportedTypeError
from .types import TypeKind, TypeReference


# Name of the emitted ctypes structure carrying a buffer by value
BYTE_BUFFER = "_ByteBuffer"


class TypeMapper:
    """Maps interface types to foreign-call and host-surface declarations"""

    # Foreign-call declarations for scalar variants
    FFI_TYPES = {
        TypeKind.BOOLEAN: 'ctypes.c_int8',  # no ABI-stable native bool assumed
        TypeKind.U32: 'ctypes.c_uint32',
        TypeKind.U64: 'ctypes.c_uint64',
        TypeKind.FLOAT: 'ctypes.c_float',
        TypeKind.DOUBLE: 'ctypes.c_double',
        TypeKind.STRING: 'ctypes.c_char_p',
        TypeKind.ENUM: 'ctypes.c_int32',
    }

    # Host type annotations for scalar variants
    PY_TYPES = {
        TypeKind.BOOLEAN: 'bool',
        TypeKind.U32: 'int',
        TypeKind.U64: 'int',
        TypeKind.FLOAT: 'float',
        TypeKind.DOUBLE: 'float',
        TypeKind.STRING: 'str',
        TypeKind.BYTES: 'bytes',
    }

    # Variants passed across the boundary as a buffer by value
    BUFFER_KINDS = frozenset({TypeKind.BYTES, TypeKind.RECORD, TypeKind.OPTIONAL})

    @classmethod
    def ffi_decl(cls, type_: TypeReference) -> str:
        """Convert type to the ctypes declaration of a foreign-call argument"""
        if type_.kind in cls.FFI_TYPES:
            return cls.FFI_TYPES[type_.kind]
        if type_.kind in cls.BUFFER_KINDS:
            if type_.kind is TypeKind.OPTIONAL:
                # Fail on the innermost unsupported variant, not on the wrapper
                cls.ffi_decl(type_.inner)
            return BYTE_BUFFER
        raise UnsupportedTypeError(type_)

    @classmethod
    def ffi_return_decl(cls, type_: Optional[TypeReference]) -> str:
        """Convert return type to a ctypes restype"""
        if type_ is None:
            return 'None'
        return cls.ffi_decl(type_)

    @classmethod
    def py_decl(cls, type_: TypeReference) -> str:
        """Convert type to the Python annotation used in public signatures"""
        if type_.kind in cls.PY_TYPES:
            return cls.PY_TYPES[type_.kind]
        if type_.kind in (TypeKind.ENUM, TypeKind.RECORD):
            return type_.name
        if type_.kind is TypeKind.OPTIONAL:
            inner = cls.py_decl(type_.inner)
            if type_.inner.is_optional:
                return f'Optional[Some[{inner}]]'
            return f'Optional[{inner}]'
        raise UnsupportedTypeError(type_)

    @classmethod
    def py_return_decl(cls, type_: Optional[TypeReference]) -> str:
        """Convert return type to a Python annotation"""
        if type_ is None:
            return 'None'
        return cls.py_decl(type_)

    @classmethod
    def is_buffer(cls, type_: TypeReference) -> bool:
        """Check if type crosses the boundary as a buffer by value"""
        return type_.kind in cls.BUFFER_KINDS
