"""Data types for the interface model"""

import enum
from dataclasses import dataclass
from typing import Iterator, Optional


class TypeKind(enum.Enum):
    """Closed set of type variants understood by the generator"""
    BOOLEAN = "Boolean"
    U32 = "U32"
    U64 = "U64"
    FLOAT = "Float"
    DOUBLE = "Double"
    STRING = "String"
    BYTES = "Bytes"
    ENUM = "Enum"
    RECORD = "Record"
    OPTIONAL = "Optional"
    OBJECT = "Object"


# Variants that refer to a definition by name
NAMED_KINDS = frozenset({TypeKind.ENUM, TypeKind.RECORD, TypeKind.OBJECT})


@dataclass(frozen=True)
class TypeReference:
    """Reference to a type, possibly nested"""
    kind: TypeKind
    name: Optional[str] = None
    inner: Optional["TypeReference"] = None

    def __post_init__(self):
        if self.kind in NAMED_KINDS and not self.name:
            raise ValueError(f"{self.kind.value} type reference needs a name")
        if self.kind is TypeKind.OPTIONAL and self.inner is None:
            raise ValueError("Optional type reference needs an inner type")

    def __str__(self) -> str:
        if self.kind is TypeKind.OPTIONAL:
            return f"Optional<{self.inner}>"
        if self.kind in NAMED_KINDS:
            return f"{self.kind.value}({self.name})"
        return self.kind.value

    @property
    def is_optional(self) -> bool:
        return self.kind is TypeKind.OPTIONAL


BOOLEAN = TypeReference(TypeKind.BOOLEAN)
U32 = TypeReference(TypeKind.U32)
U64 = TypeReference(TypeKind.U64)
FLOAT = TypeReference(TypeKind.FLOAT)
DOUBLE = TypeReference(TypeKind.DOUBLE)
STRING = TypeReference(TypeKind.STRING)
BYTES = TypeReference(TypeKind.BYTES)


def enum_of(name: str) -> TypeReference:
    return TypeReference(TypeKind.ENUM, name=name)


def record_of(name: str) -> TypeReference:
    return TypeReference(TypeKind.RECORD, name=name)


def object_of(name: str) -> TypeReference:
    return TypeReference(TypeKind.OBJECT, name=name)


def optional_of(inner: TypeReference) -> TypeReference:
    return TypeReference(TypeKind.OPTIONAL, inner=inner)


@dataclass(frozen=True)
class EnumDefinition:
    """Enum definition; value order is the ordinal encoding"""
    name: str
    values: tuple[str, ...] = ()


@dataclass(frozen=True)
class Field:
    """Record field"""
    name: str
    type: TypeReference


@dataclass(frozen=True)
class RecordDefinition:
    """Record definition"""
    name: str
    fields: tuple[Field, ...] = ()


@dataclass(frozen=True)
class Argument:
    """Function or foreign-call argument"""
    name: str
    type: TypeReference


@dataclass(frozen=True)
class FunctionDefinition:
    """Public function exposed by the native component"""
    name: str
    arguments: tuple[Argument, ...] = ()
    return_type: Optional[TypeReference] = None


@dataclass(frozen=True)
class ObjectDefinition:
    """Object definition (not supported by the generator yet)"""
    name: str


@dataclass(frozen=True)
class FFIFunction:
    """Native entry point as seen across the foreign-call boundary"""
    name: str
    arguments: tuple[Argument, ...] = ()
    return_type: Optional[TypeReference] = None


@dataclass(frozen=True)
class InterfaceModel:
    """Complete interface description handed to the generator"""
    namespace: str
    enums: tuple[EnumDefinition, ...] = ()
    records: tuple[RecordDefinition, ...] = ()
    functions: tuple[FunctionDefinition, ...] = ()
    objects: tuple[ObjectDefinition, ...] = ()

    def ffi_function(self, func: FunctionDefinition) -> FFIFunction:
        """Foreign call backing a public function"""
        return FFIFunction(
            name=f"{self.namespace}_{func.name}",
            arguments=func.arguments,
            return_type=func.return_type,
        )

    def ffi_bytebuffer_alloc(self) -> FFIFunction:
        """Native entry point allocating a buffer of a given size"""
        return FFIFunction(
            name=f"{self.namespace}_bytebuffer_alloc",
            arguments=(Argument("size", U32),),
            return_type=BYTES,
        )

    def ffi_bytebuffer_free(self) -> FFIFunction:
        """Native entry point releasing a buffer"""
        return FFIFunction(
            name=f"{self.namespace}_bytebuffer_free",
            arguments=(Argument("buf", BYTES),),
        )

    def iter_ffi_function_definitions(self) -> Iterator[FFIFunction]:
        yield self.ffi_bytebuffer_alloc()
        yield self.ffi_bytebuffer_free()
        for func in self.functions:
            yield self.ffi_function(func)
