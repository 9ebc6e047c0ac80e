"""
FFI Binding Generator Package

Takes a description of a native component's public surface and generates a
Python module calling into it through ctypes:
  1. Foreign-call declarations for every native entry point
  2. Enum, record and function wrappers for the public surface
  3. The buffer protocol shared with the native side for composite values
"""

from .types import (
    TypeKind, TypeReference,
    BOOLEAN, U32, U64, FLOAT, DOUBLE, STRING, BYTES,
    enum_of, record_of, object_of, optional_of,
    EnumDefinition, Field, RecordDefinition, Argument, FunctionDefinition,
    ObjectDefinition, FFIFunction, InterfaceModel,
)
from .errors import FFIBindError, UnsupportedTypeError, GenerationError, IDLSyntaxError
from .config import Config
from .parser import IDLParser
from .type_mapper import TypeMapper
from .python_generator import PythonGenerator

__all__ = [
    'TypeKind', 'TypeReference',
    'BOOLEAN', 'U32', 'U64', 'FLOAT', 'DOUBLE', 'STRING', 'BYTES',
    'enum_of', 'record_of', 'object_of', 'optional_of',
    'EnumDefinition', 'Field', 'RecordDefinition', 'Argument', 'FunctionDefinition',
    'ObjectDefinition', 'FFIFunction', 'InterfaceModel',
    'FFIBindError', 'UnsupportedTypeError', 'GenerationError', 'IDLSyntaxError',
    'Config', 'IDLParser', 'TypeMapper', 'PythonGenerator',
]
