"""Python Generator - generates Python bindings using ctypes for shared library access"""

import logging
from contextlib import contextmanager
from typing import Optional

from . import buffer_codec
from .config import Config
from .errors import GenerationError, UnsupportedTypeError
from .lowering import lift_expr, lower_expr
from .type_mapper import TypeMapper
from .types import (
    EnumDefinition, FFIFunction, FunctionDefinition, InterfaceModel,
    RecordDefinition, TypeReference,
)

logger = logging.getLogger(__name__)

BANNER = "# " + "═" * 62


def _section(title: str) -> list[str]:
    return [BANNER, f"# {title}", BANNER, "", ""]


@contextmanager
def _declared_by(item: str):
    """Attribute unsupported types raised in the block to `item`"""
    try:
        yield
    except UnsupportedTypeError as e:
        if e.item is not None:
            raise
        raise e.for_item(item) from None


class PythonGenerator:
    """Generates a Python module calling the native component through ctypes"""

    def __init__(self, model: InterfaceModel, config: Optional[Config] = None):
        self.model = model
        self.config = config or Config.from_model(model)

    def generate(self) -> str:
        """Generate the complete Python module.

        Every item is rendered on its own; if any of them references an
        unsupported type, all such failures are reported together and no
        output is produced.
        """
        failures: list[UnsupportedTypeError] = []
        boundary_types: list[TypeReference] = []

        enums: list[str] = []
        for enum in self.model.enums:
            enums.extend(self.render_enum(enum))

        records: list[str] = []
        for record in self.model.records:
            try:
                records.extend(self.render_record(record))
            except UnsupportedTypeError as e:
                failures.append(e)
                continue
            boundary_types.extend(f.type for f in record.fields)

        functions: list[str] = []
        for func in self.model.functions:
            try:
                functions.extend(self.render_function(func))
            except UnsupportedTypeError as e:
                failures.append(e)
                continue
            boundary_types.extend(a.type for a in func.arguments)
            if func.return_type is not None:
                boundary_types.append(func.return_type)

        if failures:
            for failure in failures:
                logger.error("%s", failure)
            raise GenerationError(failures)

        lines = self._preamble()
        lines.extend(_section("Buffer Protocol"))
        lines.extend(buffer_codec.RUNTIME_SOURCE.splitlines())
        lines.extend(buffer_codec.render_buffer_entry_points(self.model))
        lines.extend(_section("Library Loading"))
        lines.extend(self._library_loading())
        lines.extend(_section("Foreign-Call Declarations"))
        lines.extend(self._ffi_block())

        if enums:
            lines.extend(_section("Enum Definitions"))
            lines.extend(enums)
        if records:
            lines.extend(_section("Record Definitions"))
            lines.extend(records)

        optionals = buffer_codec.collect_optional_types(boundary_types)
        if optionals:
            lines.extend(_section("Optional Codecs"))
            for type_ in optionals:
                lines.extend(buffer_codec.render_optional_helpers(type_))

        if functions:
            lines.extend(_section("Functions"))
            lines.extend(functions)

        for obj in self.model.objects:
            logger.warning("skipping object %s: objects are not supported", obj.name)
            lines.append(f"# object {obj.name} is not supported by these bindings")
            lines.append("")

        while lines and not lines[-1]:
            lines.pop()
        lines.append("")
        return "\n".join(lines)

    def _preamble(self) -> list[str]:
        return [
            '"""',
            f"AUTO-GENERATED Python bindings for {self.model.namespace}",
            self.config.header,
            '"""',
            "",
            "from __future__ import annotations",
            "",
            "import ctypes",
            "import enum",
            "import logging",
            "import os",
            "import struct",
            "import sys",
            "import threading",
            "from dataclasses import dataclass",
            "from typing import Generic, Optional, TypeVar",
            "",
            "",
        ]

    def _library_loading(self) -> list[str]:
        lib = self.config.library_name
        env_var = f"{self.model.namespace.upper()}_LIBRARY_PATH"
        return [
            "_library = None",
            "_library_lock = threading.Lock()",
            "",
            "",
            "def _load_library(path=None):",
            '    """Load the native library"""',
            "    if path is None:",
            f'        path = os.environ.get("{env_var}")',
            "    if path is not None:",
            "        return ctypes.CDLL(path)",
            "",
            "    if sys.platform == 'win32':",
            f'        lib_name = "{lib}.dll"',
            "    elif sys.platform == 'darwin':",
            f'        lib_name = "lib{lib}.dylib"',
            "    else:",
            f'        lib_name = "lib{lib}.so"',
            "",
            "    this_dir = os.path.dirname(os.path.abspath(__file__))",
            "    for directory in (this_dir, os.getcwd()):",
            "        lib_path = os.path.join(directory, lib_name)",
            "        if os.path.exists(lib_path):",
            "            return ctypes.CDLL(lib_path)",
            "",
            "    # Try system library path",
            "    return ctypes.CDLL(lib_name)",
            "",
            "",
            "def initialize(path=None, *, library=None):",
            '    """Bind the native library for the rest of the process.',
            "",
            "    Called implicitly by the first foreign call. The handle is created",
            "    once and never replaced; `library` supplies an already declared one.",
            '    """',
            "    global _library",
            "    with _library_lock:",
            "        if _library is None:",
            "            if library is None:",
            "                library = _declare_ffi(_load_library(path))",
            "            _library = library",
            "        elif path is not None or (library is not None and library is not _library):",
            '            raise RuntimeError("native library is already initialized")',
            "        return _library",
            "",
            "",
            "def _lib():",
            "    library = _library",
            "    if library is None:",
            "        library = initialize()",
            "    return library",
            "",
            "",
        ]

    def _ffi_block(self) -> list[str]:
        lines = [
            "def _declare_ffi(lib):",
            '    """Declare argument and return types of every native entry point"""',
        ]
        for ffi in self.model.iter_ffi_function_definitions():
            lines.extend(self.render_ffi_declaration(ffi))
        lines.extend(["    return lib", "", ""])
        return lines

    def render_ffi_declaration(self, ffi: FFIFunction) -> list[str]:
        """Generate the ctypes declaration of one native entry point"""
        arg_types = []
        for arg in ffi.arguments:
            with _declared_by(f"foreign call '{ffi.name}' argument '{arg.name}'"):
                arg_types.append(TypeMapper.ffi_decl(arg.type))
        with _declared_by(f"foreign call '{ffi.name}' return type"):
            ret_type = TypeMapper.ffi_return_decl(ffi.return_type)
        return [
            f"    lib.{ffi.name}.argtypes = [{', '.join(arg_types)}]",
            f"    lib.{ffi.name}.restype = {ret_type}",
        ]

    def render_enum(self, enum: EnumDefinition) -> list[str]:
        """Generate an IntEnum whose values are the 1-based ordinals"""
        logger.debug("rendering enum %s", enum.name)
        lines = [
            f"class {enum.name}(enum.IntEnum):",
            f'    """Enum {enum.name}"""',
        ]
        for ordinal, value in enumerate(enum.values, start=1):
            lines.append(f"    {value} = {ordinal}")
        lines.extend([
            "",
            "    @classmethod",
            f"    def _from_ordinal(cls, ordinal: int) -> {enum.name}:",
            "        try:",
            "            return cls(ordinal)",
            "        except ValueError:",
            "            raise InternalError(",
            f'                f"invalid ordinal {{ordinal}} for enum {enum.name}, something is very wrong"',
            "            ) from None",
            "",
            "",
        ])
        return lines

    def render_record(self, record: RecordDefinition) -> list[str]:
        """Generate a dataclass with its buffer serializer and deserializer"""
        logger.debug("rendering record %s", record.name)
        annotations, sizes, writes, reads = [], [], [], []
        for f in record.fields:
            with _declared_by(f"record '{record.name}' field '{f.name}'"):
                annotations.append(f"    {f.name}: {TypeMapper.py_decl(f.type)}")
                sizes.append(buffer_codec.size_expr(f"self.{f.name}", f.type))
                writes.append(f"        {buffer_codec.write_stmt(f'self.{f.name}', f.type, 'buf')}")
                reads.append(f"            {f.name}={buffer_codec.read_expr('buf', f.type)},")

        lines = [
            "@dataclass",
            f"class {record.name}:",
            f'    """Record {record.name}"""',
        ]
        lines.extend(annotations)
        lines.extend([
            "",
            "    def _size(self) -> int:",
            f"        return {' + '.join(sizes) if sizes else '0'}",
            "",
            "    def _write(self, buf: _BufferWriter) -> None:",
        ])
        lines.extend(writes or ["        pass"])
        lines.extend([
            "",
            "    @classmethod",
            f"    def _read(cls, buf: _BufferReader) -> {record.name}:",
        ])
        if reads:
            lines.append("        return cls(")
            lines.extend(reads)
            lines.append("        )")
        else:
            lines.append("        return cls()")
        lines.extend(["", ""])
        return lines

    def render_function(self, func: FunctionDefinition) -> list[str]:
        """Generate the wrapper making exactly one foreign call"""
        logger.debug("rendering function %s", func.name)
        ffi = self.model.ffi_function(func)

        params, lowered = [], []
        for arg in func.arguments:
            with _declared_by(f"function '{func.name}' argument '{arg.name}'"):
                params.append(f"{arg.name}: {TypeMapper.py_decl(arg.type)}")
                lowered.append((arg, lower_expr(arg.name, arg.type)))
        with _declared_by(f"function '{func.name}' return type"):
            ret_type = TypeMapper.py_return_decl(func.return_type)
            lifted = lift_expr("_retval", func.return_type) if func.return_type else None

        lines = [
            f"def {func.name}({', '.join(params)}) -> {ret_type}:",
            f'    """Call {ffi.name}"""',
        ]

        target = "" if lifted is None else "_retval = "
        if any(TypeMapper.is_buffer(arg.type) for arg in func.arguments):
            # Argument buffers belong to the native side once the call is made
            lines.append("    with _PendingBuffers() as _pending:")
            call_args = []
            for arg, expr in lowered:
                if TypeMapper.is_buffer(arg.type):
                    expr = f"_pending.hold({expr})"
                lines.append(f"        _{arg.name} = {expr}")
                call_args.append(f"_{arg.name}")
            lines.append(f"        {target}_lib().{ffi.name}({', '.join(call_args)})")
            lines.append("        _pending.transfer()")
        else:
            call_args = [expr for _, expr in lowered]
            lines.append(f"    {target}_lib().{ffi.name}({', '.join(call_args)})")

        if lifted is not None:
            lines.append(f"    return {lifted}")
        lines.extend(["", ""])
        return lines
