"""Interface definition parser"""

import re
from typing import Optional

from .errors import IDLSyntaxError
from .types import (
    BOOLEAN, BYTES, DOUBLE, FLOAT, STRING, U32, U64,
    Argument, EnumDefinition, Field, FunctionDefinition, InterfaceModel,
    ObjectDefinition, RecordDefinition, TypeReference,
    enum_of, object_of, optional_of, record_of,
)

BUILTIN_TYPES = {
    'bool': BOOLEAN,
    'u32': U32,
    'u64': U64,
    'float': FLOAT,
    'double': DOUBLE,
    'string': STRING,
    'bytes': BYTES,
}

NAMESPACE_RE = re.compile(r'\bnamespace\s+(\w+)\s*;')
BLOCK_RE = re.compile(r'\b(enum|record|object)\s+(\w+)\s*\{([^}]*)\}\s*;?')
FUNCTION_RE = re.compile(r'\bfn\s+(\w+)\s*\(([^)]*)\)\s*(?:->\s*([\w?]+)\s*)?;')
TYPE_RE = re.compile(r'(\w+)((?:\?)*)$')


class IDLParser:
    """Parses the compact interface definition syntax:

        namespace geometry;
        enum Shape { CIRCLE, SQUARE };
        record Point { u32 x; bool? visible; };
        fn area(Shape shape, Point corner) -> double;
    """

    def __init__(self, content: str):
        self.content = self._strip_comments(content)
        self._kinds: dict[str, str] = {}

    def _strip_comments(self, content: str) -> str:
        content = re.sub(r'//.*$', '', content, flags=re.MULTILINE)
        # Keep line breaks so error positions stay accurate
        content = re.sub(r'/\*.*?\*/', lambda m: '\n' * m.group(0).count('\n'),
                         content, flags=re.DOTALL)
        return content

    def _line(self, pos: int) -> int:
        return self.content.count('\n', 0, pos) + 1

    def parse(self) -> InterfaceModel:
        consumed: list[tuple[int, int]] = []

        ns_match = NAMESPACE_RE.search(self.content)
        if ns_match is None:
            raise IDLSyntaxError("missing namespace declaration")
        consumed.append(ns_match.span())

        blocks = list(BLOCK_RE.finditer(self.content))
        functions = list(FUNCTION_RE.finditer(self.content))
        consumed.extend(m.span() for m in blocks)
        consumed.extend(m.span() for m in functions)
        self._check_consumed(consumed)

        # Names are collected first so definitions may reference later ones
        for m in blocks:
            kind, name = m.group(1), m.group(2)
            if name in self._kinds or name in BUILTIN_TYPES:
                raise IDLSyntaxError(f"duplicate definition of {name!r}", self._line(m.start()))
            self._kinds[name] = kind

        enums, records, objects = [], [], []
        for m in blocks:
            kind, name, body = m.groups()
            if kind == 'enum':
                enums.append(self._parse_enum(name, body, self._line(m.start())))
            elif kind == 'record':
                records.append(self._parse_record(name, body, self._line(m.start())))
            else:
                objects.append(ObjectDefinition(name=name))

        funcs = []
        for m in functions:
            funcs.append(self._parse_function(m))
        names = [f.name for f in funcs]
        for func in funcs:
            if names.count(func.name) > 1:
                raise IDLSyntaxError(f"duplicate function {func.name!r}")

        return InterfaceModel(
            namespace=ns_match.group(1),
            enums=tuple(enums),
            records=tuple(records),
            functions=tuple(funcs),
            objects=tuple(objects),
        )

    def _check_consumed(self, spans: list[tuple[int, int]]):
        pos = 0
        for start, end in sorted(spans):
            leftover = self.content[pos:start]
            if leftover.strip():
                offset = pos + len(leftover) - len(leftover.lstrip())
                raise IDLSyntaxError(f"unexpected text {leftover.strip().split()[0]!r}",
                                     self._line(offset))
            pos = max(pos, end)
        leftover = self.content[pos:]
        if leftover.strip():
            offset = pos + len(leftover) - len(leftover.lstrip())
            raise IDLSyntaxError(f"unexpected text {leftover.strip().split()[0]!r}",
                                 self._line(offset))

    def _parse_enum(self, name: str, body: str, line: int) -> EnumDefinition:
        values = [v.strip() for v in body.split(',') if v.strip()]
        if not values:
            raise IDLSyntaxError(f"enum {name!r} has no values", line)
        for value in values:
            if not value.isidentifier():
                raise IDLSyntaxError(f"invalid value {value!r} in enum {name!r}", line)
            if values.count(value) > 1:
                raise IDLSyntaxError(f"duplicate value {value!r} in enum {name!r}", line)
        return EnumDefinition(name=name, values=tuple(values))

    def _parse_record(self, name: str, body: str, line: int) -> RecordDefinition:
        fields = []
        for decl in body.split(';'):
            decl = decl.strip()
            if not decl:
                continue
            field_type, field_name = self._split_decl(decl, line)
            if any(f.name == field_name for f in fields):
                raise IDLSyntaxError(f"duplicate field {field_name!r} in record {name!r}", line)
            fields.append(Field(name=field_name, type=field_type))
        return RecordDefinition(name=name, fields=tuple(fields))

    def _parse_function(self, m: re.Match) -> FunctionDefinition:
        name, params_str, return_str = m.groups()
        line = self._line(m.start())
        arguments = []
        for p in params_str.split(','):
            p = p.strip()
            if not p:
                continue
            arg_type, arg_name = self._split_decl(p, line)
            if any(a.name == arg_name for a in arguments):
                raise IDLSyntaxError(f"duplicate argument {arg_name!r} in function {name!r}", line)
            arguments.append(Argument(name=arg_name, type=arg_type))
        return_type: Optional[TypeReference] = None
        if return_str:
            return_type = self._parse_type(return_str, line)
        return FunctionDefinition(name=name, arguments=tuple(arguments), return_type=return_type)

    def _split_decl(self, decl: str, line: int) -> tuple[TypeReference, str]:
        parts = decl.split()
        if len(parts) != 2 or not parts[1].isidentifier():
            raise IDLSyntaxError(f"expected '<type> <name>', got {decl!r}", line)
        return self._parse_type(parts[0], line), parts[1]

    def _parse_type(self, text: str, line: int) -> TypeReference:
        m = TYPE_RE.match(text)
        if m is None:
            raise IDLSyntaxError(f"invalid type {text!r}", line)
        base, suffix = m.groups()
        if base in BUILTIN_TYPES:
            type_ = BUILTIN_TYPES[base]
        elif self._kinds.get(base) == 'enum':
            type_ = enum_of(base)
        elif self._kinds.get(base) == 'record':
            type_ = record_of(base)
        elif self._kinds.get(base) == 'object':
            type_ = object_of(base)
        else:
            raise IDLSyntaxError(f"unknown type {base!r}", line)
        for _ in suffix:
            type_ = optional_of(type_)
        return type_
