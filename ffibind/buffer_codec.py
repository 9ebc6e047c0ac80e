"""Buffer Codec - binary layout of composite values crossing the boundary

Composite values (records, optionals, byte strings) are passed by value in a
native-allocated buffer. Everything is big-endian and fixed width:

    Boolean      1 byte, 0 or 1
    U32 / U64    4 / 8 bytes unsigned
    Float        4 bytes IEEE-754
    Double       8 bytes IEEE-754
    Enum         4 bytes signed, 1-based ordinal
    String       4-byte length, then UTF-8 bytes
    Bytes        4-byte length, then raw bytes
    Optional(T)  presence byte (0 absent, 1 present), then T iff present
    Record       field encodings in declaration order, no padding or tags

A top-level Bytes argument or return value is the buffer itself: its length is
the buffer's length and no prefix is written.

This module produces the generator-side expressions for sizing, writing and
reading values of each type, and holds the runtime helpers that every emitted
module carries verbatim.
"""

from typing import Iterable

from .errors import UnsupportedTypeError
from .types import InterfaceModel, TypeKind, TypeReference


# (writer/reader method suffix, encoded width) for fixed-width variants
FIXED_WIDTH = {
    TypeKind.BOOLEAN: ('bool', 1),
    TypeKind.U32: ('u32', 4),
    TypeKind.U64: ('u64', 8),
    TypeKind.FLOAT: ('float', 4),
    TypeKind.DOUBLE: ('double', 8),
    TypeKind.ENUM: ('i32', 4),
}


def type_id(type_: TypeReference) -> str:
    """Identifier fragment naming the helpers of a type.

    Named types carry a kind prefix so that an enum called `u32` or a record
    called `optional_bool` never shares helpers with a built-in type.
    """
    if type_.kind in FIXED_WIDTH and type_.kind is not TypeKind.ENUM:
        return FIXED_WIDTH[type_.kind][0]
    if type_.kind is TypeKind.STRING:
        return 'string'
    if type_.kind is TypeKind.BYTES:
        return 'bytes'
    if type_.kind is TypeKind.ENUM:
        return f'enum_{type_.name}'
    if type_.kind is TypeKind.RECORD:
        return f'record_{type_.name}'
    if type_.kind is TypeKind.OPTIONAL:
        return f'optional_{type_id(type_.inner)}'
    raise UnsupportedTypeError(type_)


def _payload(value: str, type_: TypeReference) -> str:
    """Expression for the payload of a present optional"""
    return f'{value}.value' if type_.inner.is_optional else value


def size_expr(value: str, type_: TypeReference) -> str:
    """Expression computing the encoded size of `value` in bytes"""
    if type_.kind in FIXED_WIDTH:
        return str(FIXED_WIDTH[type_.kind][1])
    if type_.kind is TypeKind.STRING:
        return f'_size_string({value})'
    if type_.kind is TypeKind.BYTES:
        return f'_size_bytes({value})'
    if type_.kind is TypeKind.RECORD:
        return f'{value}._size()'
    if type_.kind is TypeKind.OPTIONAL:
        return f'_size_{type_id(type_)}({value})'
    raise UnsupportedTypeError(type_)


def write_stmt(value: str, type_: TypeReference, buf: str) -> str:
    """Statement appending the encoding of `value` to writer `buf`"""
    if type_.kind is TypeKind.ENUM:
        return f'{buf}.write_i32({value}.value)'
    if type_.kind in FIXED_WIDTH:
        return f'{buf}.write_{FIXED_WIDTH[type_.kind][0]}({value})'
    if type_.kind is TypeKind.STRING:
        return f'{buf}.write_string({value})'
    if type_.kind is TypeKind.BYTES:
        return f'{buf}.write_bytes({value})'
    if type_.kind is TypeKind.RECORD:
        return f'{value}._write({buf})'
    if type_.kind is TypeKind.OPTIONAL:
        return f'_write_{type_id(type_)}({value}, {buf})'
    raise UnsupportedTypeError(type_)


def read_expr(buf: str, type_: TypeReference) -> str:
    """Expression decoding one value of `type_` from reader `buf`"""
    if type_.kind is TypeKind.ENUM:
        return f'{type_.name}._from_ordinal({buf}.read_i32())'
    if type_.kind in FIXED_WIDTH:
        return f'{buf}.read_{FIXED_WIDTH[type_.kind][0]}()'
    if type_.kind is TypeKind.STRING:
        return f'{buf}.read_string()'
    if type_.kind is TypeKind.BYTES:
        return f'{buf}.read_bytes()'
    if type_.kind is TypeKind.RECORD:
        return f'{type_.name}._read({buf})'
    if type_.kind is TypeKind.OPTIONAL:
        return f'_read_{type_id(type_)}({buf})'
    raise UnsupportedTypeError(type_)


def _check_buffer_type(type_: TypeReference):
    if type_.kind not in (TypeKind.BYTES, TypeKind.RECORD, TypeKind.OPTIONAL):
        raise UnsupportedTypeError(type_)
    type_id(type_)


def size_fn(type_: TypeReference) -> str:
    """Callable taking a top-level value and returning its encoded size"""
    _check_buffer_type(type_)
    if type_.kind is TypeKind.RECORD:
        return f'{type_.name}._size'
    if type_.kind is TypeKind.BYTES:
        return '_size_raw_bytes'
    return f'_size_{type_id(type_)}'


def write_fn(type_: TypeReference) -> str:
    """Callable taking (value, writer) and encoding a top-level value"""
    _check_buffer_type(type_)
    if type_.kind is TypeKind.RECORD:
        return f'{type_.name}._write'
    if type_.kind is TypeKind.BYTES:
        return '_write_raw_bytes'
    return f'_write_{type_id(type_)}'


def read_fn(type_: TypeReference) -> str:
    """Callable taking a reader and decoding a top-level value"""
    _check_buffer_type(type_)
    if type_.kind is TypeKind.RECORD:
        return f'{type_.name}._read'
    if type_.kind is TypeKind.BYTES:
        return '_read_raw_bytes'
    return f'_read_{type_id(type_)}'


def collect_optional_types(types: Iterable[TypeReference]) -> list[TypeReference]:
    """Distinct optional types reachable from `types`, inner before outer.

    Records are not entered; their fields are collected where the record
    itself is declared.
    """
    collected: list[TypeReference] = []

    def visit(type_: TypeReference):
        if not type_.is_optional:
            return
        visit(type_.inner)
        if type_ not in collected:
            collected.append(type_)

    for type_ in types:
        visit(type_)
    return collected


def render_optional_helpers(type_: TypeReference) -> list[str]:
    """Size, write and read helpers for one optional type"""
    ident = type_id(type_)
    payload = _payload('value', type_)
    decoded = read_expr('buf', type_.inner)
    if type_.inner.is_optional:
        decoded = f'Some({decoded})'
    return [
        f"def _size_{ident}(value):",
        "    if value is None:",
        "        return 1",
        f"    return 1 + {size_expr(payload, type_.inner)}",
        "",
        "",
        f"def _write_{ident}(value, buf):",
        "    if value is None:",
        "        buf.write_presence(False)",
        "        return",
        "    buf.write_presence(True)",
        f"    {write_stmt(payload, type_.inner, 'buf')}",
        "",
        "",
        f"def _read_{ident}(buf):",
        "    if not buf.read_presence():",
        "        return None",
        f"    return {decoded}",
        "",
        "",
    ]


def render_buffer_entry_points(model: InterfaceModel) -> list[str]:
    """Allocation and release helpers bound to the native entry points"""
    alloc = model.ffi_bytebuffer_alloc().name
    free = model.ffi_bytebuffer_free().name
    return [
        "def _alloc_buffer(size):",
        "    if size > 0xFFFFFFFF:",
        '        raise ValueError(f"value needs {size} bytes, more than one buffer can hold")',
        f"    rbuf = _lib().{alloc}(size)",
        "    if rbuf.len != size:",
        "        _free_quietly(rbuf)",
        '        raise InternalError(f"requested a {size} byte buffer, native side allocated {rbuf.len}")',
        "    return rbuf",
        "",
        "",
        "def _free_buffer(rbuf):",
        f"    _lib().{free}(rbuf)",
        "",
        "",
    ]


RUNTIME_SOURCE = '''\
_logger = logging.getLogger(__name__)


class InternalError(RuntimeError):
    """The native component disagrees with these bindings about the wire format.

    Raised for trailing or missing bytes in a buffer, invalid presence flags and
    out-of-range enum ordinals. It means the installed library and the bindings
    were generated from different interface definitions.
    """


_T = TypeVar("_T")


@dataclass(frozen=True)
class Some(Generic[_T]):
    """Present value of an optional whose payload is itself optional"""
    value: _T


class _ByteBuffer(ctypes.Structure):
    """Native-allocated byte region passed by value"""
    _fields_ = [
        ("len", ctypes.c_int64),
        ("data", ctypes.POINTER(ctypes.c_uint8)),
    ]


def _buffer_address(rbuf):
    if rbuf.len < 0:
        raise InternalError(f"native buffer has negative length {rbuf.len}")
    if rbuf.len and not rbuf.data:
        raise InternalError(f"native buffer of {rbuf.len} bytes has no data")
    return ctypes.cast(rbuf.data, ctypes.c_void_p).value


class _BufferWriter:
    """Writes big-endian values into a native buffer of precomputed size"""

    def __init__(self, rbuf):
        address = _buffer_address(rbuf)
        self._size = rbuf.len
        if self._size:
            self._target = (ctypes.c_uint8 * self._size).from_address(address)
        else:
            self._target = bytearray()
        self._offset = 0

    def _pack(self, fmt, value):
        width = struct.calcsize(fmt)
        if self._offset + width > self._size:
            raise InternalError("encoding overflows its buffer, size computation is wrong")
        struct.pack_into(fmt, self._target, self._offset, value)
        self._offset += width

    def write_bool(self, value):
        self._pack(">B", 1 if value else 0)

    def write_presence(self, present):
        self._pack(">B", 1 if present else 0)

    def write_u32(self, value):
        self._pack(">I", value)

    def write_u64(self, value):
        self._pack(">Q", value)

    def write_i32(self, value):
        self._pack(">i", value)

    def write_float(self, value):
        self._pack(">f", value)

    def write_double(self, value):
        self._pack(">d", value)

    def write_bytes(self, value):
        value = bytes(value)
        self._pack(">I", len(value))
        self._pack(f"{len(value)}s", value)

    def write_string(self, value):
        self.write_bytes(value.encode("utf-8"))

    def write_raw(self, value):
        value = bytes(value)
        self._pack(f"{len(value)}s", value)

    def finish(self):
        if self._offset != self._size:
            raise InternalError(f"encoded {self._offset} bytes into a buffer of {self._size} bytes")


class _BufferReader:
    """Reads big-endian values out of a native buffer"""

    def __init__(self, rbuf):
        address = _buffer_address(rbuf)
        self._data = ctypes.string_at(address, rbuf.len) if rbuf.len else b""
        self._offset = 0

    def _unpack(self, fmt):
        width = struct.calcsize(fmt)
        if self._offset + width > len(self._data):
            raise InternalError("buffer ended early, bindings and native component disagree")
        (value,) = struct.unpack_from(fmt, self._data, self._offset)
        self._offset += width
        return value

    def read_bool(self):
        return self._unpack(">B") != 0

    def read_presence(self):
        flag = self._unpack(">B")
        if flag not in (0, 1):
            raise InternalError(f"invalid presence flag {flag}")
        return flag == 1

    def read_u32(self):
        return self._unpack(">I")

    def read_u64(self):
        return self._unpack(">Q")

    def read_i32(self):
        return self._unpack(">i")

    def read_float(self):
        return self._unpack(">f")

    def read_double(self):
        return self._unpack(">d")

    def read_bytes(self):
        size = self._unpack(">I")
        return self._unpack(f"{size}s")

    def read_string(self):
        return self.read_bytes().decode("utf-8")

    def read_remaining(self):
        value = self._data[self._offset:]
        self._offset = len(self._data)
        return value

    def finish(self):
        remaining = len(self._data) - self._offset
        if remaining:
            raise InternalError(f"junk remaining in buffer ({remaining} bytes), something is very wrong")


def _size_string(value):
    return 4 + len(value.encode("utf-8"))


def _size_bytes(value):
    return 4 + len(value)


def _size_raw_bytes(value):
    return len(value)


def _write_raw_bytes(value, buf):
    buf.write_raw(value)


def _read_raw_bytes(buf):
    return buf.read_remaining()


def _lower_string(value):
    encoded = value.encode("utf-8")
    if b"\\0" in encoded:
        raise ValueError("string passed to the native component contains a NUL character")
    return encoded


def _lift_string(value):
    if value is None:
        raise InternalError("native component returned a null string")
    return value.decode("utf-8")


def _free_quietly(rbuf):
    """Release a buffer while another failure is already propagating"""
    try:
        _free_buffer(rbuf)
    except Exception:
        _logger.warning("failed to release native buffer during error cleanup", exc_info=True)


def _lower_buffer(value, size_fn, write_fn):
    """Encode `value` into a freshly allocated native buffer"""
    rbuf = _alloc_buffer(size_fn(value))
    try:
        writer = _BufferWriter(rbuf)
        write_fn(value, writer)
        writer.finish()
    except BaseException:
        _free_quietly(rbuf)
        raise
    return rbuf


def _lift_buffer(rbuf, read_fn):
    """Decode a buffer returned by the native side, then release it"""
    try:
        reader = _BufferReader(rbuf)
        value = read_fn(reader)
        reader.finish()
    except BaseException:
        _free_quietly(rbuf)
        raise
    _free_buffer(rbuf)
    return value


class _PendingBuffers:
    """Buffers lowered for a foreign call that has not been made yet.

    If lowering a later argument fails, every buffer held so far is released.
    After `transfer()` the native side owns them.
    """

    def __init__(self):
        self._buffers = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        buffers, self._buffers = self._buffers, []
        for rbuf in buffers:
            _free_quietly(rbuf)
        return False

    def hold(self, rbuf):
        self._buffers.append(rbuf)
        return rbuf

    def transfer(self):
        self._buffers = []


'''
