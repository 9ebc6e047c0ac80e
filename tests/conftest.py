import ctypes
import sys
import types
from collections.abc import Callable
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from ffibind import (  # noqa: E402
    BOOLEAN, BYTES, DOUBLE, FLOAT, STRING, U32, U64,
    Argument, EnumDefinition, Field, FunctionDefinition, InterfaceModel,
    PythonGenerator, RecordDefinition, enum_of, optional_of, record_of,
)


def make_geometry_model() -> InterfaceModel:
    point = record_of("Point")
    return InterfaceModel(
        namespace="geometry",
        enums=(EnumDefinition("Shape", ("CIRCLE", "SQUARE", "TRIANGLE")),),
        records=(
            RecordDefinition("Point", (
                Field("x", U32),
                Field("y", optional_of(BOOLEAN)),
            )),
            RecordDefinition("Box", (
                Field("label", STRING),
                Field("corner", point),
                Field("shape", enum_of("Shape")),
                Field("tags", optional_of(optional_of(U32))),
                Field("weight", DOUBLE),
                Field("payload", BYTES),
                Field("serial", U64),
                Field("ratio", FLOAT),
                Field("origin", optional_of(point)),
            )),
        ),
        functions=(
            FunctionDefinition("add", (Argument("a", U32), Argument("b", U32)), U32),
            FunctionDefinition("negate", (Argument("flag", BOOLEAN),), BOOLEAN),
            FunctionDefinition("next_shape", (Argument("shape", enum_of("Shape")),), enum_of("Shape")),
            FunctionDefinition("echo_point", (Argument("p", point),), point),
            FunctionDefinition("echo_box", (Argument("b", record_of("Box")),), record_of("Box")),
            FunctionDefinition(
                "echo_nested",
                (Argument("v", optional_of(optional_of(U32))),),
                optional_of(optional_of(U32)),
            ),
            FunctionDefinition("echo_bytes", (Argument("data", BYTES),), BYTES),
            FunctionDefinition("greet", (Argument("name", STRING),), STRING),
            FunctionDefinition("move", (Argument("p", point), Argument("q", optional_of(point))), point),
            FunctionDefinition("reset"),
        ),
    )


class FakeLibrary:
    """In-process stand-in for the native component.

    Buffers are real ctypes memory so the emitted codec runs unchanged.
    Argument buffers are consumed (freed) the way the native side would.
    """

    def __init__(self, module):
        self._module = module
        self.live = {}
        self.allocs = 0
        self.frees = 0
        self.calls = []
        self.received = []
        self.reply = None
        self.fail_free = False
        self.short_alloc = False
        self.null_string = False

    # Buffer entry points

    def geometry_bytebuffer_alloc(self, size):
        self.allocs += 1
        array = (ctypes.c_uint8 * max(size, 1))()
        self.live[ctypes.addressof(array)] = array
        length = size - 1 if self.short_alloc and size else size
        return self._module._ByteBuffer(length, ctypes.cast(array, ctypes.POINTER(ctypes.c_uint8)))

    def geometry_bytebuffer_free(self, rbuf):
        if self.fail_free:
            raise OSError("native free failed")
        address = ctypes.cast(rbuf.data, ctypes.c_void_p).value
        assert address in self.live, "free of unknown or already freed buffer"
        del self.live[address]
        self.frees += 1

    # Helpers

    def _consume(self, rbuf):
        data = ctypes.string_at(rbuf.data, rbuf.len) if rbuf.len else b""
        self.received.append(data)
        self.geometry_bytebuffer_free(rbuf)
        return data

    def _reply(self, data):
        if self.reply is not None:
            data = self.reply
        rbuf = self.geometry_bytebuffer_alloc(len(data))
        ctypes.memmove(rbuf.data, data, len(data))
        return rbuf

    def _echo(self, name, rbuf):
        self.calls.append(name)
        return self._reply(self._consume(rbuf))

    # Component functions

    def geometry_add(self, a, b):
        self.calls.append("add")
        return a + b

    def geometry_negate(self, flag):
        self.calls.append("negate")
        return 0 if flag else 1

    def geometry_next_shape(self, shape):
        self.calls.append("next_shape")
        return shape + 1

    def geometry_echo_point(self, p):
        return self._echo("echo_point", p)

    def geometry_echo_box(self, b):
        return self._echo("echo_box", b)

    def geometry_echo_nested(self, v):
        return self._echo("echo_nested", v)

    def geometry_echo_bytes(self, data):
        return self._echo("echo_bytes", data)

    def geometry_greet(self, name):
        self.calls.append("greet")
        return None if self.null_string else b"hello " + name

    def geometry_move(self, p, q):
        self.calls.append("move")
        self._consume(q)
        return self._reply(self._consume(p))

    def geometry_reset(self):
        self.calls.append("reset")


def load_module(source: str, name: str, monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    module = types.ModuleType(name)
    module.__file__ = str(ROOT_DIR / f"{name}.py")
    monkeypatch.setitem(sys.modules, name, module)
    exec(compile(source, f"{name}.py", "exec"), module.__dict__)
    return module


@pytest.fixture
def geometry_model() -> InterfaceModel:
    return make_geometry_model()


@pytest.fixture
def geometry_source(geometry_model: InterfaceModel) -> str:
    return PythonGenerator(geometry_model).generate()


@pytest.fixture
def geometry(geometry_source: str, monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    module = load_module(geometry_source, "geometry", monkeypatch)
    module.initialize(library=FakeLibrary(module))
    return module


@pytest.fixture
def native(geometry: types.ModuleType) -> FakeLibrary:
    return geometry._lib()


@pytest.fixture
def make_model() -> Callable[..., InterfaceModel]:
    def _make_model(**items: object) -> InterfaceModel:
        return InterfaceModel(namespace=str(items.pop("namespace", "demo")), **items)

    return _make_model
