"""Generated bindings loaded through ctypes against a compiled native library"""

import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from ffibind import IDLParser, PythonGenerator

from conftest import load_module

COMPILER = shutil.which("cc") or shutil.which("gcc")

pytestmark = pytest.mark.skipif(
    COMPILER is None or sys.platform == "win32",
    reason="needs a C compiler producing shared objects",
)

DEMO_IDL = """
namespace demo;
record Point { u32 x; bool? visible; };
fn add(u32 a, u32 b) -> u32;
fn raw() -> bytes;
fn length(bytes data) -> u32;
fn echo_point(Point p) -> Point;
fn greet(string name) -> string;
fn missing() -> string;
"""

DEMO_C = r"""
#include <stdint.h>
#include <stdio.h>
#include <stdlib.h>
#include <string.h>

typedef struct { int64_t len; uint8_t *data; } ByteBuffer;

static int live = 0;

ByteBuffer demo_bytebuffer_alloc(uint32_t size) {
    ByteBuffer buf;
    buf.len = size;
    buf.data = malloc(size ? size : 1);
    live++;
    return buf;
}

void demo_bytebuffer_free(ByteBuffer buf) {
    free(buf.data);
    live--;
}

int demo_live_buffers(void) { return live; }

uint32_t demo_add(uint32_t a, uint32_t b) { return a + b; }

ByteBuffer demo_raw(void) {
    ByteBuffer buf = demo_bytebuffer_alloc(3);
    memcpy(buf.data, "abc", 3);
    return buf;
}

uint32_t demo_length(ByteBuffer data) {
    uint32_t n = (uint32_t)data.len;
    demo_bytebuffer_free(data);
    return n;
}

ByteBuffer demo_echo_point(ByteBuffer p) { return p; }

const char *demo_greet(const char *name) {
    static char out[64];
    snprintf(out, sizeof out, "hello %s", name);
    return out;
}

const char *demo_missing(void) { return NULL; }
"""


@pytest.fixture(scope="module")
def library_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    build_dir = tmp_path_factory.mktemp("native")
    source = build_dir / "demo.c"
    source.write_text(DEMO_C, encoding="utf-8")
    target = build_dir / "libuniffi_demo.so"
    subprocess.run(
        [COMPILER, "-shared", "-fPIC", "-o", str(target), str(source)],
        check=True,
        capture_output=True,
    )
    return target


@pytest.fixture
def demo(library_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEMO_LIBRARY_PATH", str(library_path))
    source = PythonGenerator(IDLParser(DEMO_IDL).parse()).generate()
    return load_module(source, "demo", monkeypatch)


def _live(demo) -> int:
    return demo._lib().demo_live_buffers()


def test_first_call_loads_and_declares_the_library(demo) -> None:
    assert demo.add(2, 40) == 42

    lib = demo._lib()
    assert tuple(lib.demo_echo_point.argtypes) == (demo._ByteBuffer,)
    assert lib.demo_echo_point.restype is demo._ByteBuffer
    assert lib.demo_bytebuffer_alloc.restype is demo._ByteBuffer


def test_raw_bytes_reply_is_read_whole(demo) -> None:
    before = _live(demo)

    assert demo.raw() == b"abc"
    assert _live(demo) == before


def test_raw_bytes_argument_has_no_length_prefix(demo) -> None:
    before = _live(demo)

    assert demo.length(b"\x00\x01\x02\x03\x04") == 5
    assert demo.length(b"") == 0
    assert _live(demo) == before


def test_record_travels_by_value_both_ways(demo) -> None:
    before = _live(demo)

    assert demo.echo_point(demo.Point(x=7, visible=True)) == demo.Point(x=7, visible=True)
    assert demo.echo_point(demo.Point(x=0, visible=None)) == demo.Point(x=0, visible=None)
    assert _live(demo) == before


def test_strings_cross_as_utf8(demo) -> None:
    assert demo.greet("wörld") == "hello wörld"


def test_null_string_reply_is_fatal(demo) -> None:
    with pytest.raises(demo.InternalError, match="null string"):
        demo.missing()
