"""Command line entry point

Usage:
    python -m ffibind geometry.idl --output-dir generated/
    python -m ffibind --idl geometry.idl -o generated/ --library-name geometry
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import Config
from .errors import FFIBindError
from .parser import IDLParser
from .python_generator import PythonGenerator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate Python ctypes bindings from an interface definition")
    parser.add_argument("idl_file", nargs="?", help="Path to interface definition (positional)")
    parser.add_argument("--idl", help="Path to interface definition (alternative)")
    parser.add_argument("--output-dir", "-o", default="generated", help="Output directory")
    parser.add_argument("--module-name", "-m", default="", help="Name of the generated module")
    parser.add_argument("--library-name", default="", help="Native library name, without prefix or suffix")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every rendered item")
    return parser


def main(argv=None):
    start_time = time.perf_counter()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Support both positional and --idl argument
    idl_file = args.idl_file or args.idl
    if not idl_file:
        parser.error("interface definition is required (positional or --idl)")

    idl_path = Path(idl_file)
    try:
        model = IDLParser(idl_path.read_text()).parse()
        config = Config.from_model(model, module_name=args.module_name, library_name=args.library_name)
        source = PythonGenerator(model, config).generate()
    except OSError as err:
        print(f"error: cannot read {idl_path}: {err}", file=sys.stderr)
        raise SystemExit(1) from err
    except FFIBindError as err:
        print(f"error: {idl_path}: {err}", file=sys.stderr)
        raise SystemExit(1) from err

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    path = output_dir / f"{config.module_name}.py"
    path.write_text(source)
    logger.info("wrote %d bytes for namespace %s", len(source), model.namespace)
    print(f"Generated: {path}")

    elapsed = time.perf_counter() - start_time
    print(f"Generation completed in {elapsed*1000:.2f} ms")
