#!/usr/bin/env python3
"""
FFI Binding Generator

Reads an interface definition and generates a Python module that calls the
native component through ctypes.

Usage:
    python generate_bindings.py input.idl --output-dir generated/
    python generate_bindings.py input.idl -o generated/ --library-name geometry
"""

import sys
from pathlib import Path

# Add parent directory to path so the ffibind package can be found
sys.path.insert(0, str(Path(__file__).parent.parent))

from ffibind.cli import main


if __name__ == "__main__":
    main()
