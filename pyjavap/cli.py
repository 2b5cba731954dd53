#!/usr/bin/env python3
"""
Command-line interface for pyjavap - disassemble a Java class file.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV = "PYJAVAP_LOG"


def _configure_logging():
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def disassemble_command(args):
    """Print the disassembly of a class file."""
    from .errors import JavapError
    from .javap import javap

    path = Path(args.classfile)
    if not path.exists():
        print(f"Error: File not found: {args.classfile}", file=sys.stderr)
        sys.exit(1)

    try:
        javap(path)
    except (JavapError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main(argv=None):
    """Main entry point for pyjavap CLI."""
    parser = argparse.ArgumentParser(
        prog="pyjavap",
        description="Print the constant pool and bytecode of a Java class file",
    )
    parser.add_argument(
        "classfile",
        help="Path to a compiled .class file",
    )

    args = parser.parse_args(argv)
    _configure_logging()
    disassemble_command(args)


if __name__ == "__main__":
    main()
