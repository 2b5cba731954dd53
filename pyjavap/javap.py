"""
Disassembly printer.

Renders a decoded ``ClassFile`` in the text layout of ``javap -v``: class
header, version and flags, the constant pool with resolved comments, and every
method's Code block with its exception table.
"""

import math
import struct
import sys
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, TextIO

from .bytecode import Instruction
from .classfile import (
    CONSTRUCTOR_NAME,
    ClassFile,
    ConstantClass,
    ConstantDouble,
    ConstantFloat,
    ConstantInteger,
    ConstantInvokeDynamic,
    ConstantLong,
    ConstantMethodHandle,
    ConstantMethodType,
    ConstantNameAndType,
    ConstantPool,
    ConstantPoolEntry,
    ConstantString,
    ConstantUtf8,
    ExceptionTableEntry,
    MEMBER_REF_TYPES,
    Method,
    ReferenceKind,
)
from .classreader import read_class_file
from .descriptor import parse_method_descriptor
from .errors import MissingCodeError

STATIC_INITIALIZER_NAME = "<clinit>"

# Shown instead of values the printer does not compute
PLACEHOLDER = "TODO"

# Exception table type for handlers with catch_type 0
CATCH_ALL = "any"

TAG_WIDTH = 20
OPERAND_WIDTH = 16
INSTRUCTION_WIDTH = 35


# ==================== ACCESS FLAGS ====================

def _flag_rank(flag) -> int:
    return list(type(flag)).index(flag)


def format_access_flags(flags: Iterable) -> str:
    """Join access flags as ``ACC_*`` mnemonics in declaration order of their enum."""
    return ", ".join(f"ACC_{flag.name}" for flag in sorted(flags, key=_flag_rank))


# ==================== CONSTANT POOL ====================

def _java_number(value: float, single: bool) -> str:
    """Format a float the way Java's Float/Double.toString does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "-0.0" if math.copysign(1.0, value) < 0 else "0.0"

    if single:
        packed = struct.pack(">f", value)

        def reads_back(text):
            return struct.pack(">f", float(text)) == packed

        # Shortest decimal that reads back as the same 32-bit float
        for precision in range(1, 10):
            text = f"{value:.{precision}g}"
            if reads_back(text):
                break
    else:
        def reads_back(text):
            return float(text) == value

        text = repr(value)

    # Java never prints fewer than two significant digits and picks the
    # closest two-digit decimal (Float.MIN_VALUE is 1.4E-45, not 1.0E-45).
    if len(Decimal(text).as_tuple().digits) == 1:
        closest = f"{value:.2g}"
        if reads_back(closest):
            text = closest

    number = Decimal(text)
    sign, digit_tuple, _ = number.as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0") or "0"
    magnitude = number.adjusted()
    prefix = "-" if sign else ""

    if -3 <= magnitude < 7:
        plain = format(abs(number).normalize(), "f")
        if "." not in plain:
            plain += ".0"
        return prefix + plain

    mantissa = digits[0] + "." + (digits[1:] or "0")
    return f"{prefix}{mantissa}E{magnitude}"


def _columns(label: str, operand: str, comment: Optional[str] = None) -> str:
    if comment is None:
        return f"{label:<{TAG_WIDTH}}{operand}"
    return f"{label:<{TAG_WIDTH}}{operand:<{OPERAND_WIDTH}}// {comment}"


def format_constant_pool_entry(pool: ConstantPool, entry: ConstantPoolEntry) -> str:
    """Render the text after ``#n = `` for one constant pool entry."""
    label = entry.label

    if isinstance(entry, ConstantUtf8):
        return _columns(label, entry.text)

    if isinstance(entry, ConstantInteger):
        return _columns(label, str(entry.value))

    if isinstance(entry, ConstantFloat):
        return _columns(label, _java_number(entry.value, single=True) + "f")

    if isinstance(entry, ConstantLong):
        return _columns(label, f"{entry.value}l")

    if isinstance(entry, ConstantDouble):
        return _columns(label, _java_number(entry.value, single=False) + "d")

    if isinstance(entry, ConstantClass):
        return _columns(label, f"#{entry.name_index}", pool.resolve_utf8(entry.name_index))

    if isinstance(entry, ConstantString):
        return _columns(label, f"#{entry.string_index}", pool.resolve_utf8(entry.string_index))

    if isinstance(entry, MEMBER_REF_TYPES):
        return _columns(
            label,
            f"#{entry.class_index}.#{entry.name_and_type_index}",
            f"{pool.resolve_class(entry.class_index)}."
            f"{pool.resolve_name_and_type(entry.name_and_type_index)}",
        )

    if isinstance(entry, ConstantNameAndType):
        return _columns(
            label,
            f"#{entry.name_index}:#{entry.descriptor_index}",
            f'"{pool.resolve_utf8(entry.name_index)}":{pool.resolve_utf8(entry.descriptor_index)}',
        )

    if isinstance(entry, ConstantMethodHandle):
        try:
            kind_name = ReferenceKind(entry.reference_kind).name
        except ValueError:
            kind_name = str(entry.reference_kind)
        return _columns(
            label,
            f"{entry.reference_kind}:#{entry.reference_index}",
            f"REF_{kind_name} {pool.resolve_member(entry.reference_index)}",
        )

    if isinstance(entry, ConstantMethodType):
        return _columns(label, f"#{entry.descriptor_index}", pool.resolve_utf8(entry.descriptor_index))

    if isinstance(entry, ConstantInvokeDynamic):
        return _columns(
            label,
            f"#{entry.bootstrap_method_attr_index}:#{entry.name_and_type_index}",
            f"#{entry.bootstrap_method_attr_index}:"
            f"{pool.resolve_name_and_type(entry.name_and_type_index)}",
        )

    raise TypeError(f"Unsupported constant pool entry: {entry!r}")


def print_constant_pool(class_file: ClassFile, out: TextIO):
    print("Constant pool:", file=out)

    pool = class_file.constant_pool
    for index, entry in pool.items():
        print(f"{'#' + str(index):>5} = {format_constant_pool_entry(pool, entry)}", file=out)


# ==================== METHODS ====================

def format_instruction_line(offset: int, instruction: Instruction) -> str:
    return f"        {offset:>3}: {instruction.to_string(offset):<{INSTRUCTION_WIDTH}}"


def print_bytecode(instructions: Iterable[tuple[int, Instruction]], out: TextIO):
    for offset, instruction in instructions:
        print(format_instruction_line(offset, instruction), file=out)


def format_catch_type(pool: ConstantPool, catch_type: int) -> str:
    if catch_type == 0:
        return CATCH_ALL
    return f"Class {pool.resolve_class(catch_type)}"


def print_exception_table(pool: ConstantPool, exception_table: Iterable[ExceptionTableEntry], out: TextIO):
    print("      Exception table:", file=out)
    print("         from    to  target type", file=out)

    for entry in exception_table:
        print(
            f"         {entry.start_pc:5} {entry.end_pc:5} {entry.handler_pc:5}   "
            f"{format_catch_type(pool, entry.catch_type)}",
            file=out,
        )


def method_display_name(class_file: ClassFile, method: Method) -> str:
    """Name used in a method's header line; constructors show the class name."""
    name = class_file.method_name(method)
    if name == CONSTRUCTOR_NAME:
        return class_file.class_name
    return name


def print_method(class_file: ClassFile, method: Method, out: TextIO, compute_args_size: bool = False):
    name = class_file.method_name(method)
    descriptor = class_file.method_descriptor(method)

    if name == STATIC_INITIALIZER_NAME:
        print("  static {};", file=out)
    else:
        print(f"  {method_display_name(class_file, method)}();", file=out)

    print(f"    descriptor: {descriptor}", file=out)
    print(f"    flags: {PLACEHOLDER}", file=out)

    code = method.code
    if code is None:
        raise MissingCodeError(name)

    if compute_args_size:
        args_size = parse_method_descriptor(descriptor).argument_slots(method.is_static)
    else:
        args_size = PLACEHOLDER

    print("    Code:", file=out)
    print(f"      stack={code.max_stack}, locals={code.max_locals}, args_size={args_size}", file=out)

    print_bytecode(code.instructions, out)

    if code.exception_table:
        print_exception_table(class_file.constant_pool, code.exception_table, out)


# ==================== CLASS ====================

def print_class(class_file: ClassFile, filepath: str | Path, out: Optional[TextIO] = None,
                compute_args_size: bool = False):
    """Print the full disassembly of ``class_file``.

    ``filepath`` is shown verbatim in the header; callers pass the absolute
    path of the file the class was read from.
    """
    if out is None:
        out = sys.stdout

    print(f"Classfile {filepath}", file=out)

    source_file = class_file.source_file
    if source_file is not None:
        print(f'  Compiled from: "{source_file}"', file=out)

    print(f"class {class_file.class_name}", file=out)

    print(f"  minor version: {class_file.minor_version}", file=out)
    print(f"  major version: {class_file.major_version}", file=out)

    print(f"  flags: {format_access_flags(class_file.access_flags)}", file=out)

    print_constant_pool(class_file, out)

    print("{", file=out)

    for method in class_file.methods:
        print_method(class_file, method, out, compute_args_size=compute_args_size)

    print("}", file=out)

    if source_file is not None:
        print(f'SourceFile: "{source_file}"', file=out)


def javap(filepath: str | Path, out: Optional[TextIO] = None, compute_args_size: bool = False):
    """Read the class file at ``filepath`` and print its disassembly."""
    class_file = read_class_file(filepath)
    absolute_filepath = Path(filepath).resolve(strict=True)
    print_class(class_file, absolute_filepath, out, compute_args_size=compute_args_size)
