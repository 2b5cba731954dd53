"""pyjavap - a javap-style disassembler for Java class files."""

from .classfile import ClassFile, ConstantPool
from .classreader import read_class_bytes, read_class_file
from .errors import (
    ClassFormatError,
    DescriptorError,
    JavapError,
    MissingCodeError,
    OutOfRangeIndexError,
)
from .javap import javap, print_class

__version__ = "0.1.0"
__all__ = [
    "ClassFile",
    "ConstantPool",
    "read_class_bytes",
    "read_class_file",
    "javap",
    "print_class",
    "JavapError",
    "OutOfRangeIndexError",
    "MissingCodeError",
    "ClassFormatError",
    "DescriptorError",
]
