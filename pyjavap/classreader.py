"""
Java class file reader.
Decodes class file bytes into the read-only model in ``classfile``.
"""

import logging
import struct
from pathlib import Path
from typing import Optional

from .bytecode import Instruction, Opcode, OperandKind, operand_kind
from .classfile import (
    ClassAccess,
    ClassFile,
    Code,
    ConstantClass,
    ConstantDouble,
    ConstantFieldref,
    ConstantFloat,
    ConstantInteger,
    ConstantInterfaceMethodref,
    ConstantInvokeDynamic,
    ConstantLong,
    ConstantMethodHandle,
    ConstantMethodref,
    ConstantMethodType,
    ConstantNameAndType,
    ConstantPool,
    ConstantPoolEntry,
    ConstantPoolTag,
    ConstantString,
    ConstantUtf8,
    ExceptionTableEntry,
    Field,
    FieldAccess,
    Method,
    MethodAccess,
    flags_from_mask,
)
from .errors import ClassFormatError, JavapError

logger = logging.getLogger(__name__)

MAGIC = 0xCAFEBABE

# Operands of wide-able instructions that widen from u1 to u2
WIDENABLE = (OperandKind.LOCAL, OperandKind.IINC)


def decode_modified_utf8(data: bytes) -> str:
    """Decode the class file's modified UTF-8 (encoded NUL, surrogate pairs)."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    # Modified UTF-8 encodes U+0000 as C0 80 and supplementary characters as
    # two 3-byte surrogates; surrogatepass + utf-16 recombines them.
    try:
        text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", errors="surrogatepass")
    except UnicodeDecodeError as e:
        raise ClassFormatError(f"Invalid modified UTF-8 constant: {e}") from e
    return text.encode("utf-16", errors="surrogatepass").decode("utf-16", errors="replace")


class ByteReader:
    """Big-endian cursor over a byte string."""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    def _unpack(self, fmt: str, size: int):
        try:
            val = struct.unpack_from(fmt, self.data, self.pos)[0]
        except struct.error as e:
            raise ClassFormatError(f"Truncated data at offset {self.pos}") from e
        self.pos += size
        return val

    def read_u1(self) -> int:
        return self._unpack(">B", 1)

    def read_s1(self) -> int:
        return self._unpack(">b", 1)

    def read_u2(self) -> int:
        return self._unpack(">H", 2)

    def read_s2(self) -> int:
        return self._unpack(">h", 2)

    def read_u4(self) -> int:
        return self._unpack(">I", 4)

    def read_s4(self) -> int:
        return self._unpack(">i", 4)

    def read_s8(self) -> int:
        return self._unpack(">q", 8)

    def read_f4(self) -> float:
        return self._unpack(">f", 4)

    def read_f8(self) -> float:
        return self._unpack(">d", 8)

    def read_bytes(self, length: int) -> bytes:
        if self.pos + length > len(self.data):
            raise ClassFormatError(f"Truncated data at offset {self.pos}")
        val = self.data[self.pos:self.pos + length]
        self.pos += length
        return val

    def at_end(self) -> bool:
        return self.pos >= len(self.data)


def decode_instructions(code: bytes) -> tuple[tuple[int, Instruction], ...]:
    """Decode a method's code array into ``(offset, instruction)`` pairs."""
    reader = ByteReader(code)
    instructions = []

    while not reader.at_end():
        offset = reader.pos
        instructions.append((offset, _read_instruction(reader, offset)))

    return tuple(instructions)


def _read_opcode(reader: ByteReader, offset: int) -> Opcode:
    value = reader.read_u1()
    try:
        return Opcode(value)
    except ValueError:
        raise ClassFormatError(f"Unknown opcode 0x{value:02x} at offset {offset}") from None


def _read_instruction(reader: ByteReader, offset: int) -> Instruction:
    opcode = _read_opcode(reader, offset)
    kind = operand_kind(opcode)

    if kind in (OperandKind.NONE, OperandKind.IMPLIED_LOCAL):
        return Instruction(opcode)

    if kind is OperandKind.WIDE:
        widened = _read_opcode(reader, offset)
        if operand_kind(widened) not in WIDENABLE:
            raise ClassFormatError(f"wide cannot modify {widened.name.lower()} at offset {offset}")
        if widened is Opcode.IINC:
            return Instruction(widened, (reader.read_u2(), reader.read_s2()), wide=True)
        return Instruction(widened, (reader.read_u2(),), wide=True)

    if kind in (OperandKind.LOCAL, OperandKind.CONSTANT_BYTE, OperandKind.NEWARRAY):
        return Instruction(opcode, (reader.read_u1(),))

    if kind is OperandKind.CONSTANT:
        return Instruction(opcode, (reader.read_u2(),))

    if kind is OperandKind.BYTE:
        return Instruction(opcode, (reader.read_s1(),))

    if kind in (OperandKind.SHORT, OperandKind.BRANCH):
        return Instruction(opcode, (reader.read_s2(),))

    if kind is OperandKind.BRANCH_WIDE:
        return Instruction(opcode, (reader.read_s4(),))

    if kind is OperandKind.IINC:
        return Instruction(opcode, (reader.read_u1(), reader.read_s1()))

    if kind is OperandKind.INVOKEINTERFACE:
        index = reader.read_u2()
        count = reader.read_u1()
        reader.read_u1()  # always zero
        return Instruction(opcode, (index, count))

    if kind is OperandKind.INVOKEDYNAMIC:
        index = reader.read_u2()
        reader.read_u2()  # always zero
        return Instruction(opcode, (index,))

    if kind is OperandKind.MULTIANEWARRAY:
        return Instruction(opcode, (reader.read_u2(), reader.read_u1()))

    # Switches: operands are 4-byte aligned relative to the code start
    reader.read_bytes((4 - reader.pos % 4) % 4)
    default = reader.read_s4()

    if kind is OperandKind.TABLESWITCH:
        low = reader.read_s4()
        high = reader.read_s4()
        if high < low:
            raise ClassFormatError(f"tableswitch at offset {offset} has high < low")
        deltas = tuple(reader.read_s4() for _ in range(high - low + 1))
        return Instruction(opcode, (default, low, high, deltas))

    npairs = reader.read_s4()
    if npairs < 0:
        raise ClassFormatError(f"lookupswitch at offset {offset} has negative npairs")
    pairs = tuple((reader.read_s4(), reader.read_s4()) for _ in range(npairs))
    return Instruction(opcode, (default, pairs))


class ClassReader(ByteReader):
    """Reads Java class files."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.constant_pool = ConstantPool()

    def _utf8(self, index: int) -> str:
        return self.constant_pool.resolve_utf8(index)

    def _read_constant_pool(self) -> ConstantPool:
        """Read the constant pool."""
        count = self.read_u2()
        entries: list[Optional[ConstantPoolEntry]] = []

        while len(entries) < count - 1:
            tag = self.read_u1()

            if tag == ConstantPoolTag.UTF8:
                length = self.read_u2()
                entries.append(ConstantUtf8(decode_modified_utf8(self.read_bytes(length))))

            elif tag == ConstantPoolTag.INTEGER:
                entries.append(ConstantInteger(self.read_s4()))

            elif tag == ConstantPoolTag.FLOAT:
                entries.append(ConstantFloat(self.read_f4()))

            elif tag == ConstantPoolTag.LONG:
                entries.append(ConstantLong(self.read_s8()))
                entries.append(None)  # Long takes 2 slots

            elif tag == ConstantPoolTag.DOUBLE:
                entries.append(ConstantDouble(self.read_f8()))
                entries.append(None)  # Double takes 2 slots

            elif tag == ConstantPoolTag.CLASS:
                entries.append(ConstantClass(self.read_u2()))

            elif tag == ConstantPoolTag.STRING:
                entries.append(ConstantString(self.read_u2()))

            elif tag == ConstantPoolTag.FIELDREF:
                entries.append(ConstantFieldref(self.read_u2(), self.read_u2()))

            elif tag == ConstantPoolTag.METHODREF:
                entries.append(ConstantMethodref(self.read_u2(), self.read_u2()))

            elif tag == ConstantPoolTag.INTERFACE_METHODREF:
                entries.append(ConstantInterfaceMethodref(self.read_u2(), self.read_u2()))

            elif tag == ConstantPoolTag.NAME_AND_TYPE:
                entries.append(ConstantNameAndType(self.read_u2(), self.read_u2()))

            elif tag == ConstantPoolTag.METHOD_HANDLE:
                entries.append(ConstantMethodHandle(self.read_u1(), self.read_u2()))

            elif tag == ConstantPoolTag.METHOD_TYPE:
                entries.append(ConstantMethodType(self.read_u2()))

            elif tag == ConstantPoolTag.INVOKE_DYNAMIC:
                entries.append(ConstantInvokeDynamic(self.read_u2(), self.read_u2()))

            else:
                raise ClassFormatError(f"Unknown constant pool tag {tag} at entry #{len(entries) + 1}")

        if len(entries) != count - 1:
            raise ClassFormatError("Long or Double entry overruns the constant pool")

        logger.debug("Read constant pool with %d entries", len(entries))
        return ConstantPool(entries)

    def _read_attributes(self) -> list[tuple[str, bytes]]:
        """Read an attribute table as ``(name, info)`` pairs."""
        count = self.read_u2()
        attrs = []
        for _ in range(count):
            name = self._utf8(self.read_u2())
            length = self.read_u4()
            attrs.append((name, self.read_bytes(length)))
        return attrs

    def _read_code(self, info: bytes) -> Code:
        """Decode the body of a Code attribute."""
        reader = ByteReader(info)
        max_stack = reader.read_u2()
        max_locals = reader.read_u2()
        code_length = reader.read_u4()
        instructions = decode_instructions(reader.read_bytes(code_length))

        table_length = reader.read_u2()
        exception_table = tuple(
            ExceptionTableEntry(
                start_pc=reader.read_u2(),
                end_pc=reader.read_u2(),
                handler_pc=reader.read_u2(),
                catch_type=reader.read_u2(),
            )
            for _ in range(table_length)
        )
        # Nested attributes (LineNumberTable, StackMapTable, ...) are not
        # part of the model.

        return Code(
            max_stack=max_stack,
            max_locals=max_locals,
            instructions=instructions,
            exception_table=exception_table,
        )

    def _read_field(self) -> Field:
        """Read a field."""
        access = self.read_u2()
        name_idx = self.read_u2()
        desc_idx = self.read_u2()
        self._read_attributes()

        return Field(
            access_flags=flags_from_mask(FieldAccess, access),
            name_index=name_idx,
            descriptor_index=desc_idx,
        )

    def _read_method(self) -> Method:
        """Read a method."""
        access = self.read_u2()
        name_idx = self.read_u2()
        desc_idx = self.read_u2()

        code = None
        for name, info in self._read_attributes():
            if name == "Code":
                code = self._read_code(info)
            else:
                logger.debug("Skipping method attribute %s", name)

        return Method(
            access_flags=flags_from_mask(MethodAccess, access),
            name_index=name_idx,
            descriptor_index=desc_idx,
            code=code,
        )

    def read(self) -> ClassFile:
        """Read the class file and return ClassFile."""
        # Magic number
        magic = self.read_u4()
        if magic != MAGIC:
            raise ClassFormatError(f"Invalid class file magic: {hex(magic)}")

        # Version
        minor = self.read_u2()
        major = self.read_u2()

        # Constant pool
        self.constant_pool = self._read_constant_pool()

        # Access flags
        access_flags = self.read_u2()

        # This/super class
        this_class = self.read_u2()
        super_class = self.read_u2()

        # Interfaces
        interfaces_count = self.read_u2()
        interfaces = tuple(self.read_u2() for _ in range(interfaces_count))

        # Fields
        fields_count = self.read_u2()
        fields = tuple(self._read_field() for _ in range(fields_count))

        # Methods
        methods_count = self.read_u2()
        methods = tuple(self._read_method() for _ in range(methods_count))
        logger.debug("Read %d fields and %d methods", fields_count, methods_count)

        # Class attributes
        source_file_index = None
        for name, info in self._read_attributes():
            if name == "SourceFile":
                source_file_index = ByteReader(info).read_u2()
            else:
                logger.debug("Skipping class attribute %s", name)

        return ClassFile(
            minor_version=minor,
            major_version=major,
            access_flags=flags_from_mask(ClassAccess, access_flags),
            this_class=this_class,
            super_class=super_class,
            interfaces=interfaces,
            constant_pool=self.constant_pool,
            fields=fields,
            methods=methods,
            source_file_index=source_file_index,
        )


def read_class_bytes(data: bytes) -> ClassFile:
    """Decode a class file held in memory."""
    reader = ClassReader(data)
    try:
        return reader.read()
    except ClassFormatError:
        raise
    except JavapError as e:
        # A bad index while decoding attribute names means the file itself
        # is malformed.
        raise ClassFormatError(f"Malformed class file: {e}") from e


def read_class_file(path: str | Path) -> ClassFile:
    """Read a single class file."""
    data = Path(path).read_bytes()
    logger.debug("Read %d bytes from %s", len(data), path)
    return read_class_bytes(data)
