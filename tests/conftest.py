"""Shared fixtures: hand-built class models and an in-memory class file writer."""

import struct
from typing import Optional

import pytest

from pyjavap.bytecode import Instruction, Opcode
from pyjavap.classfile import (
    ClassAccess,
    ClassFile,
    Code,
    ConstantClass,
    ConstantFieldref,
    ConstantMethodref,
    ConstantNameAndType,
    ConstantPool,
    ConstantPoolTag,
    ConstantUtf8,
    Method,
    MethodAccess,
)


class ClassBytesBuilder:
    """Assembles class file bytes for reader and CLI tests."""

    def __init__(self, name: str, super_class: str = "java/lang/Object",
                 version: tuple[int, int] = (52, 0)):
        self.version = version
        self.access_flags = ClassAccess.PUBLIC | ClassAccess.SUPER
        self._entries: list[Optional[tuple]] = []
        self._cache: dict = {}
        self.methods: list[bytes] = []
        self.fields: list[bytes] = []
        self.attributes: list[bytes] = []
        self.this_class = self.add_class(name)
        self.super_class = self.add_class(super_class)

    def _add(self, entry: tuple) -> int:
        if entry in self._cache:
            return self._cache[entry]
        self._entries.append(entry)
        idx = len(self._entries)
        self._cache[entry] = idx
        # Long and Double take two slots
        if entry[0] in (ConstantPoolTag.LONG, ConstantPoolTag.DOUBLE):
            self._entries.append(None)
        return idx

    def add_utf8(self, value: str) -> int:
        return self._add((ConstantPoolTag.UTF8, value))

    def add_integer(self, value: int) -> int:
        return self._add((ConstantPoolTag.INTEGER, value))

    def add_long(self, value: int) -> int:
        return self._add((ConstantPoolTag.LONG, value))

    def add_double(self, value: float) -> int:
        return self._add((ConstantPoolTag.DOUBLE, value))

    def add_class(self, internal_name: str) -> int:
        return self._add((ConstantPoolTag.CLASS, self.add_utf8(internal_name)))

    def add_string(self, value: str) -> int:
        return self._add((ConstantPoolTag.STRING, self.add_utf8(value)))

    def add_name_and_type(self, name: str, descriptor: str) -> int:
        return self._add((ConstantPoolTag.NAME_AND_TYPE, self.add_utf8(name), self.add_utf8(descriptor)))

    def add_fieldref(self, class_name: str, name: str, descriptor: str) -> int:
        return self._add((ConstantPoolTag.FIELDREF, self.add_class(class_name),
                          self.add_name_and_type(name, descriptor)))

    def add_methodref(self, class_name: str, name: str, descriptor: str) -> int:
        return self._add((ConstantPoolTag.METHODREF, self.add_class(class_name),
                          self.add_name_and_type(name, descriptor)))

    def add_method(self, access: int, name: str, descriptor: str, code: Optional[bytes] = None,
                   max_stack: int = 1, max_locals: int = 1,
                   exception_table: tuple = (), extra_attributes: tuple = ()):
        out = bytearray()
        out.extend(struct.pack(">HHH", access, self.add_utf8(name), self.add_utf8(descriptor)))
        attrs = [self._attribute(attr_name, info) for attr_name, info in extra_attributes]
        if code is not None:
            body = bytearray(struct.pack(">HHI", max_stack, max_locals, len(code)))
            body.extend(code)
            body.extend(struct.pack(">H", len(exception_table)))
            for entry in exception_table:
                body.extend(struct.pack(">HHHH", *entry))
            body.extend(struct.pack(">H", 0))
            attrs.insert(0, self._attribute("Code", bytes(body)))
        out.extend(struct.pack(">H", len(attrs)))
        for attr in attrs:
            out.extend(attr)
        self.methods.append(bytes(out))

    def add_field(self, access: int, name: str, descriptor: str):
        self.fields.append(struct.pack(">HHHH", access, self.add_utf8(name), self.add_utf8(descriptor), 0))

    def set_source_file(self, source_file: str):
        self.attributes.append(self._attribute("SourceFile", struct.pack(">H", self.add_utf8(source_file))))

    def _attribute(self, name: str, info: bytes) -> bytes:
        return struct.pack(">HI", self.add_utf8(name), len(info)) + info

    def _write_pool(self, out: bytearray):
        out.extend(struct.pack(">H", len(self._entries) + 1))
        for entry in self._entries:
            if entry is None:
                continue
            tag = entry[0]
            out.append(tag)
            if tag == ConstantPoolTag.UTF8:
                data = entry[1].encode("utf-8")
                out.extend(struct.pack(">H", len(data)))
                out.extend(data)
            elif tag == ConstantPoolTag.INTEGER:
                out.extend(struct.pack(">i", entry[1]))
            elif tag == ConstantPoolTag.LONG:
                out.extend(struct.pack(">q", entry[1]))
            elif tag == ConstantPoolTag.DOUBLE:
                out.extend(struct.pack(">d", entry[1]))
            elif tag in (ConstantPoolTag.CLASS, ConstantPoolTag.STRING):
                out.extend(struct.pack(">H", entry[1]))
            else:
                out.extend(struct.pack(">HH", entry[1], entry[2]))

    def to_bytes(self) -> bytes:
        out = bytearray(struct.pack(">IHH", 0xCAFEBABE, self.version[1], self.version[0]))
        self._write_pool(out)
        out.extend(struct.pack(">HHH", int(self.access_flags), self.this_class, self.super_class))
        out.extend(struct.pack(">H", 0))  # interfaces
        out.extend(struct.pack(">H", len(self.fields)))
        for field_bytes in self.fields:
            out.extend(field_bytes)
        out.extend(struct.pack(">H", len(self.methods)))
        for method_bytes in self.methods:
            out.extend(method_bytes)
        out.extend(struct.pack(">H", len(self.attributes)))
        for attr in self.attributes:
            out.extend(attr)
        return bytes(out)


def build_dummy_bytes() -> bytes:
    """Bytes of ``public class Dummy {}`` with its default constructor."""
    builder = ClassBytesBuilder("Dummy")
    init = builder.add_methodref("java/lang/Object", "<init>", "()V")
    builder.add_method(
        MethodAccess.PUBLIC, "<init>", "()V",
        code=bytes([Opcode.ALOAD_0, Opcode.INVOKESPECIAL]) + struct.pack(">H", init) + bytes([Opcode.RETURN]),
        max_stack=1, max_locals=1,
    )
    builder.set_source_file("Dummy.java")
    return builder.to_bytes()


@pytest.fixture
def dummy_bytes():
    return build_dummy_bytes()


@pytest.fixture
def dummy_class():
    """Model of Dummy.class laid out the way javac writes it."""
    pool = ConstantPool([
        ConstantMethodref(3, 10),        # 1
        ConstantClass(11),               # 2
        ConstantClass(12),               # 3
        ConstantUtf8("<init>"),          # 4
        ConstantUtf8("()V"),             # 5
        ConstantUtf8("Code"),            # 6
        ConstantUtf8("LineNumberTable"), # 7
        ConstantUtf8("SourceFile"),      # 8
        ConstantUtf8("Dummy.java"),      # 9
        ConstantNameAndType(4, 5),       # 10
        ConstantUtf8("Dummy"),           # 11
        ConstantUtf8("java/lang/Object"),  # 12
    ])
    constructor = Method(
        access_flags=frozenset({MethodAccess.PUBLIC}),
        name_index=4,
        descriptor_index=5,
        code=Code(
            max_stack=1,
            max_locals=1,
            instructions=(
                (0, Instruction(Opcode.ALOAD_0)),
                (1, Instruction(Opcode.INVOKESPECIAL, (1,))),
                (4, Instruction(Opcode.RETURN)),
            ),
        ),
    )
    return ClassFile(
        minor_version=0,
        major_version=52,
        access_flags=frozenset({ClassAccess.SUPER, ClassAccess.PUBLIC}),
        this_class=2,
        super_class=3,
        constant_pool=pool,
        methods=(constructor,),
        source_file_index=9,
    )


@pytest.fixture
def intbox_class():
    """Model of IntBox.class: an int field, a constructor and a getter."""
    pool = ConstantPool([
        ConstantMethodref(4, 15),        # 1
        ConstantFieldref(3, 16),         # 2
        ConstantClass(17),               # 3
        ConstantClass(18),               # 4
        ConstantUtf8("value"),           # 5
        ConstantUtf8("I"),               # 6
        ConstantUtf8("<init>"),          # 7
        ConstantUtf8("(I)V"),            # 8
        ConstantUtf8("Code"),            # 9
        ConstantUtf8("LineNumberTable"), # 10
        ConstantUtf8("getValue"),        # 11
        ConstantUtf8("()I"),             # 12
        ConstantUtf8("SourceFile"),      # 13
        ConstantUtf8("IntBox.java"),     # 14
        ConstantNameAndType(7, 19),      # 15
        ConstantNameAndType(5, 6),       # 16
        ConstantUtf8("IntBox"),          # 17
        ConstantUtf8("java/lang/Object"),  # 18
        ConstantUtf8("()V"),             # 19
    ])
    constructor = Method(
        access_flags=frozenset({MethodAccess.PUBLIC}),
        name_index=7,
        descriptor_index=8,
        code=Code(
            max_stack=2,
            max_locals=2,
            instructions=(
                (0, Instruction(Opcode.ALOAD_0)),
                (1, Instruction(Opcode.INVOKESPECIAL, (1,))),
                (4, Instruction(Opcode.ALOAD_0)),
                (5, Instruction(Opcode.ILOAD_1)),
                (6, Instruction(Opcode.PUTFIELD, (2,))),
                (9, Instruction(Opcode.RETURN)),
            ),
        ),
    )
    get_value = Method(
        access_flags=frozenset({MethodAccess.PUBLIC}),
        name_index=11,
        descriptor_index=12,
        code=Code(
            max_stack=1,
            max_locals=1,
            instructions=(
                (0, Instruction(Opcode.ALOAD_0)),
                (1, Instruction(Opcode.GETFIELD, (2,))),
                (4, Instruction(Opcode.IRETURN)),
            ),
        ),
    )
    return ClassFile(
        minor_version=0,
        major_version=52,
        access_flags=frozenset({ClassAccess.PUBLIC, ClassAccess.SUPER}),
        this_class=3,
        super_class=4,
        constant_pool=pool,
        methods=(constructor, get_value),
        source_file_index=14,
    )
