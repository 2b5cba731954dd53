"""
Read-only model of a decoded Java class file.

The constant pool is an arena addressed by 1-based index; every other part of
the model refers to it by index and resolves names through ``ConstantPool``.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Iterable, Iterator, Optional, TYPE_CHECKING

from .errors import OutOfRangeIndexError

if TYPE_CHECKING:
    from .bytecode import Instruction


CONSTRUCTOR_NAME = "<init>"


class ClassAccess(IntEnum):
    # Declaration order is the display order of the flags line.
    PUBLIC = 0x0001
    FINAL = 0x0010
    SUPER = 0x0020
    INTERFACE = 0x0200
    ABSTRACT = 0x0400
    SYNTHETIC = 0x1000
    ANNOTATION = 0x2000
    ENUM = 0x4000
    MODULE = 0x8000


class MethodAccess(IntEnum):
    PUBLIC = 0x0001
    PRIVATE = 0x0002
    PROTECTED = 0x0004
    STATIC = 0x0008
    FINAL = 0x0010
    SYNCHRONIZED = 0x0020
    BRIDGE = 0x0040
    VARARGS = 0x0080
    NATIVE = 0x0100
    ABSTRACT = 0x0400
    STRICT = 0x0800
    SYNTHETIC = 0x1000


class FieldAccess(IntEnum):
    PUBLIC = 0x0001
    PRIVATE = 0x0002
    PROTECTED = 0x0004
    STATIC = 0x0008
    FINAL = 0x0010
    VOLATILE = 0x0040
    TRANSIENT = 0x0080
    SYNTHETIC = 0x1000
    ENUM = 0x4000


def flags_from_mask(flag_type: type[IntEnum], mask: int) -> frozenset:
    """Split an access_flags bit mask into a set of enum members.

    Bits with no member in ``flag_type`` are ignored.
    """
    return frozenset(flag for flag in flag_type if mask & flag.value)


class ConstantPoolTag(IntEnum):
    UTF8 = 1
    INTEGER = 3
    FLOAT = 4
    LONG = 5
    DOUBLE = 6
    CLASS = 7
    STRING = 8
    FIELDREF = 9
    METHODREF = 10
    INTERFACE_METHODREF = 11
    NAME_AND_TYPE = 12
    METHOD_HANDLE = 15
    METHOD_TYPE = 16
    INVOKE_DYNAMIC = 18


class ReferenceKind(IntEnum):
    """Kinds of a CONSTANT_MethodHandle entry."""
    getField = 1
    getStatic = 2
    putField = 3
    putStatic = 4
    invokeVirtual = 5
    invokeStatic = 6
    invokeSpecial = 7
    newInvokeSpecial = 8
    invokeInterface = 9


class ConstantPoolEntry:
    """Base class of the constant pool variants."""
    tag: ClassVar[ConstantPoolTag]
    label: ClassVar[str]


@dataclass(frozen=True)
class ConstantUtf8(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.UTF8
    label: ClassVar[str] = "Utf8"
    text: str


@dataclass(frozen=True)
class ConstantInteger(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INTEGER
    label: ClassVar[str] = "Integer"
    value: int


@dataclass(frozen=True)
class ConstantFloat(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.FLOAT
    label: ClassVar[str] = "Float"
    value: float


@dataclass(frozen=True)
class ConstantLong(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.LONG
    label: ClassVar[str] = "Long"
    value: int


@dataclass(frozen=True)
class ConstantDouble(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.DOUBLE
    label: ClassVar[str] = "Double"
    value: float


@dataclass(frozen=True)
class ConstantClass(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.CLASS
    label: ClassVar[str] = "Class"
    name_index: int


@dataclass(frozen=True)
class ConstantString(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.STRING
    label: ClassVar[str] = "String"
    string_index: int


@dataclass(frozen=True)
class ConstantFieldref(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.FIELDREF
    label: ClassVar[str] = "Fieldref"
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantMethodref(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHODREF
    label: ClassVar[str] = "Methodref"
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantInterfaceMethodref(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INTERFACE_METHODREF
    label: ClassVar[str] = "InterfaceMethodref"
    class_index: int
    name_and_type_index: int


@dataclass(frozen=True)
class ConstantNameAndType(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.NAME_AND_TYPE
    label: ClassVar[str] = "NameAndType"
    name_index: int
    descriptor_index: int


@dataclass(frozen=True)
class ConstantMethodHandle(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHOD_HANDLE
    label: ClassVar[str] = "MethodHandle"
    reference_kind: int
    reference_index: int


@dataclass(frozen=True)
class ConstantMethodType(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.METHOD_TYPE
    label: ClassVar[str] = "MethodType"
    descriptor_index: int


@dataclass(frozen=True)
class ConstantInvokeDynamic(ConstantPoolEntry):
    tag: ClassVar[ConstantPoolTag] = ConstantPoolTag.INVOKE_DYNAMIC
    label: ClassVar[str] = "InvokeDynamic"
    bootstrap_method_attr_index: int
    name_and_type_index: int


MEMBER_REF_TYPES = (ConstantFieldref, ConstantMethodref, ConstantInterfaceMethodref)


class ConstantPool:
    """Read-only constant pool, indexed from 1.

    ``entries`` holds one item per slot. The slot following a Long or Double
    is ``None``; it counts toward the pool size but cannot be looked up.
    """

    def __init__(self, entries: Iterable[Optional[ConstantPoolEntry]] = ()):
        self._entries: tuple[Optional[ConstantPoolEntry], ...] = tuple(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Optional[ConstantPoolEntry]]:
        return iter(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConstantPool):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ConstantPool({list(self._entries)!r})"

    def items(self) -> Iterator[tuple[int, ConstantPoolEntry]]:
        """Yield ``(index, entry)`` pairs, skipping unusable slots."""
        for i, entry in enumerate(self._entries, start=1):
            if entry is not None:
                yield i, entry

    def get(self, index: int, kind=ConstantPoolEntry) -> ConstantPoolEntry:
        """Return the entry at ``index``, which must be an instance of ``kind``."""
        if isinstance(kind, tuple):
            expected = " or ".join(k.label for k in kind)
        else:
            expected = getattr(kind, "label", "entry")
        if index < 1 or index > len(self._entries):
            raise OutOfRangeIndexError(index, expected, f"pool has {len(self._entries)} entries")
        entry = self._entries[index - 1]
        if entry is None:
            raise OutOfRangeIndexError(index, expected, "second slot of a Long or Double")
        if not isinstance(entry, kind):
            raise OutOfRangeIndexError(index, expected, f"found {entry.label}")
        return entry

    def resolve_utf8(self, index: int) -> str:
        return self.get(index, ConstantUtf8).text

    def resolve_class(self, index: int) -> str:
        """Binary name of the class referenced by the Class entry at ``index``."""
        return self.resolve_utf8(self.get(index, ConstantClass).name_index)

    def resolve_name_and_type(self, index: int) -> str:
        """Render a NameAndType entry as ``"name":descriptor``."""
        entry = self.get(index, ConstantNameAndType)
        name = self.resolve_utf8(entry.name_index)
        descriptor = self.resolve_utf8(entry.descriptor_index)
        return f'"{name}":{descriptor}'

    def resolve_member(self, index: int) -> str:
        """Render a field or method reference as ``class."name":descriptor``."""
        entry = self.get(index, MEMBER_REF_TYPES)
        return (
            f"{self.resolve_class(entry.class_index)}."
            f"{self.resolve_name_and_type(entry.name_and_type_index)}"
        )


@dataclass(frozen=True)
class ExceptionTableEntry:
    """An entry in a method's exception table."""
    start_pc: int
    end_pc: int  # exclusive
    handler_pc: int
    catch_type: int  # 0 catches everything, otherwise a Class entry index


@dataclass(frozen=True)
class Code:
    """Decoded Code attribute of a method."""
    max_stack: int
    max_locals: int
    instructions: tuple[tuple[int, "Instruction"], ...] = ()
    exception_table: tuple[ExceptionTableEntry, ...] = ()


@dataclass(frozen=True)
class Field:
    access_flags: frozenset
    name_index: int
    descriptor_index: int


@dataclass(frozen=True)
class Method:
    access_flags: frozenset
    name_index: int
    descriptor_index: int
    code: Optional[Code] = None

    @property
    def is_static(self) -> bool:
        return MethodAccess.STATIC in self.access_flags


@dataclass(frozen=True)
class ClassFile:
    """A fully decoded class file."""
    minor_version: int
    major_version: int
    access_flags: frozenset
    this_class: int
    constant_pool: ConstantPool
    methods: tuple[Method, ...] = ()
    super_class: int = 0
    interfaces: tuple[int, ...] = ()
    fields: tuple[Field, ...] = ()
    source_file_index: Optional[int] = None

    @property
    def class_name(self) -> str:
        return self.constant_pool.resolve_class(self.this_class)

    @property
    def super_class_name(self) -> Optional[str]:
        # java/lang/Object and module-info have no superclass
        if self.super_class == 0:
            return None
        return self.constant_pool.resolve_class(self.super_class)

    @property
    def interface_names(self) -> tuple[str, ...]:
        return tuple(self.constant_pool.resolve_class(i) for i in self.interfaces)

    @property
    def source_file(self) -> Optional[str]:
        """Name from the SourceFile attribute, or None when it is absent."""
        if self.source_file_index is None:
            return None
        return self.constant_pool.resolve_utf8(self.source_file_index)

    def method_name(self, method: Method) -> str:
        return self.constant_pool.resolve_utf8(method.name_index)

    def method_descriptor(self, method: Method) -> str:
        return self.constant_pool.resolve_utf8(method.descriptor_index)
