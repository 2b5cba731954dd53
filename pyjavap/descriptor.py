"""
Field and method descriptor parser using Lark.

Descriptors encode the type of a field or the parameter and return types of a
method, e.g. ``I``, ``[Ljava/lang/String;`` or ``(IJ)V``.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from lark import Lark, Transformer
from lark.exceptions import LarkError

from .errors import DescriptorError


GRAMMAR_FILE = Path(__file__).parent / "descriptor.lark"

BASE_TYPE_NAMES = {
    "B": "byte", "C": "char", "D": "double", "F": "float",
    "I": "int", "J": "long", "S": "short", "Z": "boolean", "V": "void",
}


@dataclass(frozen=True)
class BaseType:
    """Primitive type (B, C, D, F, I, J, S, Z) or void (V)."""
    descriptor: str

    @property
    def name(self) -> str:
        return BASE_TYPE_NAMES[self.descriptor]

    @property
    def slots(self) -> int:
        if self.descriptor == "V":
            return 0
        return 2 if self.descriptor in ("J", "D") else 1


@dataclass(frozen=True)
class ObjectType:
    """Class or interface type, by binary name (``java/lang/String``)."""
    class_name: str

    @property
    def name(self) -> str:
        return self.class_name.replace("/", ".")

    @property
    def slots(self) -> int:
        return 1


@dataclass(frozen=True)
class ArrayType:
    element: "FieldType"

    @property
    def name(self) -> str:
        return f"{self.element.name}[]"

    @property
    def slots(self) -> int:
        return 1


FieldType = Union[BaseType, ObjectType, ArrayType]


@dataclass(frozen=True)
class MethodDescriptor:
    parameters: tuple[FieldType, ...]
    return_type: FieldType

    def argument_slots(self, static: bool) -> int:
        """Local variable slots taken by the arguments, including ``this``."""
        slots = sum(param.slots for param in self.parameters)
        return slots if static else slots + 1


class DescriptorTransformer(Transformer):
    """Transforms the descriptor parse tree into type objects."""

    def field_descriptor(self, items):
        return items[0]

    def method_descriptor(self, items):
        *parameters, return_type = items
        return MethodDescriptor(parameters=tuple(parameters), return_type=return_type)

    def base_type(self, items):
        return BaseType(str(items[0]))

    def void_type(self, items):
        return BaseType("V")

    def object_type(self, items):
        # Strip the leading L and trailing ;
        return ObjectType(str(items[0])[1:-1])

    def array_type(self, items):
        return ArrayType(items[0])


class DescriptorParser:
    """Parser for field and method descriptors."""

    def __init__(self):
        with open(GRAMMAR_FILE, "r") as f:
            grammar = f.read()

        self._parser = Lark(
            grammar,
            parser="lalr",
            start=["field_descriptor", "method_descriptor"],
        )
        self._transformer = DescriptorTransformer()

    def _parse(self, text: str, start: str):
        try:
            tree = self._parser.parse(text, start=start)
        except LarkError as e:
            raise DescriptorError(f"Invalid descriptor {text!r}: {e}") from e
        return self._transformer.transform(tree)

    def parse_field(self, text: str) -> FieldType:
        return self._parse(text, "field_descriptor")

    def parse_method(self, text: str) -> MethodDescriptor:
        return self._parse(text, "method_descriptor")


_default_parser = None


def _get_parser() -> DescriptorParser:
    global _default_parser
    if _default_parser is None:
        _default_parser = DescriptorParser()
    return _default_parser


def parse_field_descriptor(text: str) -> FieldType:
    return _get_parser().parse_field(text)


def parse_method_descriptor(text: str) -> MethodDescriptor:
    return _get_parser().parse_method(text)
