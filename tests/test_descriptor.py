"""Tests for the descriptor parser."""

import pytest

from pyjavap.descriptor import (
    ArrayType,
    BaseType,
    DescriptorParser,
    MethodDescriptor,
    ObjectType,
    parse_field_descriptor,
    parse_method_descriptor,
)
from pyjavap.errors import DescriptorError


@pytest.fixture
def parser():
    return DescriptorParser()


class TestFieldDescriptors:
    def test_base_type(self, parser):
        assert parser.parse_field("I") == BaseType("I")
        assert parser.parse_field("Z").name == "boolean"

    def test_object_type(self, parser):
        result = parser.parse_field("Ljava/lang/String;")
        assert result == ObjectType("java/lang/String")
        assert result.name == "java.lang.String"

    def test_nested_array(self, parser):
        result = parser.parse_field("[[J")
        assert result == ArrayType(ArrayType(BaseType("J")))
        assert result.name == "long[][]"
        assert result.slots == 1

    def test_wide_types_take_two_slots(self, parser):
        assert parser.parse_field("J").slots == 2
        assert parser.parse_field("D").slots == 2
        assert parser.parse_field("F").slots == 1

    def test_void_is_not_a_field_type(self, parser):
        with pytest.raises(DescriptorError):
            parser.parse_field("V")

    @pytest.mark.parametrize("text", ["", "Q", "Ljava/lang/String", "II"])
    def test_malformed(self, parser, text):
        with pytest.raises(DescriptorError):
            parser.parse_field(text)


class TestMethodDescriptors:
    def test_no_arguments(self):
        assert parse_method_descriptor("()V") == MethodDescriptor((), BaseType("V"))

    def test_mixed_arguments(self):
        result = parse_method_descriptor("(IJ[Ljava/lang/Object;D)Ljava/lang/String;")
        assert result.parameters == (
            BaseType("I"),
            BaseType("J"),
            ArrayType(ObjectType("java/lang/Object")),
            BaseType("D"),
        )
        assert result.return_type == ObjectType("java/lang/String")

    def test_argument_slots(self):
        descriptor = parse_method_descriptor("(IJD)V")
        assert descriptor.argument_slots(static=True) == 5
        assert descriptor.argument_slots(static=False) == 6

    def test_instance_method_without_arguments_has_this(self):
        assert parse_method_descriptor("()I").argument_slots(static=False) == 1

    @pytest.mark.parametrize("text", ["(V)V", "()", "I", "(I"])
    def test_malformed(self, text):
        with pytest.raises(DescriptorError):
            parse_method_descriptor(text)

    def test_module_level_field_parser(self):
        assert parse_field_descriptor("C") == BaseType("C")
