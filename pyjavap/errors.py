"""
Exceptions raised while reading and disassembling class files.
"""


class JavapError(Exception):
    """Base class for all disassembler errors."""
    pass


class OutOfRangeIndexError(JavapError, IndexError):
    """A constant pool lookup addressed a missing or mismatched entry."""

    def __init__(self, index: int, expected: str, reason: str = ""):
        self.index = index
        self.expected = expected
        message = f"Invalid constant pool index #{index} (expected {expected})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MissingCodeError(JavapError):
    """A method has no Code attribute."""

    def __init__(self, method_name: str):
        self.method_name = method_name
        super().__init__(f"Method {method_name} has no Code attribute")


class ClassFormatError(JavapError):
    """The class file bytes could not be decoded."""
    pass


class DescriptorError(JavapError):
    """A field or method descriptor is malformed."""
    pass
