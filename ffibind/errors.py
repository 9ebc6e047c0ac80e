"""Generation-time errors"""

from typing import Optional, Sequence

from .types import TypeReference


class FFIBindError(Exception):
    """Base class for all generator failures"""


class UnsupportedTypeError(FFIBindError):
    """A type variant the generator cannot map was referenced"""

    def __init__(self, type_: TypeReference, item: Optional[str] = None):
        self.type_ = type_
        self.item = item
        if item:
            message = f"unsupported type {type_} referenced by {item}"
        else:
            message = f"unsupported type {type_}"
        super().__init__(message)

    def for_item(self, item: str) -> "UnsupportedTypeError":
        """Copy of this error attributed to the declaring item"""
        return UnsupportedTypeError(self.type_, item)


class GenerationError(FFIBindError):
    """One or more interface items could not be generated"""

    def __init__(self, failures: Sequence[UnsupportedTypeError]):
        self.failures = list(failures)
        lines = [f"{len(self.failures)} interface item(s) could not be generated:"]
        lines.extend(f"  - {failure}" for failure in self.failures)
        super().__init__("\n".join(lines))


class IDLSyntaxError(FFIBindError):
    """Malformed or unresolvable interface definition"""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
