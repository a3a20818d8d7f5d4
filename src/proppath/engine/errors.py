from __future__ import annotations
from typing import Any, Optional


class PropertyError(Exception):
    """Base class for every failure raised while resolving, converting or copying properties."""


class MalformedPathError(PropertyError, ValueError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Malformed property path '{path}': {reason}")
        self.path = path
        self.reason = reason


class NoSuchPropertyError(PropertyError, AttributeError):
    def __init__(self, name: str, obj: Any = None, message: Optional[str] = None):
        owner = type(obj).__name__ if obj is not None else "object"
        super().__init__(message or f"Unknown property '{name}' on {owner}")
        self.name = name


class ReadOnlyPropertyError(NoSuchPropertyError):
    def __init__(self, name: str, obj: Any = None):
        owner = type(obj).__name__ if obj is not None else "object"
        super().__init__(name, obj, f"Property '{name}' has no mutator on {owner}")


class InvalidPathError(PropertyError):
    pass


class IndexOutOfBoundsError(InvalidPathError, IndexError):
    def __init__(self, name: str, index: int, size: Optional[int] = None):
        label = name or "<root>"
        suffix = f" (size {size})" if size is not None else ""
        super().__init__(f"Index {index} out of bounds for '{label}'{suffix}")
        self.index = index
        self.size = size


class NullIntermediateError(PropertyError):
    def __init__(self, path: str, step: str):
        super().__init__(f"Null property value for '{step}' while resolving '{path}'")
        self.path = path
        self.step = step


class ConversionError(PropertyError, ValueError):
    def __init__(self, value: Any, target: Any, reason: Optional[str] = None):
        tname = getattr(target, "__name__", None) or repr(target)
        msg = f"Cannot convert {value!r} to {tname}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.value = value
        self.target = target


class NullToPrimitiveError(ConversionError):
    def __init__(self, target: Any):
        super().__init__(None, target, "primitive slots cannot hold None")


class CopyError(PropertyError):
    def __init__(self, property_name: str, cause: BaseException):
        super().__init__(f"Copy aborted at property '{property_name}': {cause}")
        self.property_name = property_name


class AmbiguousKindError(PropertyError, TypeError):
    pass
