from __future__ import annotations
import logging
import re
import threading
import types
from collections.abc import Mapping as AbcMapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Tuple, Union, get_args, get_origin
from typing_extensions import Annotated
from pydantic import BaseModel

from .errors import ConversionError, NullToPrimitiveError, PropertyError
from .settings import Settings

logger = logging.getLogger(__name__)

# A converter receives the raw value and the (already unwrapped) target type and either
# returns the converted value or raises ValueError/TypeError/ArithmeticError to reject it.
Converter = Callable[[Any, Any], Any]

PRIMITIVE_TYPES = (int, float, bool, complex)
ARRAY_TYPES = (list, tuple, set, frozenset)

_INT_RE = re.compile(r"^[+-]?\d+$", re.ASCII)
_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$", re.ASCII)

# -----------------------------
# Type helpers
# -----------------------------

def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is types.UnionType

def unwrap_optional(target: Any) -> Tuple[Any, bool]:
    """Strip ``Optional``/``Annotated`` wrappers. Returns (inner type, nullable)."""
    if get_origin(target) is Annotated:
        target = get_args(target)[0]
    if not _is_union(target):
        return target, target is type(None)
    args = get_args(target)
    rest = tuple(a for a in args if a is not type(None))
    nullable = len(rest) != len(args)
    if len(rest) == 1:
        return unwrap_optional(rest[0])[0], nullable
    return Union[rest], nullable

def is_primitive(target: Any) -> bool:
    return target in PRIMITIVE_TYPES

def is_nullable(target: Any) -> bool:
    if target is None:
        return True
    base, nullable = unwrap_optional(target)
    return nullable or not is_primitive(base)

def array_origin(target: Any) -> Optional[type]:
    origin = get_origin(target) or target
    return origin if origin in ARRAY_TYPES else None

def element_type(target: Any) -> Any:
    """Element type of ``list[int]``-like annotations, value type of ``dict[str, int]``; None when undeclared."""
    if target is None:
        return None
    base, _ = unwrap_optional(target)
    origin = get_origin(base)
    args = get_args(base)
    if origin in ARRAY_TYPES and args:
        return args[0] if args[0] is not Ellipsis else None
    if isinstance(origin, type) and issubclass(origin, AbcMapping) and len(args) == 2:
        return args[1]
    return None

def is_instance(value: Any, target: Any) -> bool:
    """isinstance() that accepts parametrised generics (checked against their origin)."""
    if not _is_union(target):
        target = get_origin(target) or target
    try:
        return isinstance(value, target)
    except TypeError:
        return False

def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))

# -----------------------------
# Default converters
# -----------------------------

def _to_int(value: Any, target: Any) -> int:
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("value has a fractional part")
        return int(value)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValueError("value has a fractional part")
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if not _INT_RE.match(s):
            raise ValueError("not an integer literal")
        return int(s)
    raise TypeError(f"unsupported source type {type(value).__name__}")

def _to_float(value: Any, target: Any) -> float:
    if isinstance(value, (bool, int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not _FLOAT_RE.match(s):
            raise ValueError("not a decimal literal")
        return float(s)
    raise TypeError(f"unsupported source type {type(value).__name__}")

def _to_decimal(value: Any, target: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, int)):
        return Decimal(int(value))
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        s = value.strip()
        if not _FLOAT_RE.match(s):
            raise ValueError("not a decimal literal")
        return Decimal(s)
    raise TypeError(f"unsupported source type {type(value).__name__}")

def _bool_converter(settings: Settings) -> Converter:
    trues = {s.lower() for s in settings.true_strings}
    falses = {s.lower() for s in settings.false_strings}

    def _to_bool(value: Any, target: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in trues:
                return True
            if s in falses:
                return False
            raise ValueError("not a recognised boolean word")
        raise TypeError(f"unsupported source type {type(value).__name__}")
    return _to_bool

def _string_converter(settings: Settings) -> Converter:
    def _to_str(value: Any, target: Any) -> Optional[str]:
        if isinstance(value, str):
            return value
        if _is_sequence(value):
            # arrays render through their first element
            return _to_str(value[0], target) if value else None
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return value.strftime(settings.datetime_format)
        if isinstance(value, date):
            return value.strftime(settings.date_format)
        if isinstance(value, time):
            return value.strftime(settings.time_format)
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, Decimal):
            return format(value, "f")
        return str(value)
    return _to_str

def _to_enum(value: Any, target: Any) -> Enum:
    if isinstance(value, target):
        return value
    if isinstance(value, str):
        name = value.strip()
        if name in target.__members__:
            return target.__members__[name]
    return target(value)  # by value; raises ValueError on a miss

def _to_model(value: Any, target: Any) -> BaseModel:
    if isinstance(value, target):
        return value
    if isinstance(value, BaseModel):
        return target.model_validate(value.model_dump())
    if isinstance(value, AbcMapping):
        return target.model_validate(dict(value))
    raise TypeError(f"unsupported source type {type(value).__name__}")


class ArrayConverter:
    """Converts sequences and delimited strings (``"{1, 2, 3}"``) into list/tuple/set values.

    Elements are converted one by one through the snapshot doing the conversion, so custom
    element converters apply inside arrays too.
    """

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def parse_elements(self, text: str) -> List[str]:
        s = text.strip()
        if s.startswith("{") and s.endswith("}"):
            s = s[1:-1]
        out: List[str] = []
        for tok in s.split(self.delimiter):
            tok = tok.strip()
            if len(tok) >= 2 and tok[0] == tok[-1] == '"':
                tok = tok[1:-1]
            if tok:
                out.append(tok)
        return out

    def __call__(self, value: Any, target: Any, convert_element: Optional[Callable[[Any, Any], Any]] = None) -> Any:
        origin = array_origin(target) or list
        args = get_args(target)
        if isinstance(value, str):
            items = self.parse_elements(value)
        elif isinstance(value, ARRAY_TYPES):
            items = list(value)
        else:
            items = [value]
        conv = convert_element or (lambda v, t: v)
        if origin is tuple and args and Ellipsis not in args:
            if len(args) != len(items):
                raise ValueError(f"expected {len(args)} elements, got {len(items)}")
            return tuple(conv(v, t) for v, t in zip(items, args))
        elem = args[0] if args and args[0] is not Ellipsis else None
        return origin(conv(v, elem) for v in items)


def default_converters(settings: Settings) -> Dict[Any, Converter]:
    arrays = ArrayConverter(settings.array_delimiter)
    table: Dict[Any, Converter] = {
        str: _string_converter(settings),
        int: _to_int,
        float: _to_float,
        Decimal: _to_decimal,
        bool: _bool_converter(settings),
        Enum: _to_enum,
        BaseModel: _to_model,
    }
    for tp in ARRAY_TYPES:
        table[tp] = arrays
    # date/datetime/time: formatting only (via str); parsing needs an explicit registration
    return table

# -----------------------------
# Registry
# -----------------------------

def _lookup_in(table: Mapping[Any, Converter], target: Any) -> Optional[Converter]:
    try:
        if target in table:
            return table[target]
    except TypeError:
        return None
    origin = get_origin(target)
    if origin is not None and origin in table:
        return table[origin]
    if isinstance(target, type):
        for family in (Enum, BaseModel):
            if issubclass(target, family) and family in table:
                return table[family]
    return None


class ConverterSnapshot:
    """Immutable view of a registry at one moment; a whole resolution uses one snapshot."""

    def __init__(self, defaults: Mapping[Any, Converter], custom: Mapping[Any, Converter], settings: Settings):
        self.defaults = defaults
        self.custom = custom
        self.settings = settings

    def lookup(self, target: Any) -> Optional[Converter]:
        return _lookup_in(self.custom, target) or _lookup_in(self.defaults, target)

    def convert(self, value: Any, target: Any) -> Any:
        if target is None or target is Any or target is object:
            return value
        base, nullable = unwrap_optional(target)
        if value is None:
            if not nullable and is_primitive(base):
                raise NullToPrimitiveError(base)
            return None
        if _is_union(base):
            return self._convert_union(value, base)
        if get_origin(base) is Literal:
            if value in get_args(base):
                return value
            raise ConversionError(value, base, f"expected one of {list(get_args(base))}")
        conv = self.lookup(base)
        if conv is None:
            if is_instance(value, base):
                return value
            if self.settings.missing_converter == "string":
                return self.to_string(value)
            raise ConversionError(value, base, "no converter registered")
        try:
            if isinstance(conv, ArrayConverter):
                return conv(value, base, self.convert)
            return conv(value, base)
        except PropertyError:
            raise
        except (ValueError, TypeError, ArithmeticError, LookupError) as e:
            raise ConversionError(value, base, str(e)) from e

    def _convert_union(self, value: Any, target: Any) -> Any:
        arms = get_args(target)
        if any(is_instance(value, a) for a in arms):
            return value
        for arm in arms:
            try:
                return self.convert(value, arm)
            except ConversionError:
                continue
        raise ConversionError(value, target, "no union member accepts the value")

    def to_string(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return self.convert(value, str)


class ConverterRegistry:
    """Layered target-type → converter table: custom entries shadow the defaults.

    Mutations build a new snapshot under a lock and swap it in one assignment, so a reader
    holding a snapshot never observes a half-applied change.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._defaults = MappingProxyType(default_converters(self.settings))
        self._lock = threading.Lock()
        self._snapshot = ConverterSnapshot(self._defaults, MappingProxyType({}), self.settings)

    def snapshot(self) -> ConverterSnapshot:
        return self._snapshot

    def _swap(self, custom: Dict[Any, Converter]) -> None:
        self._snapshot = ConverterSnapshot(self._defaults, MappingProxyType(custom), self.settings)

    def register(self, target: Any, converter: Converter) -> None:
        if not callable(converter):
            raise TypeError("converter must be callable")
        with self._lock:
            custom = dict(self._snapshot.custom)
            custom[target] = converter
            self._swap(custom)
        logger.debug("registered converter for %r", target)

    def deregister(self, target: Any) -> bool:
        with self._lock:
            custom = dict(self._snapshot.custom)
            removed = custom.pop(target, None) is not None
            if removed:
                self._swap(custom)
        logger.debug("deregistered converter for %r (present=%s)", target, removed)
        return removed

    def reset(self) -> None:
        with self._lock:
            self._swap({})
        logger.debug("converter registry reset to defaults")

    def lookup(self, target: Any) -> Optional[Converter]:
        return self._snapshot.lookup(target)

    def convert(self, value: Any, target: Any) -> Any:
        return self._snapshot.convert(value, target)

    def to_string(self, value: Any) -> Optional[str]:
        return self._snapshot.to_string(value)


# Process-wide registry used by the module-level API
_DEFAULT_REGISTRY = ConverterRegistry()

def default_registry() -> ConverterRegistry:
    return _DEFAULT_REGISTRY

def register_converter(target: Any, converter: Converter) -> None:
    _DEFAULT_REGISTRY.register(target, converter)

def deregister_converter(target: Any) -> bool:
    return _DEFAULT_REGISTRY.deregister(target)

def reset_converters() -> None:
    _DEFAULT_REGISTRY.reset()

def convert(value: Any, target: Any) -> Any:
    return _DEFAULT_REGISTRY.convert(value, target)
