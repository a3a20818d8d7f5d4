from __future__ import annotations
from collections.abc import Mapping, MutableMapping
from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable

from .errors import AmbiguousKindError

class ObjectKind(str, Enum):
    MAP = "map"
    DYNAMIC = "dynamic"
    RECORD = "record"

# Objects may pin their kind explicitly; this also settles objects that satisfy several contracts.
KIND_ATTRIBUTE = "__property_kind__"

# Name under which a dynamic bag exposes its own descriptor set; never copied.
DYNA_CLASS_PROPERTY = "dyna_class"


@runtime_checkable
class DynamicBag(Protocol):
    """Capability contract of a dynamic property bag.

    ``describe`` lists the bag's PropertyDescriptors in declaration order. The get/set
    family raises NoSuchPropertyError for unknown names and InvalidPathError when indexed
    or mapped access targets a descriptor not declared as such.
    """

    def describe(self) -> Sequence[Any]: ...
    def get(self, name: str) -> Any: ...
    def set(self, name: str, value: Any) -> None: ...
    def get_indexed(self, name: str, index: int) -> Any: ...
    def set_indexed(self, name: str, index: int, value: Any) -> None: ...
    def get_mapped(self, name: str, key: str) -> Any: ...
    def set_mapped(self, name: str, key: str, value: Any) -> None: ...


def is_map(obj: Any) -> bool:
    return isinstance(obj, Mapping)

def is_mutable_map(obj: Any) -> bool:
    return isinstance(obj, MutableMapping)

def is_dynamic_bag(obj: Any) -> bool:
    return not isinstance(obj, type) and isinstance(obj, DynamicBag)

def classify(obj: Any) -> ObjectKind:
    """Decide which capability a value is resolved through.

    Anything that is neither a map nor a bag is a structured record. An object matching
    both the map and the bag contract must declare ``__property_kind__``.
    """
    declared = getattr(type(obj), KIND_ATTRIBUTE, None)
    if declared is not None:
        return ObjectKind(declared)
    as_map = is_map(obj)
    as_bag = is_dynamic_bag(obj)
    if as_map and as_bag:
        raise AmbiguousKindError(
            f"{type(obj).__name__} satisfies both the map and the dynamic bag contracts; "
            f"set {KIND_ATTRIBUTE} to choose one"
        )
    if as_map:
        return ObjectKind.MAP
    if as_bag:
        return ObjectKind.DYNAMIC
    return ObjectKind.RECORD
