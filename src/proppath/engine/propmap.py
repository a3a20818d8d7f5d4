from __future__ import annotations
from collections.abc import Mapping, MutableMapping
from typing import Any, Iterator, List, Optional

from .accessor import PropertyAccessor
from .kinds import DYNA_CLASS_PROPERTY
from .path import simple_path


class PropertyMap(Mapping):
    """Read-only mapping view over the properties of a record or dynamic bag.

    Keys are the object's readable property names in its own enumeration order; every
    lookup reads the live value, so the view follows later changes to the object.
    """

    def __init__(self, obj: Any, accessor: Optional[PropertyAccessor] = None):
        if obj is None:
            raise ValueError("a property map needs an object to view")
        self.obj = obj
        self.accessor = accessor or PropertyAccessor()

    def _names(self) -> List[str]:
        return [n for n in self.accessor.property_names(self.obj) if n != DYNA_CLASS_PROPERTY]

    def __getitem__(self, key: Any) -> Any:
        if key not in self:
            raise KeyError(key)
        return self.accessor.read_simple(self.obj, key)

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and key in self._names()

    def __iter__(self) -> Iterator[str]:
        return iter(self._names())

    def __len__(self) -> int:
        return len(self._names())

    def type_of(self, key: str) -> Any:
        """Declared type of one property, None when the object declares none."""
        if key not in self:
            raise KeyError(key)
        return self.accessor.get_type(self.obj, simple_path(key))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.obj!r})"


class MutablePropertyMap(PropertyMap, MutableMapping):
    """Writable view: assignments go through the accessor and convert to the declared type.

    Properties cannot be removed; unknown names raise NoSuchPropertyError unless the
    underlying object creates properties on write.
    """

    def __setitem__(self, key: str, value: Any) -> None:
        self.accessor.write_simple(self.obj, key, value)

    def __delitem__(self, key: Any) -> None:
        raise TypeError(f"properties of {type(self.obj).__name__} cannot be removed")

    def clear(self) -> None:
        raise TypeError(f"properties of {type(self.obj).__name__} cannot be removed")


def property_map(obj: Any, accessor: Optional[PropertyAccessor] = None, read_only: bool = False) -> PropertyMap:
    cls = PropertyMap if read_only else MutablePropertyMap
    return cls(obj, accessor)
