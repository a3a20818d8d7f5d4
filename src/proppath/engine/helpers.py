from __future__ import annotations
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .accessor import PathLike, PropertyAccessor
from .errors import NullIntermediateError

# Small closures over a property path, for sorted()/filter()/map().

def _accessor(accessor: Optional[PropertyAccessor]) -> PropertyAccessor:
    return accessor or PropertyAccessor()

def property_key(path: PathLike, accessor: Optional[PropertyAccessor] = None) -> Callable[[Any], Tuple[Any, ...]]:
    """Sort key reading ``path``; objects whose value is None sort first."""
    acc = _accessor(accessor)

    def key(obj: Any) -> Tuple[Any, ...]:
        value = acc.get(obj, path)
        return (0,) if value is None else (1, value)
    return key

def property_equals(path: PathLike, expected: Any, ignore_null: bool = False,
                    accessor: Optional[PropertyAccessor] = None) -> Callable[[Any], bool]:
    """Predicate: the value at ``path`` equals ``expected``.

    With ``ignore_null`` a None somewhere along the path makes the predicate false
    instead of raising NullIntermediateError.
    """
    acc = _accessor(accessor)

    def predicate(obj: Any) -> bool:
        try:
            return acc.get(obj, path) == expected
        except NullIntermediateError:
            if ignore_null:
                return False
            raise
    return predicate

def property_values(objs: Iterable[Any], path: PathLike, accessor: Optional[PropertyAccessor] = None) -> List[Any]:
    acc = _accessor(accessor)
    return [acc.get(o, path) for o in objs]

def property_setter(path: PathLike, value: Any, accessor: Optional[PropertyAccessor] = None) -> Callable[[Any], None]:
    acc = _accessor(accessor)

    def apply(obj: Any) -> None:
        acc.set(obj, path, value)
    return apply
