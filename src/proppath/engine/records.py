from __future__ import annotations
import dataclasses
import inspect
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, List, Literal, Mapping, Optional, get_origin, get_type_hints
from pydantic import BaseModel

# Structured-record adapter. Naming conventions discovered on a class:
#   plain    get_<name>()            set_<name>(value)          (or a property / declared field)
#   indexed  get_<name>_at(index)    set_<name>_at(index, value)
#   mapped   get_<name>_for(key)     set_<name>_for(key, value)
# Booleans may also read through is_<name>().

class Shape(str, Enum):
    PLAIN = "plain"
    INDEXED = "indexed"
    MAPPED = "mapped"

_SUFFIX = {Shape.PLAIN: "", Shape.INDEXED: "_at", Shape.MAPPED: "_for"}
_MISSING = object()
_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)

@dataclass(frozen=True)
class AccessorSpec:
    member: str
    via: Literal["method", "property", "field"]
    value_type: Any = None

@dataclass(frozen=True)
class Accessor:
    """A getter or setter bound to one object; calling it performs the access."""
    name: str
    shape: Shape
    write: bool
    value_type: Any
    call: Callable[..., Any]

    def __call__(self, *args: Any) -> Any:
        return self.call(*args)

FindAccessor = Callable[[Any, str, Shape, bool], Optional[Accessor]]

# -------- introspection helpers --------

def _hints(obj: Any) -> Dict[str, Any]:
    try:
        return get_type_hints(obj)
    except (NameError, TypeError):
        # unresolved forward references: fall back to no type information
        return {}

def _positional_params(fn: Callable) -> Optional[List[inspect.Parameter]]:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    return [p for p in sig.parameters.values() if p.kind in _POSITIONAL][1:]  # drop self

def _arity_ok(fn: Callable, nargs: int) -> bool:
    params = _positional_params(fn)
    if params is None:
        return False
    required = [p for p in params if p.default is inspect.Parameter.empty]
    return len(required) <= nargs <= len(params)

def _is_frozen(cls: type) -> bool:
    if dataclasses.is_dataclass(cls):
        return bool(cls.__dataclass_params__.frozen)
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return bool(cls.model_config.get("frozen", False))
    return False

def _slots(cls: type) -> List[str]:
    out: List[str] = []
    for klass in reversed(cls.__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        out.extend(s for s in slots if not s.startswith("_"))
    return out

@lru_cache(maxsize=512)
def declared_fields(cls: type) -> Mapping[str, Any]:
    """Declared data fields of a record class, in declaration order, with their annotations."""
    out: Dict[str, Any] = {}
    if issubclass(cls, BaseModel):
        for n, f in cls.model_fields.items():
            out[n] = f.annotation
        return MappingProxyType(out)
    hints = _hints(cls)
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            out[f.name] = hints.get(f.name)
        return MappingProxyType(out)
    for n, t in hints.items():
        if n.startswith("_") or get_origin(t) is ClassVar:
            continue
        if inspect.isfunction(inspect.getattr_static(cls, n, None)):
            continue
        out[n] = t
    for n in _slots(cls):
        out.setdefault(n, hints.get(n))
    return MappingProxyType(out)

@lru_cache(maxsize=4096)
def _class_spec(cls: type, name: str, shape: Shape, write: bool) -> Optional[AccessorSpec]:
    nargs = (1 if write else 0) + (0 if shape is Shape.PLAIN else 1)
    mname = f"{'set' if write else 'get'}_{name}{_SUFFIX[shape]}"
    fn = inspect.getattr_static(cls, mname, None)
    if inspect.isfunction(fn) and _arity_ok(fn, nargs):
        hints = _hints(fn)
        if write:
            params = _positional_params(fn) or []
            return AccessorSpec(mname, "method", hints.get(params[nargs - 1].name))
        return AccessorSpec(mname, "method", hints.get("return"))
    if shape is not Shape.PLAIN:
        return None

    if not write:
        fn = inspect.getattr_static(cls, f"is_{name}", None)
        if inspect.isfunction(fn) and _arity_ok(fn, 0):
            return AccessorSpec(f"is_{name}", "method", _hints(fn).get("return", bool))

    member = inspect.getattr_static(cls, name, _MISSING)
    if isinstance(member, property):
        getter_type = _hints(member.fget).get("return") if member.fget else None
        if write:
            if member.fset is None:
                return None
            params = _positional_params(member.fset) or []
            vt = _hints(member.fset).get(params[0].name) if params else None
            return AccessorSpec(name, "property", vt or getter_type)
        if member.fget is None:
            return None
        return AccessorSpec(name, "property", getter_type)

    fields = declared_fields(cls)
    if name in fields:
        if write and _is_frozen(cls):
            return None
        return AccessorSpec(name, "field", fields[name])
    return None

def _bind(obj: Any, spec: AccessorSpec, write: bool) -> Callable[..., Any]:
    if spec.via == "method":
        return getattr(obj, spec.member)
    if write:
        return lambda value: setattr(obj, spec.member, value)
    if spec.via == "field":
        # annotated-but-unset fields read as absent
        return lambda: getattr(obj, spec.member, None)
    return lambda: getattr(obj, spec.member)

# -------- public adapter API --------

def find_accessor(obj: Any, name: str, shape: Shape = Shape.PLAIN, write: bool = False) -> Optional[Accessor]:
    """Locate the getter (``write=False``) or setter for ``name`` with the given argument shape."""
    if not name or name.startswith("_") or not name.isidentifier():
        return None
    cls = type(obj)
    spec = _class_spec(cls, name, shape, write)
    if spec is None and shape is Shape.PLAIN and name in getattr(obj, "__dict__", {}):
        member = inspect.getattr_static(cls, name, _MISSING)
        if callable(member) or (write and _is_frozen(cls)):
            return None
        spec = AccessorSpec(name, "field", None)
    if spec is None:
        return None
    return Accessor(name, shape, write, spec.value_type, _bind(obj, spec, write))

def _skip_namespace(klass: type) -> bool:
    return klass is object or klass is BaseModel or klass.__module__.split(".")[0] in ("pydantic", "typing", "builtins", "abc")

def record_property_names(obj: Any) -> List[str]:
    """Readable property names of a record in declaration order (fields, then accessors)."""
    cls = type(obj)
    names: List[str] = list(declared_fields(cls))
    names.extend(k for k in getattr(obj, "__dict__", {}) if isinstance(k, str))
    for klass in reversed(cls.__mro__):
        if _skip_namespace(klass):
            continue
        for attr, member in vars(klass).items():
            if isinstance(member, property):
                names.append(attr)
            elif inspect.isfunction(member):
                for prefix in ("get_", "is_"):
                    if attr.startswith(prefix) and not attr.endswith(("_at", "_for")):
                        names.append(attr[len(prefix):])
    seen: Dict[str, None] = {}
    for n in names:
        if n not in seen and find_accessor(obj, n) is not None:
            seen[n] = None
    return list(seen)

def record_property_type(obj: Any, name: str, shape: Shape = Shape.PLAIN) -> Any:
    acc = find_accessor(obj, name, shape, True) or find_accessor(obj, name, shape, False)
    return acc.value_type if acc else None

def record_subscript_names(obj: Any) -> Dict[str, List[Shape]]:
    """Names readable only through ``get_<name>_at``/``get_<name>_for`` overloads, with their shapes."""
    out: Dict[str, List[Shape]] = {}
    for klass in reversed(type(obj).__mro__):
        if _skip_namespace(klass):
            continue
        for attr, member in vars(klass).items():
            if not (inspect.isfunction(member) and attr.startswith("get_")):
                continue
            for shape in (Shape.INDEXED, Shape.MAPPED):
                suffix = _SUFFIX[shape]
                name = attr[len("get_"):-len(suffix)]
                if attr.endswith(suffix) and name and find_accessor(obj, name, shape) is not None:
                    shapes = out.setdefault(name, [])
                    if shape not in shapes:
                        shapes.append(shape)
    return out
