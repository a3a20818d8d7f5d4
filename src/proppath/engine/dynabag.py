from __future__ import annotations
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, get_origin
from pydantic import BaseModel, ConfigDict, model_validator

from .convert import element_type, is_nullable, unwrap_optional
from .errors import ConversionError, IndexOutOfBoundsError, InvalidPathError, NoSuchPropertyError, NullToPrimitiveError
from .path import IndexedStep, MappedStep, PropertyPath, simple_path
from .records import Shape, find_accessor, record_property_names, record_property_type, record_subscript_names

if TYPE_CHECKING:
    from .accessor import PropertyAccessor

_PRIMITIVE_DEFAULTS: Dict[Any, Any] = {int: 0, float: 0.0, bool: False, complex: 0j}


class PropertyDescriptor(BaseModel):
    """One property exposed by a dynamic bag.

    ``indexed``/``mapped``/``content_type`` are derived from ``type`` when not given:
    ``list[int]`` is indexed with content type ``int``, ``dict[str, str]`` is mapped.
    ``appendable`` declares that an index equal to the current length appends.
    ``simple=False`` marks a property reachable only through an index or key, never as a whole.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    type: Any = None
    content_type: Any = None
    indexed: bool = False
    mapped: bool = False
    appendable: bool = False
    simple: bool = True

    @model_validator(mode="before")
    @classmethod
    def _derive_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("type") is None:
            return data
        data = dict(data)
        base, _ = unwrap_optional(data["type"])
        origin = get_origin(base) or base
        if "indexed" not in data:
            data["indexed"] = origin in (list, tuple)
        if "mapped" not in data:
            data["mapped"] = isinstance(origin, type) and issubclass(origin, Mapping)
        if data.get("content_type") is None:
            data["content_type"] = element_type(data["type"])
        return data

    @property
    def nullable(self) -> bool:
        return is_nullable(self.type)

    def accepts(self, value: Any, declared: Any = None) -> bool:
        tp = self.type if declared is None else declared
        if value is None or tp is None or tp is Any:
            return True
        base, _ = unwrap_optional(tp)
        origin = get_origin(base) or base
        try:
            return isinstance(value, origin)
        except TypeError:
            return True


class BasicDynaClass:
    """Fixed, ordered set of descriptors shared by every bag created from it."""

    def __init__(self, name: str, properties: Iterable[PropertyDescriptor] = ()):
        self.name = name
        self._props: Dict[str, PropertyDescriptor] = {}
        for p in properties:
            self._add(p)

    def _add(self, p: PropertyDescriptor) -> None:
        if p.name in self._props:
            raise ValueError(f"Duplicate property '{p.name}' in dyna class '{self.name}'")
        self._props[p.name] = p

    def describe(self) -> List[PropertyDescriptor]:
        return list(self._props.values())

    def get_descriptor(self, name: str) -> Optional[PropertyDescriptor]:
        return self._props.get(name)

    def new_instance(self) -> "BasicDynaBag":
        return BasicDynaBag(self)

    @classmethod
    def from_model(cls, model: type[BaseModel], name: Optional[str] = None) -> "BasicDynaClass":
        return cls(name or model.__name__,
                   [PropertyDescriptor(name=n, type=f.annotation) for n, f in model.model_fields.items()])

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {list(self._props)})"


class BasicDynaBag:
    """Dynamic bag whose values are checked against its class's descriptors."""

    def __init__(self, dyna_class: BasicDynaClass, values: Optional[Dict[str, Any]] = None):
        self.dyna_class = dyna_class
        self._values: Dict[str, Any] = {}
        for k, v in (values or {}).items():
            self.set(k, v)

    def describe(self) -> List[PropertyDescriptor]:
        return self.dyna_class.describe()

    def _descriptor(self, name: str) -> PropertyDescriptor:
        d = self.dyna_class.get_descriptor(name)
        if d is None:
            raise NoSuchPropertyError(name, self)
        return d

    # -------- simple --------
    def get(self, name: str) -> Any:
        d = self._descriptor(name)
        if name in self._values:
            return self._values[name]
        base, nullable = unwrap_optional(d.type)
        return None if nullable else _PRIMITIVE_DEFAULTS.get(base)

    def set(self, name: str, value: Any) -> None:
        d = self._descriptor(name)
        if value is None and not d.nullable:
            raise NullToPrimitiveError(d.type)
        if not d.accepts(value):
            raise ConversionError(value, d.type, f"property '{name}' does not accept {type(value).__name__}")
        self._values[name] = value

    # -------- indexed --------
    def _indexed(self, name: str) -> PropertyDescriptor:
        d = self._descriptor(name)
        if not d.indexed:
            raise InvalidPathError(f"Non-indexed property '{name}' on {type(self).__name__}")
        return d

    def get_indexed(self, name: str, index: int) -> Any:
        self._indexed(name)
        seq = self._values.get(name) or []
        if index >= len(seq):
            raise IndexOutOfBoundsError(name, index, len(seq))
        return seq[index]

    def set_indexed(self, name: str, index: int, value: Any) -> None:
        d = self._indexed(name)
        if not d.accepts(value, d.content_type or Any):
            raise ConversionError(value, d.content_type, f"element of '{name}' does not accept {type(value).__name__}")
        seq = self._values.get(name)
        size = len(seq) if seq is not None else 0
        if index < size:
            seq[index] = value
        elif index == size and d.appendable:
            if seq is None:
                seq = self._values[name] = []
            seq.append(value)
        else:
            raise IndexOutOfBoundsError(name, index, size)

    # -------- mapped --------
    def _mapped(self, name: str) -> PropertyDescriptor:
        d = self._descriptor(name)
        if not d.mapped:
            raise InvalidPathError(f"Non-mapped property '{name}' on {type(self).__name__}")
        return d

    def get_mapped(self, name: str, key: str) -> Any:
        self._mapped(name)
        m = self._values.get(name)
        return None if m is None else m.get(key)

    def set_mapped(self, name: str, key: str, value: Any) -> None:
        d = self._mapped(name)
        if not d.accepts(value, d.content_type or Any):
            raise ConversionError(value, d.content_type, f"entry of '{name}' does not accept {type(value).__name__}")
        m = self._values.get(name)
        if m is None:
            m = self._values[name] = {}
        m[key] = value

    def contains(self, name: str, key: str) -> bool:
        self._mapped(name)
        return key in (self._values.get(name) or {})

    def remove(self, name: str, key: str) -> None:
        self._mapped(name)
        (self._values.get(name) or {}).pop(key, None)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.dyna_class.name!r}, {self._values!r})"


class LazyDynaClass(BasicDynaClass):
    """Mutable descriptor set; unless ``restricted``, bags add properties on first write."""

    def __init__(self, name: str = "LazyDynaClass", properties: Iterable[PropertyDescriptor] = (), restricted: bool = False):
        super().__init__(name, properties)
        self.restricted = restricted

    def add(self, name: str, type: Any = None, **extra: Any) -> PropertyDescriptor:
        if self.restricted:
            raise NoSuchPropertyError(name, self, f"Dyna class '{self.name}' is restricted; cannot add '{name}'")
        p = PropertyDescriptor(name=name, type=type, **extra)
        self._add(p)
        return p

    def remove(self, name: str) -> None:
        if self.restricted:
            raise NoSuchPropertyError(name, self, f"Dyna class '{self.name}' is restricted; cannot remove '{name}'")
        self._props.pop(name, None)

    def new_instance(self) -> "LazyDynaBag":
        return LazyDynaBag(self)


class LazyDynaBag(BasicDynaBag):
    """Bag that grows its own shape: unknown names read as None and are created on write.

    Lists grow to fit any index written (gaps filled with None); maps are created on first
    keyed write.
    """

    def __init__(self, dyna_class: Optional[LazyDynaClass] = None, values: Optional[Dict[str, Any]] = None):
        super().__init__(dyna_class or LazyDynaClass(), values)

    def accepts_new(self, name: str) -> bool:
        return not self.dyna_class.restricted

    def _ensure(self, name: str, type: Any, **extra: Any) -> PropertyDescriptor:
        return self.dyna_class.get_descriptor(name) or self.dyna_class.add(name, type, **extra)

    def get(self, name: str) -> Any:
        if self.dyna_class.get_descriptor(name) is None:
            return None
        return super().get(name)

    def set(self, name: str, value: Any) -> None:
        self._ensure(name, None if value is None else type(value))
        super().set(name, value)

    def get_indexed(self, name: str, index: int) -> Any:
        if self.dyna_class.get_descriptor(name) is None:
            return None
        self._indexed(name)
        seq = self._values.get(name) or []
        return seq[index] if index < len(seq) else None

    def set_indexed(self, name: str, index: int, value: Any) -> None:
        d = self._ensure(name, list, appendable=True)
        if not d.indexed:
            raise InvalidPathError(f"Non-indexed property '{name}' on {type(self).__name__}")
        seq = self._values.get(name)
        if seq is None:
            seq = self._values[name] = []
        if index >= len(seq):
            seq.extend([None] * (index + 1 - len(seq)))
        seq[index] = value

    def get_mapped(self, name: str, key: str) -> Any:
        if self.dyna_class.get_descriptor(name) is None:
            return None
        return super().get_mapped(name, key)

    def set_mapped(self, name: str, key: str, value: Any) -> None:
        self._ensure(name, dict)
        super().set_mapped(name, key, value)


class WrapDynaBag:
    """Presents a structured record through the dynamic bag contract.

    Descriptors come from the record's introspection; every access is delegated to a
    PropertyAccessor acting on the wrapped instance.
    """

    def __init__(self, instance: Any, accessor: Optional["PropertyAccessor"] = None):
        if accessor is None:
            from .accessor import PropertyAccessor
            accessor = PropertyAccessor()
        self.instance = instance
        self.accessor = accessor
        self.dyna_class = BasicDynaClass(type(instance).__name__, self._introspect(instance))

    @staticmethod
    def _introspect(instance: Any) -> List[PropertyDescriptor]:
        out: List[PropertyDescriptor] = []
        for name in record_property_names(instance):
            tp = record_property_type(instance, name)
            extra: Dict[str, Any] = {}
            if find_accessor(instance, name, Shape.INDEXED) is not None:
                extra["indexed"] = True
            if find_accessor(instance, name, Shape.MAPPED) is not None:
                extra["mapped"] = True
            out.append(PropertyDescriptor(name=name, type=tp, **extra))
        known = {d.name for d in out}
        for name, shapes in record_subscript_names(instance).items():
            if name in known:
                continue
            # only reachable through the overloads: no whole-value type
            out.append(PropertyDescriptor(
                name=name,
                content_type=record_property_type(instance, name, shapes[0]),
                indexed=Shape.INDEXED in shapes,
                mapped=Shape.MAPPED in shapes,
                simple=False,
            ))
        return out

    def describe(self) -> List[PropertyDescriptor]:
        return self.dyna_class.describe()

    def _check(self, name: str, shape: Shape) -> None:
        d = self.dyna_class.get_descriptor(name)
        if d is None:
            raise NoSuchPropertyError(name, self.instance)
        if shape is Shape.PLAIN and not d.simple:
            raise InvalidPathError(f"Property '{name}' on {type(self.instance).__name__} needs an index or key")
        if shape is Shape.INDEXED and not d.indexed:
            raise InvalidPathError(f"Non-indexed property '{name}' on {type(self.instance).__name__}")
        if shape is Shape.MAPPED and not d.mapped:
            raise InvalidPathError(f"Non-mapped property '{name}' on {type(self.instance).__name__}")

    def get(self, name: str) -> Any:
        self._check(name, Shape.PLAIN)
        return self.accessor.get(self.instance, simple_path(name))

    def set(self, name: str, value: Any) -> None:
        self._check(name, Shape.PLAIN)
        self.accessor.set(self.instance, simple_path(name), value)

    def get_indexed(self, name: str, index: int) -> Any:
        self._check(name, Shape.INDEXED)
        return self.accessor.get(self.instance, PropertyPath((IndexedStep(name, index),)))

    def set_indexed(self, name: str, index: int, value: Any) -> None:
        self._check(name, Shape.INDEXED)
        self.accessor.set(self.instance, PropertyPath((IndexedStep(name, index),)), value)

    def get_mapped(self, name: str, key: str) -> Any:
        self._check(name, Shape.MAPPED)
        return self.accessor.get(self.instance, PropertyPath((MappedStep(name, key),)))

    def set_mapped(self, name: str, key: str, value: Any) -> None:
        self._check(name, Shape.MAPPED)
        self.accessor.set(self.instance, PropertyPath((MappedStep(name, key),)), value)

    def __repr__(self) -> str:
        return f"WrapDynaBag({self.instance!r})"
