from __future__ import annotations
import logging
from collections.abc import MutableSequence, Sequence
from typing import Any, Dict, List, Mapping, Optional, Union
from pydantic import ValidationError

from .convert import (
    ConverterRegistry, ConverterSnapshot, array_origin, default_registry, element_type, is_instance, is_primitive, unwrap_optional,
)
from .errors import (
    ConversionError, IndexOutOfBoundsError, InvalidPathError, NoSuchPropertyError,
    NullIntermediateError, NullToPrimitiveError, PropertyError, ReadOnlyPropertyError,
)
from .kinds import DYNA_CLASS_PROPERTY, ObjectKind, classify, is_map, is_mutable_map
from .path import IndexedStep, MappedStep, PropertyPath, SimpleStep, Step, parse_path
from .records import FindAccessor, Shape, find_accessor, record_property_names

logger = logging.getLogger(__name__)

PathLike = Union[str, PropertyPath]

_NOT_SEQUENCES = (str, bytes, bytearray)

def _shape(step: Step) -> Shape:
    if isinstance(step, IndexedStep):
        return Shape.INDEXED
    if isinstance(step, MappedStep):
        return Shape.MAPPED
    return Shape.PLAIN

def _subscript(step: Step) -> Any:
    return step.index if isinstance(step, IndexedStep) else step.key

def _overload_failure(step: Step) -> InvalidPathError:
    if isinstance(step, IndexedStep):
        return IndexOutOfBoundsError(step.name, step.index)
    return InvalidPathError(f"Lookup through '{step.name}' failed for key '{step.key}'")

def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, _NOT_SEQUENCES)


class PropertyAccessor:
    """Reads and writes property paths over maps, dynamic bags and structured records.

    Every non-terminal step must produce a non-None object. The terminal step is read as-is;
    on write the value is converted to the declared target type through one registry
    snapshot taken at the start of the call, and assigned once conversion has succeeded.
    """

    def __init__(self, registry: Optional[ConverterRegistry] = None, find: FindAccessor = find_accessor):
        self.registry = registry or default_registry()
        self.find = find

    # -------- public API --------
    def get(self, root: Any, path: PathLike) -> Any:
        pp = self._parse(path)
        parent = self._walk(root, pp)
        return self._read(parent, pp.terminal, pp)

    def set(self, root: Any, path: PathLike, value: Any) -> None:
        pp = self._parse(path)
        snap = self.registry.snapshot()
        parent = self._walk(root, pp)
        self._write(parent, pp.terminal, value, snap, pp)

    def get_string(self, root: Any, path: PathLike) -> Optional[str]:
        snap = self.registry.snapshot()
        return snap.to_string(self.get(root, path))

    def get_string_array(self, root: Any, path: PathLike) -> Optional[List[Optional[str]]]:
        snap = self.registry.snapshot()
        value = self.get(root, path)
        if value is None:
            return None
        if _is_sequence(value) or isinstance(value, (set, frozenset)):
            return [None if v is None else snap.to_string(v) for v in value]
        return [snap.to_string(value)]

    def get_type(self, root: Any, path: PathLike) -> Any:
        """Declared type of the terminal property, or None when the object does not declare one."""
        pp = self._parse(path)
        parent = self._walk(root, pp)
        step = pp.terminal
        if not step.name:
            return None
        kind = classify(parent)
        if kind is ObjectKind.MAP:
            return None
        if kind is ObjectKind.DYNAMIC:
            d = self._bag_descriptor(parent, step.name)
            if d is None:
                raise NoSuchPropertyError(step.name, parent)
            return d.type if isinstance(step, SimpleStep) else d.content_type
        direct = self.find(parent, step.name, _shape(step), True) or self.find(parent, step.name, _shape(step), False)
        if direct is not None:
            return direct.value_type
        acc = self.find(parent, step.name, Shape.PLAIN, True) or self.find(parent, step.name, Shape.PLAIN, False)
        if acc is None:
            raise NoSuchPropertyError(step.name, parent)
        return acc.value_type if isinstance(step, SimpleStep) else element_type(acc.value_type)

    def is_readable(self, root: Any, path: PathLike) -> bool:
        try:
            pp = self._parse(path)
            parent = self._walk(root, pp)
        except PropertyError:
            return False
        step = pp.terminal
        if not step.name:
            return True
        kind = classify(parent)
        if kind is ObjectKind.MAP:
            return True
        if kind is ObjectKind.DYNAMIC:
            d = self._bag_descriptor(parent, step.name)
            return d is not None and self._shape_allowed(d, step)
        return (self.find(parent, step.name, _shape(step), False) is not None
                or self.find(parent, step.name, Shape.PLAIN, False) is not None)

    def is_writeable(self, root: Any, path: PathLike) -> bool:
        try:
            pp = self._parse(path)
            parent = self._walk(root, pp)
        except PropertyError:
            return False
        step = pp.terminal
        if not step.name:
            return True
        kind = classify(parent)
        if kind is ObjectKind.MAP:
            return is_mutable_map(parent)
        if kind is ObjectKind.DYNAMIC:
            d = self._bag_descriptor(parent, step.name)
            if d is None:
                accepts_new = getattr(parent, "accepts_new", None)
                return bool(accepts_new and accepts_new(step.name))
            return self._shape_allowed(d, step)
        if self.find(parent, step.name, _shape(step), True) is not None:
            return True
        if isinstance(step, SimpleStep):
            return False
        # generic subscript assignment into the whole value
        return self.find(parent, step.name, Shape.PLAIN, False) is not None

    def property_names(self, obj: Any) -> List[str]:
        """Readable property names of one object, in its own stable enumeration order."""
        kind = classify(obj)
        if kind is ObjectKind.MAP:
            return [k for k in obj.keys() if isinstance(k, str)]
        if kind is ObjectKind.DYNAMIC:
            return [d.name for d in obj.describe() if d.simple]
        return record_property_names(obj)

    def describe(self, obj: Any) -> Dict[str, Optional[str]]:
        snap = self.registry.snapshot()
        out: Dict[str, Optional[str]] = {}
        for name in self.property_names(obj):
            if name == DYNA_CLASS_PROPERTY:
                continue
            out[name] = snap.to_string(self.read_simple(obj, name))
        return out

    def populate(self, obj: Any, properties: Mapping[str, Any]) -> None:
        """Set every entry as a property path; entries the object cannot accept are skipped."""
        for name, value in properties.items():
            if name is None:
                continue
            if not self.is_writeable(obj, name):
                logger.debug("populate: skipping '%s' on %s", name, type(obj).__name__)
                continue
            self.set(obj, name, value)

    # Literal single-name access; names are never parsed, so map keys like "a.b" stay intact.
    def read_simple(self, obj: Any, name: str) -> Any:
        return self._read(obj, SimpleStep(name), None)

    def write_simple(self, obj: Any, name: str, value: Any, snap: Optional[ConverterSnapshot] = None) -> None:
        self._write(obj, SimpleStep(name), value, snap or self.registry.snapshot(), None)

    def is_writeable_simple(self, obj: Any, name: str) -> bool:
        return self.is_writeable(obj, PropertyPath((SimpleStep(name),)))

    # -------- traversal --------
    def _parse(self, path: PathLike) -> PropertyPath:
        return path if isinstance(path, PropertyPath) else parse_path(path)

    def _walk(self, root: Any, pp: PropertyPath) -> Any:
        if root is None:
            raise NullIntermediateError(str(pp), "<root>")
        current = root
        for step in pp.intermediate:
            nxt = self._read(current, step, pp)
            if nxt is None:
                raise NullIntermediateError(str(pp), str(step))
            current = nxt
        return current

    @staticmethod
    def _bag_descriptor(bag: Any, name: str) -> Any:
        for d in bag.describe():
            if d.name == name:
                return d
        return None

    @staticmethod
    def _shape_allowed(d: Any, step: Step) -> bool:
        if isinstance(step, IndexedStep):
            return bool(d.indexed)
        if isinstance(step, MappedStep):
            return bool(d.mapped)
        return bool(d.simple)

    def _check_bag_shape(self, bag: Any, d: Any, step: Step) -> None:
        if d is not None and not self._shape_allowed(d, step):
            if isinstance(step, SimpleStep):
                raise InvalidPathError(f"Property '{step.name}' on {type(bag).__name__} needs an index or key")
            what = "indexed" if isinstance(step, IndexedStep) else "mapped"
            raise InvalidPathError(f"Property '{step.name}' on {type(bag).__name__} is not {what}")

    # -------- reads --------
    def _read(self, obj: Any, step: Step, pp: Optional[PropertyPath]) -> Any:
        if not step.name:
            return self._subscript_get(obj, step, pp)
        kind = classify(obj)
        if kind is ObjectKind.MAP:
            whole = obj.get(step.name)
            if isinstance(step, SimpleStep):
                return whole
            return self._subscript_get(whole, step, pp)
        if kind is ObjectKind.DYNAMIC:
            self._check_bag_shape(obj, self._bag_descriptor(obj, step.name), step)
            if isinstance(step, IndexedStep):
                return obj.get_indexed(step.name, step.index)
            if isinstance(step, MappedStep):
                return obj.get_mapped(step.name, step.key)
            return obj.get(step.name)
        return self._read_record(obj, step, pp)

    def _read_record(self, obj: Any, step: Step, pp: Optional[PropertyPath]) -> Any:
        if not isinstance(step, SimpleStep):
            direct = self.find(obj, step.name, _shape(step), False)
            if direct is not None:
                try:
                    return direct(_subscript(step))
                except InvalidPathError:
                    raise
                except LookupError as e:
                    raise _overload_failure(step) from e
        getter = self.find(obj, step.name, Shape.PLAIN, False)
        if getter is None:
            raise NoSuchPropertyError(step.name, obj)
        whole = getter()
        if isinstance(step, SimpleStep):
            return whole
        return self._subscript_get(whole, step, pp)

    def _subscript_get(self, value: Any, step: Step, pp: Optional[PropertyPath]) -> Any:
        if value is None:
            raise NullIntermediateError(str(pp or step), str(step))
        if isinstance(step, IndexedStep):
            if not _is_sequence(value):
                raise InvalidPathError(f"Property '{step.name}' is not indexed ({type(value).__name__})")
            if step.index >= len(value):
                raise IndexOutOfBoundsError(step.name, step.index, len(value))
            return value[step.index]
        if isinstance(step, MappedStep):
            if not is_map(value):
                raise InvalidPathError(f"Property '{step.name}' is not mapped ({type(value).__name__})")
            return value.get(step.key)
        return value

    # -------- writes --------
    def _write(self, obj: Any, step: Step, value: Any, snap: ConverterSnapshot, pp: Optional[PropertyPath]) -> None:
        if not step.name:
            self._subscript_set(obj, step, value, None, snap, pp)
            return
        kind = classify(obj)
        if kind is ObjectKind.MAP:
            if not is_mutable_map(obj):
                raise InvalidPathError(f"Map {type(obj).__name__} is read-only")
            if isinstance(step, SimpleStep):
                obj[step.name] = value
            else:
                self._subscript_set(obj.get(step.name), step, value, None, snap, pp)
            return
        if kind is ObjectKind.DYNAMIC:
            self._write_bag(obj, step, value, snap)
            return
        self._write_record(obj, step, value, snap, pp)

    def _write_bag(self, bag: Any, step: Step, value: Any, snap: ConverterSnapshot) -> None:
        d = self._bag_descriptor(bag, step.name)
        self._check_bag_shape(bag, d, step)
        if isinstance(step, IndexedStep):
            v = self._coerce_element(value, d.content_type if d else None, snap)
            bag.set_indexed(step.name, step.index, v)
        elif isinstance(step, MappedStep):
            v = self._coerce_element(value, d.content_type if d else None, snap)
            bag.set_mapped(step.name, step.key, v)
        else:
            bag.set(step.name, self._coerce(value, d.type if d else None, snap))

    def _write_record(self, obj: Any, step: Step, value: Any, snap: ConverterSnapshot, pp: Optional[PropertyPath]) -> None:
        if isinstance(step, SimpleStep):
            setter = self.find(obj, step.name, Shape.PLAIN, True)
            if setter is None:
                self._raise_unwritable(obj, step.name, Shape.PLAIN)
            v = self._coerce(value, setter.value_type, snap)
            self._assign(setter, v, value)
            return
        direct = self.find(obj, step.name, _shape(step), True)
        if direct is not None:
            v = self._coerce_element(value, direct.value_type, snap)
            try:
                self._assign(direct, v, value, _subscript(step))
            except InvalidPathError:
                raise
            except LookupError as e:
                raise _overload_failure(step) from e
            return
        getter = self.find(obj, step.name, Shape.PLAIN, False)
        if getter is None:
            self._raise_unwritable(obj, step.name, _shape(step))
        self._subscript_set(getter(), step, value, element_type(getter.value_type), snap, pp)

    def _raise_unwritable(self, obj: Any, name: str, shape: Shape) -> None:
        if self.find(obj, name, shape, False) is not None:
            raise ReadOnlyPropertyError(name, obj)
        raise NoSuchPropertyError(name, obj)

    @staticmethod
    def _assign(setter: Any, converted: Any, raw: Any, *lead: Any) -> None:
        try:
            setter(*lead, converted)
        except ValidationError as e:
            # models validating on assignment reject after our own conversion
            raise ConversionError(raw, setter.value_type, str(e)) from e

    def _subscript_set(self, container: Any, step: Step, value: Any, elem_type: Any,
                       snap: ConverterSnapshot, pp: Optional[PropertyPath]) -> None:
        if container is None:
            raise NullIntermediateError(str(pp or step), str(step))
        if isinstance(step, IndexedStep):
            if not _is_sequence(container):
                raise InvalidPathError(f"Property '{step.name}' is not indexed ({type(container).__name__})")
            if not isinstance(container, MutableSequence):
                raise InvalidPathError(f"Property '{step.name}' is an immutable sequence")
            if step.index >= len(container):
                # plain sequences never grow by index
                raise IndexOutOfBoundsError(step.name, step.index, len(container))
            container[step.index] = self._coerce_element(value, elem_type, snap)
        elif isinstance(step, MappedStep):
            if not is_map(container):
                raise InvalidPathError(f"Property '{step.name}' is not mapped ({type(container).__name__})")
            if not is_mutable_map(container):
                raise InvalidPathError(f"Property '{step.name}' is a read-only map")
            container[step.key] = self._coerce_element(value, elem_type, snap)

    # -------- conversion --------
    def _coerce(self, value: Any, target: Any, snap: ConverterSnapshot) -> Any:
        if target is None:
            return value
        base, nullable = unwrap_optional(target)
        if value is None:
            if not nullable and is_primitive(base):
                raise NullToPrimitiveError(base)
            return None
        origin = array_origin(base)
        if origin is not None:
            elem = element_type(base)
            if isinstance(value, origin) and (elem is None or all(self._matches(v, elem) for v in value)):
                return value
            return snap.convert(value, target)
        if self._matches(value, base):
            return value
        return snap.convert(value, target)

    def _coerce_element(self, value: Any, elem_type: Any, snap: ConverterSnapshot) -> Any:
        if elem_type is not None and _is_sequence(value) and array_origin(unwrap_optional(elem_type)[0]) is None:
            # an array written into a scalar slot contributes its first element
            value = value[0] if len(value) else None
        return self._coerce(value, elem_type, snap)

    @staticmethod
    def _matches(value: Any, target: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, bool) and target is not bool:
            return False
        return is_instance(value, target)
