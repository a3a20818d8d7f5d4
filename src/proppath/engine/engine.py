from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional

from .accessor import PathLike, PropertyAccessor
from .convert import Converter, ConverterRegistry, default_registry, deregister_converter, register_converter, reset_converters
from .copier import copy_properties as _copy_properties, copy_property as _copy_property
from .propmap import PropertyMap, property_map
from .records import FindAccessor, find_accessor
from .settings import Settings, load_settings

ENGINE_VERSION = "0.1.0"


class PropertyEngine:
    """Accessor, converter registry and settings bundled for isolated use.

    ``PropertyEngine()`` gets its own registry built from ``settings`` (or the settings file),
    so converters registered on it never leak into the process-wide default.
    """

    def __init__(self, settings: Optional[Settings] = None, registry: Optional[ConverterRegistry] = None,
                 find: FindAccessor = find_accessor):
        self.settings: Settings = settings or (registry.settings if registry else load_settings())
        self.registry = registry or ConverterRegistry(self.settings)
        self.accessor = PropertyAccessor(self.registry, find)

    def get_property(self, root: Any, path: PathLike) -> Any:
        return self.accessor.get(root, path)

    def set_property(self, root: Any, path: PathLike, value: Any) -> None:
        self.accessor.set(root, path, value)

    def get_string(self, root: Any, path: PathLike) -> Optional[str]:
        return self.accessor.get_string(root, path)

    def get_string_array(self, root: Any, path: PathLike) -> Optional[List[Optional[str]]]:
        return self.accessor.get_string_array(root, path)

    def copy_properties(self, target: Any, source: Any) -> None:
        _copy_properties(target, source, self.accessor)

    def copy_property(self, target: Any, path: PathLike, value: Any) -> bool:
        return _copy_property(target, path, value, self.accessor)

    def describe(self, obj: Any) -> Dict[str, Optional[str]]:
        return self.accessor.describe(obj)

    def populate(self, obj: Any, properties: Mapping[str, Any]) -> None:
        self.accessor.populate(obj, properties)

    def as_map(self, obj: Any, read_only: bool = False) -> PropertyMap:
        return property_map(obj, self.accessor, read_only)

    def is_readable(self, root: Any, path: PathLike) -> bool:
        return self.accessor.is_readable(root, path)

    def is_writeable(self, root: Any, path: PathLike) -> bool:
        return self.accessor.is_writeable(root, path)

    def get_type(self, root: Any, path: PathLike) -> Any:
        return self.accessor.get_type(root, path)

    def convert(self, value: Any, target: Any) -> Any:
        return self.registry.convert(value, target)

    def register_converter(self, target: Any, converter: Converter) -> None:
        self.registry.register(target, converter)

    def deregister_converter(self, target: Any) -> bool:
        return self.registry.deregister(target)

    def reset_converters(self) -> None:
        self.registry.reset()


# -----------------------------
# Process-wide API over the default registry
# -----------------------------

_DEFAULT_ENGINE = PropertyEngine(registry=default_registry())

def default_engine() -> PropertyEngine:
    return _DEFAULT_ENGINE

def get_property(root: Any, path: PathLike) -> Any:
    return default_engine().get_property(root, path)

def set_property(root: Any, path: PathLike, value: Any) -> None:
    default_engine().set_property(root, path, value)

def get_string(root: Any, path: PathLike) -> Optional[str]:
    return default_engine().get_string(root, path)

def get_string_array(root: Any, path: PathLike) -> Optional[List[Optional[str]]]:
    return default_engine().get_string_array(root, path)

def copy_properties(target: Any, source: Any) -> None:
    default_engine().copy_properties(target, source)

def copy_property(target: Any, path: PathLike, value: Any) -> bool:
    return default_engine().copy_property(target, path, value)

def describe(obj: Any) -> Dict[str, Optional[str]]:
    return default_engine().describe(obj)

def populate(obj: Any, properties: Mapping[str, Any]) -> None:
    default_engine().populate(obj, properties)

def as_map(obj: Any, read_only: bool = False) -> PropertyMap:
    return default_engine().as_map(obj, read_only)

def is_readable(root: Any, path: PathLike) -> bool:
    return default_engine().is_readable(root, path)

def is_writeable(root: Any, path: PathLike) -> bool:
    return default_engine().is_writeable(root, path)

def get_type(root: Any, path: PathLike) -> Any:
    return default_engine().get_type(root, path)

__all__ = [
    "ENGINE_VERSION", "PropertyEngine", "default_engine",
    "get_property", "set_property", "get_string", "get_string_array",
    "copy_properties", "copy_property", "describe", "populate", "as_map",
    "is_readable", "is_writeable", "get_type",
    "register_converter", "deregister_converter", "reset_converters",
]
