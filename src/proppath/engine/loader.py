from __future__ import annotations
import json
from pathlib import Path
from typing import Any
import yaml
from pydantic import TypeAdapter

_YAML_SUFFIXES = (".yaml", ".yml")
_JsonAdapter = TypeAdapter(Any)

def is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES

def load_document(path: Path) -> Any:
    """Read a YAML or JSON document (by suffix). An empty YAML file loads as an empty dict."""
    text = path.read_text(encoding="utf-8")
    if is_yaml(path):
        return yaml.safe_load(text) or {}
    return json.loads(text)

def to_plain(value: Any) -> Any:
    """JSON-compatible form of a value (Decimal, dates, enums and models included)."""
    return _JsonAdapter.dump_python(value, mode="json")

def dumps_document(data: Any, yaml_format: bool = False) -> str:
    plain = to_plain(data)
    if yaml_format:
        return yaml.safe_dump(plain, sort_keys=False, allow_unicode=True)
    return json.dumps(plain, indent=2, ensure_ascii=False) + "\n"

def dump_document(data: Any, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps_document(data, is_yaml(path)), encoding="utf-8")
