from __future__ import annotations
from pathlib import Path
from typing import List, Literal, Optional
import yaml
from pydantic import BaseModel, Field

SETTINGS_PATH = Path.home() / ".proppath" / "settings.json"

class Settings(BaseModel):
    date_format: str = "%Y-%m-%d"
    datetime_format: str = "%Y-%m-%dT%H:%M:%S"
    time_format: str = "%H:%M:%S"
    array_delimiter: str = Field(default=",", min_length=1, max_length=1)
    true_strings: List[str] = Field(default_factory=lambda: ["true", "yes", "y", "on", "1"])
    false_strings: List[str] = Field(default_factory=lambda: ["false", "no", "n", "off", "0"])
    missing_converter: Literal["error", "string"] = "error"  # what convert() does when no converter applies

def load_settings(path: Optional[Path] = None) -> Settings:
    fp = path or SETTINGS_PATH
    if not fp.exists():
        return Settings()
    text = fp.read_text(encoding="utf-8")
    if fp.suffix.lower() in (".yaml", ".yml"):
        return Settings.model_validate(yaml.safe_load(text) or {})
    return Settings.model_validate_json(text)

def save_settings(s: Settings, path: Optional[Path] = None) -> None:
    fp = path or SETTINGS_PATH
    fp.parent.mkdir(parents=True, exist_ok=True)
    fp.write_text(s.model_dump_json(indent=2), encoding="utf-8")
