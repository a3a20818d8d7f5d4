from __future__ import annotations
import json
import logging
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Optional
import typer
import yaml

from proppath.engine.engine import PropertyEngine
from proppath.engine.errors import PropertyError
from proppath.engine.loader import dump_document, dumps_document, is_yaml, load_document, to_plain
from proppath.engine.settings import load_settings

app = typer.Typer(add_completion=False, help="Read and write property paths in YAML/JSON documents.")


class ValueType(str, Enum):
    STR = "str"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    DECIMAL = "decimal"

_TARGETS = {
    ValueType.STR: str,
    ValueType.INT: int,
    ValueType.FLOAT: float,
    ValueType.BOOL: bool,
    ValueType.DECIMAL: Decimal,
}

_LOAD_ERRORS = (PropertyError, OSError, ValueError, yaml.YAMLError)


def _fail(msg: object) -> None:
    typer.echo(f"[ERROR] {msg}", err=True)
    raise typer.Exit(code=1)

def _engine(ctx: typer.Context) -> PropertyEngine:
    return ctx.obj["engine"]


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
    settings: Optional[Path] = typer.Option(None, "--settings", help="Settings file (JSON or YAML)"),
):
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    try:
        s = load_settings(settings)
    except _LOAD_ERRORS as e:
        _fail(f"{settings}: {e}")
    ctx.obj = {"engine": PropertyEngine(settings=s)}

@app.command("get")
def get_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="YAML or JSON document"),
    path: str = typer.Argument(..., help="Property path, e.g. servers[0].ports(http)"),
    as_string: bool = typer.Option(False, "--string", help="Print the string-converted value"),
):
    eng = _engine(ctx)
    try:
        doc = load_document(file)
        if as_string:
            text = eng.get_string(doc, path)
            typer.echo("" if text is None else text)
            return
        value = eng.get_property(doc, path)
    except _LOAD_ERRORS as e:
        _fail(e)
    typer.echo(json.dumps(to_plain(value), ensure_ascii=False))

@app.command("set")
def set_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="YAML or JSON document"),
    path: str = typer.Argument(..., help="Property path to write"),
    value: str = typer.Argument(..., help="New value, converted to --type first"),
    value_type: ValueType = typer.Option(ValueType.STR, "--type", help="Type the value is converted to"),
    in_place: bool = typer.Option(False, "--in-place", help="Rewrite FILE instead of printing the result"),
):
    eng = _engine(ctx)
    try:
        doc = load_document(file)
        converted = eng.convert(value, _TARGETS[value_type])
        eng.set_property(doc, path, converted)
        if in_place:
            dump_document(doc, file)
        else:
            typer.echo(dumps_document(doc, is_yaml(file)), nl=False)
    except _LOAD_ERRORS as e:
        _fail(e)
    if in_place:
        typer.echo(f"Updated {path} in {file}")

@app.command("describe")
def describe_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="YAML or JSON document"),
    path: Optional[str] = typer.Argument(None, help="Describe the object at this path instead of the root"),
):
    eng = _engine(ctx)
    try:
        doc = load_document(file)
        target = eng.get_property(doc, path) if path else doc
        if target is None:
            _fail(f"Nothing to describe at '{path}'")
        props = eng.describe(target)
    except _LOAD_ERRORS as e:
        _fail(e)
    for name, text in props.items():
        typer.echo(f"{name}: {'' if text is None else text}")


if __name__ == "__main__":
    app()
