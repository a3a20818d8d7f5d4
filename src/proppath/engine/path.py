from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple, Union

from .errors import MalformedPathError

NESTED = "."
INDEXED_START, INDEXED_END = "[", "]"
MAPPED_START, MAPPED_END = "(", ")"

_RESERVED = {NESTED, INDEXED_START, INDEXED_END, MAPPED_START, MAPPED_END}


@dataclass(frozen=True)
class SimpleStep:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IndexedStep:
    name: str
    index: int

    def __str__(self) -> str:
        return f"{self.name}[{self.index}]"


@dataclass(frozen=True)
class MappedStep:
    name: str
    key: str

    def __str__(self) -> str:
        return f"{self.name}({self.key})"


Step = Union[SimpleStep, IndexedStep, MappedStep]


@dataclass(frozen=True)
class PropertyPath:
    steps: Tuple[Step, ...]

    @property
    def terminal(self) -> Step:
        return self.steps[-1]

    @property
    def intermediate(self) -> Tuple[Step, ...]:
        return self.steps[:-1]

    def __len__(self) -> int:
        return len(self.steps)

    def __str__(self) -> str:
        return NESTED.join(str(s) for s in self.steps)


class _Scanner:
    """Single-pass recursive-descent reader over a path string."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def fail(self, reason: str) -> MalformedPathError:
        return MalformedPathError(self.text, f"{reason} (at offset {self.pos})")

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos]

    def read_path(self) -> Tuple[Step, ...]:
        steps = [self.read_step()]
        while not self.at_end():
            if self.peek() != NESTED:
                raise self.fail(f"expected '.' but found '{self.peek()}'")
            self.pos += 1
            if self.at_end():
                raise self.fail("trailing '.'")
            steps.append(self.read_step())
        return tuple(steps)

    def read_step(self) -> Step:
        name = self.read_name()
        if self.at_end() or self.peek() == NESTED:
            if not name:
                raise self.fail("empty property name")
            return SimpleStep(name)
        c = self.peek()
        if c == INDEXED_START:
            return IndexedStep(name, self.read_index())
        if c == MAPPED_START:
            return MappedStep(name, self.read_key())
        raise self.fail(f"unexpected '{c}'")

    def read_name(self) -> str:
        start = self.pos
        while not self.at_end() and self.peek() not in _RESERVED:
            self.pos += 1
        return self.text[start:self.pos]

    def read_index(self) -> int:
        end = self.text.find(INDEXED_END, self.pos + 1)
        if end < 0:
            raise self.fail("missing ']'")
        raw = self.text[self.pos + 1:end]
        if not raw:
            raise self.fail("no index value")
        if not (raw.isascii() and raw.isdigit()):
            raise self.fail(f"invalid index value '{raw}'")
        self.pos = end + 1
        return int(raw)

    def read_key(self) -> str:
        end = self.text.find(MAPPED_END, self.pos + 1)
        if end < 0:
            raise self.fail("missing ')'")
        key = self.text[self.pos + 1:end]
        self.pos = end + 1
        return key


def parse_path(path: str) -> PropertyPath:
    """Parse ``a.b[0].c(key)`` style expressions into a :class:`PropertyPath`.

    Purely syntactic; no object is consulted. A step may omit its name only when it
    carries an index or key, in which case the subscript applies to the current object.
    """
    if not isinstance(path, str):
        raise MalformedPathError(repr(path), "path must be a string")
    if not path:
        raise MalformedPathError(path, "empty path")
    return _parse_cached(path)


@lru_cache(maxsize=4096)
def _parse_cached(path: str) -> PropertyPath:
    return PropertyPath(_Scanner(path).read_path())


def simple_path(name: str) -> PropertyPath:
    # Literal single-step path; used where names come from enumeration rather than user input.
    return PropertyPath((SimpleStep(name),))


def path_cache_info() -> str:
    info = _parse_cached.cache_info()
    return f"path-cache: hits={info.hits}, misses={info.misses}, size={info.currsize}/{info.maxsize}"
