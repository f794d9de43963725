"""
Key path expressions addressing nodes inside a configuration tree.

Supported syntax:
    server.grpc-concurrency          mapping keys separated by dots
    rocksdb.defaultcf.levels[2]      sequence index
    rocksdb.defaultcf.levels[*]      every element of a sequence
    rocksdb.*.block-size             every child of a mapping
    labels."app.kubernetes.io/name"  quoted key containing dots
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple

from confmigrate.core.errors import MalformedPathError

_TOKEN_RE = re.compile(
    r'\[(?P<index>\*|\d+)\]'
    r'|"(?P<quoted>(?:[^"\\]|\\.)*)"'
    r'|(?P<bare>[^.\[\]"]+)'
    r'|(?P<dot>\.)'
)
_NEEDS_QUOTES_RE = re.compile(r'[.\[\]"]|^\s|\s$')


class SegmentKind(Enum):
    """Kinds of key path segments."""

    KEY = "key"
    INDEX = "index"
    WILDCARD = "wildcard"  # "*": any child of a mapping or sequence
    INDEX_WILDCARD = "index_wildcard"  # "[*]": any element of a sequence


@dataclass(frozen=True)
class PathSegment:
    """One step of a key path."""

    kind: SegmentKind
    value: Any = None

    @property
    def is_wildcard(self) -> bool:
        return self.kind in (SegmentKind.WILDCARD, SegmentKind.INDEX_WILDCARD)

    @property
    def addresses_sequence(self) -> bool:
        return self.kind in (SegmentKind.INDEX, SegmentKind.INDEX_WILDCARD)

    def render(self) -> str:
        if self.kind is SegmentKind.INDEX:
            return f"[{self.value}]"
        if self.kind is SegmentKind.INDEX_WILDCARD:
            return "[*]"
        if self.kind is SegmentKind.WILDCARD:
            return "*"
        name = str(self.value)
        if not name or name == "*" or _NEEDS_QUOTES_RE.search(name):
            escaped = name.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        return name


@dataclass(frozen=True)
class KeyPath:
    """An immutable, hashable sequence of path segments."""

    segments: Tuple[PathSegment, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "KeyPath":
        """
        Parse a key path expression.

        Args:
            text: Path such as "a.b[0].c" or "items[*]"

        Returns:
            Parsed KeyPath

        Raises:
            MalformedPathError: If the expression is not a valid path
        """
        if not isinstance(text, str):
            raise MalformedPathError(
                f"Key path must be a string, got {type(text).__name__}", str(text)
            )
        source = text.strip()
        if not source:
            raise MalformedPathError("Key path is empty", text)

        segments = []
        after_dot = False
        pos = 0
        while pos < len(source):
            match = _TOKEN_RE.match(source, pos)
            if not match:
                raise MalformedPathError(
                    f"Unexpected character {source[pos]!r} at offset {pos} in key path '{text}'",
                    text,
                )
            if match.group("dot"):
                if not segments or after_dot:
                    raise MalformedPathError(f"Empty segment in key path '{text}'", text)
                after_dot = True
            elif match.group("index") is not None:
                if after_dot:
                    raise MalformedPathError(
                        f"Index must follow a key, not a dot, in key path '{text}'", text
                    )
                index = match.group("index")
                if index == "*":
                    segments.append(PathSegment(SegmentKind.INDEX_WILDCARD))
                else:
                    segments.append(PathSegment(SegmentKind.INDEX, int(index)))
            else:
                if segments and not after_dot:
                    raise MalformedPathError(f"Missing '.' before key in key path '{text}'", text)
                quoted = match.group("quoted")
                if quoted is not None:
                    segments.append(PathSegment(SegmentKind.KEY, re.sub(r"\\(.)", r"\1", quoted)))
                else:
                    name = match.group("bare").strip()
                    if not name:
                        raise MalformedPathError(f"Empty segment in key path '{text}'", text)
                    if name == "*":
                        segments.append(PathSegment(SegmentKind.WILDCARD))
                    else:
                        segments.append(PathSegment(SegmentKind.KEY, name))
                after_dot = False
            pos = match.end()

        if after_dot:
            raise MalformedPathError(f"Key path '{text}' ends with a dot", text)
        return cls(tuple(segments))

    @classmethod
    def root(cls) -> "KeyPath":
        return cls()

    def child(self, key: Any) -> "KeyPath":
        """Path of a mapping child."""
        return KeyPath(self.segments + (PathSegment(SegmentKind.KEY, key),))

    def index(self, position: int) -> "KeyPath":
        """Path of a sequence element."""
        return KeyPath(self.segments + (PathSegment(SegmentKind.INDEX, position),))

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def has_wildcard(self) -> bool:
        return any(segment.is_wildcard for segment in self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        rendered = ""
        for segment in self.segments:
            text = segment.render()
            if rendered and not segment.addresses_sequence:
                rendered += "."
            rendered += text
        return rendered


def parse_key_paths(texts) -> Tuple[KeyPath, ...]:
    """Parse several expressions, dropping duplicates but keeping first-seen order."""
    seen = {}
    for text in texts:
        path = KeyPath.parse(text)
        seen.setdefault(path, None)
    return tuple(seen)
