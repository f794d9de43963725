"""
Structural diff between two configuration documents.

Used to show an operator how the default configuration changed between two
versions before a rule file is chosen.
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union

from ruamel.yaml.scalarbool import ScalarBoolean

from confmigrate.core.keypath import KeyPath
from confmigrate.core.parser import YAMLParser
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)


class ChangeKind(Enum):
    """Kind of difference found at a path."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


_MARKERS = {
    ChangeKind.ADDED: "+",
    ChangeKind.REMOVED: "-",
    ChangeKind.CHANGED: "~",
}


@dataclass(frozen=True)
class DiffEntry:
    """A single difference between the old and the new document."""

    path: KeyPath
    kind: ChangeKind
    old_value: Any = None
    new_value: Any = None

    @property
    def marker(self) -> str:
        return _MARKERS[self.kind]

    @property
    def path_text(self) -> str:
        return str(self.path) or "."

    def render(self) -> str:
        if self.kind is ChangeKind.ADDED:
            return f"+ {self.path_text}: {format_value(self.new_value)}"
        if self.kind is ChangeKind.REMOVED:
            return f"- {self.path_text}: {format_value(self.old_value)}"
        return (
            f"~ {self.path_text}: "
            f"{format_value(self.old_value)} -> {format_value(self.new_value)}"
        )


class DiffReport:
    """Immutable, ordered collection of DiffEntry items."""

    def __init__(self, entries: Tuple[DiffEntry, ...] = ()):
        self._entries = tuple(entries)

    @property
    def entries(self) -> Tuple[DiffEntry, ...]:
        return self._entries

    def __iter__(self) -> Iterator[DiffEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, DiffReport):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"DiffReport({len(self._entries)} entries)"

    def of_kind(self, kind: ChangeKind) -> List[DiffEntry]:
        return [entry for entry in self._entries if entry.kind is kind]

    def paths(self, kind: Optional[ChangeKind] = None) -> List[str]:
        return [
            entry.path_text
            for entry in self._entries
            if kind is None or entry.kind is kind
        ]

    def summary(self) -> dict:
        return {kind.value: len(self.of_kind(kind)) for kind in ChangeKind}

    def render(self) -> str:
        """Plain text, one change per line."""
        return "\n".join(entry.render() for entry in self._entries)


class TreeDiffer:
    """
    Recursive structural comparison of two configuration trees.

    Mappings are compared key by key; sequences index by index, so an
    insertion in the middle of a list shows up as one change per shifted
    element plus an addition at the end. Scalars are equal only when both
    their values and their kinds agree: 1 and 1.0 differ, as do true and 1.
    """

    def __init__(self, ignore_order: bool = False):
        self.ignore_order = ignore_order

    def diff(self, old: Any, new: Any) -> DiffReport:
        entries: List[DiffEntry] = []
        self._compare(old, new, KeyPath.root(), entries)
        logger.debug(f"Diff produced {len(entries)} entries")
        return DiffReport(tuple(entries))

    def _compare(self, old: Any, new: Any, path: KeyPath, entries: List[DiffEntry]) -> None:
        old_kind, new_kind = node_kind(old), node_kind(new)

        if old_kind != new_kind:
            entries.append(DiffEntry(path, ChangeKind.CHANGED, old, new))
        elif old_kind == "mapping":
            self._compare_mappings(old, new, path, entries)
        elif old_kind == "sequence":
            self._compare_sequences(old, new, path, entries)
        elif not scalars_equal(old, new):
            entries.append(DiffEntry(path, ChangeKind.CHANGED, old, new))

    def _compare_mappings(self, old: dict, new: dict, path: KeyPath, entries: List[DiffEntry]) -> None:
        if not self.ignore_order:
            old_order = [key for key in old if key in new]
            new_order = [key for key in new if key in old]
            if old_order != new_order:
                entries.append(DiffEntry(path, ChangeKind.CHANGED, old_order, new_order))

        for key, old_value in old.items():
            if key in new:
                self._compare(old_value, new[key], path.child(key), entries)
            else:
                entries.append(DiffEntry(path.child(key), ChangeKind.REMOVED, old_value, None))

        for key, new_value in new.items():
            if key not in old:
                entries.append(DiffEntry(path.child(key), ChangeKind.ADDED, None, new_value))

    def _compare_sequences(self, old: list, new: list, path: KeyPath, entries: List[DiffEntry]) -> None:
        common = min(len(old), len(new))
        for i in range(common):
            self._compare(old[i], new[i], path.index(i), entries)
        for i in range(common, len(old)):
            entries.append(DiffEntry(path.index(i), ChangeKind.REMOVED, old[i], None))
        for i in range(common, len(new)):
            entries.append(DiffEntry(path.index(i), ChangeKind.ADDED, None, new[i]))


def diff(tree_a: Any, tree_b: Any, ignore_order: bool = False) -> DiffReport:
    """Compare two in-memory trees."""
    return TreeDiffer(ignore_order=ignore_order).diff(tree_a, tree_b)


def diff_files(
    path_a: Union[str, Path],
    path_b: Union[str, Path],
    ignore_order: bool = False,
    parser: Optional[YAMLParser] = None,
) -> DiffReport:
    """Load two documents and compare them."""
    parser = parser or YAMLParser()
    logger.info(f"Comparing {path_a} with {path_b}")
    return diff(parser.load_yaml_file(path_a), parser.load_yaml_file(path_b), ignore_order)


def node_kind(value: Any) -> str:
    """
    Classify a node for comparison purposes.

    Returns "mapping", "sequence" or the scalar kind
    ("null", "bool", "int", "float", "str", or the Python type name).
    """
    if isinstance(value, dict):
        return "mapping"
    if isinstance(value, list):
        return "sequence"
    if value is None:
        return "null"
    # ruamel's ScalarBoolean subclasses int, so test it before int
    if isinstance(value, (bool, ScalarBoolean)):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return type(value).__name__


def scalars_equal(old: Any, new: Any) -> bool:
    """Compare two scalars of the same kind; NaN equals NaN."""
    if isinstance(old, float) and isinstance(new, float) and math.isnan(old) and math.isnan(new):
        return True
    return bool(old == new)


def to_plain(value: Any) -> Any:
    """Convert a round-trip tree into plain dicts, lists and scalars."""
    if isinstance(value, dict):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    if isinstance(value, (bool, ScalarBoolean)):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    return value


def format_value(value: Any) -> str:
    """Compact single-line rendering of a node."""
    plain = to_plain(value)
    if isinstance(plain, str):
        return plain
    return json.dumps(plain, ensure_ascii=False, default=str)
