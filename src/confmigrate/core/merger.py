"""
Configuration merger driven by an explicit merge policy.

Merges a delta document (typically the new keys of a rule file) into a base
document (typically the origin configuration after deletions):

| recursive | key present in both                      | key only in delta        |
|-----------|------------------------------------------|--------------------------|
| True      | mappings recurse; leaf conflicts follow  | inserted next to its     |
|           | overwrite_on_conflict                    | delta siblings           |
| False     | a mapping on either side is replaced by  | inserted as above        |
|           | the delta subtree; leaf conflicts follow |                          |
|           | overwrite_on_conflict                    |                          |

With overwrite_on_conflict=False a conflicting scalar or sequence keeps its
base value and the conflict is recorded instead. The base document's order
and comments are preserved.
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ruamel.yaml.comments import CommentedMap

from confmigrate.core.comments import (
    append_following_lines,
    detach_following_lines,
    following_lines,
    prepend_leading_lines,
)
from confmigrate.core.differ import diff, node_kind, to_plain
from confmigrate.core.errors import TypeMismatchError
from confmigrate.core.keypath import KeyPath
from confmigrate.core.parser import YAMLParser
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MergePolicy:
    """How a delta is merged into a base document."""

    recursive: bool = True
    overwrite_on_conflict: bool = True

    def describe(self) -> str:
        mode = "recursive" if self.recursive else "shallow"
        winner = "delta wins" if self.overwrite_on_conflict else "base wins"
        return f"{mode}, {winner} on conflict"


@dataclass
class MergeConflict:
    """A leaf conflict where the base value was kept."""

    path: str
    base_value: Any
    delta_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "base_value": to_plain(self.base_value),
            "delta_value": to_plain(self.delta_value),
        }


@dataclass
class MergeResult:
    """Merged document plus the conflicts that were resolved in favour of the base."""

    tree: Any
    conflicts: List[MergeConflict] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


class ConfigMerger:
    """Generic YAML configuration merger."""

    def __init__(self, policy: Optional[MergePolicy] = None, parser: Optional[YAMLParser] = None):
        self.policy = policy or MergePolicy()
        self.parser = parser or YAMLParser()

    def merge_files(
        self, base_document_path: Union[str, Path], delta_document_path: Union[str, Path]
    ) -> MergeResult:
        """
        Load two documents and merge the second into the first.

        Raises:
            FileNotFoundError: If either document does not exist
            ParseError: If either document is not valid YAML
            TypeMismatchError: If the policy cannot reconcile two node kinds
        """
        logger.info(
            f"Merging {delta_document_path} into {base_document_path} ({self.policy.describe()})"
        )
        base = self.parser.load_yaml_file(base_document_path)
        delta = self.parser.load_yaml_file(delta_document_path)
        return self.merge_trees(base, delta)

    def merge_trees(self, base: Any, delta: Any) -> MergeResult:
        """
        Merge delta into a copy of base.

        Args:
            base: Base document (not modified)
            delta: Delta document (not modified)

        Returns:
            MergeResult with the merged document and recorded conflicts
        """
        result = copy.deepcopy(base) if base is not None else CommentedMap()
        conflicts: List[MergeConflict] = []

        if delta is None:
            return MergeResult(result, conflicts)
        if not isinstance(result, dict) or not isinstance(delta, dict):
            raise TypeMismatchError(".", node_kind(result), node_kind(delta))

        self._merge_mapping(result, delta, KeyPath.root(), conflicts)

        if conflicts:
            logger.info(f"Kept base value for {len(conflicts)} conflicting key(s)")
        return MergeResult(result, conflicts)

    def _merge_mapping(
        self, target: dict, delta: dict, path: KeyPath, conflicts: List[MergeConflict]
    ) -> None:
        for key, delta_value in delta.items():
            child_path = path.child(key)

            if key not in target:
                logger.debug(f"Adding new key '{child_path}'")
                _insert_key(target, key, copy.deepcopy(delta_value), delta)
                continue

            base_value = target[key]
            base_is_mapping = isinstance(base_value, dict)
            delta_is_mapping = isinstance(delta_value, dict)

            if not self.policy.recursive and (base_is_mapping or delta_is_mapping):
                logger.debug(f"Replacing subtree '{child_path}'")
                following = detach_following_lines(target, key)
                target[key] = copy.deepcopy(delta_value)
                append_following_lines(target, key, following)
                continue
            if base_is_mapping and delta_is_mapping:
                self._merge_mapping(base_value, delta_value, child_path, conflicts)
                continue
            if base_is_mapping or delta_is_mapping:
                raise TypeMismatchError(
                    str(child_path), node_kind(base_value), node_kind(delta_value)
                )

            self._resolve_conflict(target, key, base_value, delta_value, child_path, conflicts)

    def _resolve_conflict(
        self,
        target: dict,
        key: Any,
        base_value: Any,
        delta_value: Any,
        path: KeyPath,
        conflicts: List[MergeConflict],
    ) -> None:
        if not diff(base_value, delta_value, ignore_order=True):
            return

        if self.policy.overwrite_on_conflict:
            logger.debug(f"Overwriting '{path}'")
            following = detach_following_lines(target, key)
            target[key] = copy.deepcopy(delta_value)
            append_following_lines(target, key, following)
        else:
            logger.debug(f"Keeping base value at '{path}'")
            conflicts.append(MergeConflict(str(path), base_value, delta_value))


def merge(
    recursive: bool,
    overwrite_on_conflict: bool,
    base_document_path: Union[str, Path],
    delta_document_path: Union[str, Path],
    parser: Optional[YAMLParser] = None,
) -> MergeResult:
    """Merge two documents on disk under the given policy."""
    merger = ConfigMerger(MergePolicy(recursive, overwrite_on_conflict), parser)
    return merger.merge_files(base_document_path, delta_document_path)


def merge_trees(
    base: Any, delta: Any, recursive: bool = True, overwrite_on_conflict: bool = True
) -> MergeResult:
    """Merge two in-memory trees under the given policy."""
    return ConfigMerger(MergePolicy(recursive, overwrite_on_conflict)).merge_trees(base, delta)


def _insert_key(target: dict, key: Any, value: Any, delta: dict) -> None:
    """
    Insert key into target at the position it has among its delta siblings.

    The key goes right after the closest preceding delta sibling present in
    target, else right before the closest following one, else at the end.
    Comment lines stored on the entry before the insertion point stay above
    the entry they describe.
    """
    delta_keys = list(delta.keys())
    target_keys = list(target.keys())
    position = _insert_position(key, delta_keys, target_keys)
    if position is None:
        position = len(target_keys)

    following = detach_following_lines(target, target_keys[position - 1]) if position else ""

    if position >= len(target_keys):
        target[key] = value
    elif isinstance(target, CommentedMap):
        target.insert(position, key, value)
    else:
        items = list(target.items())
        items.insert(position, (key, value))
        target.clear()
        target.update(items)

    _carry_key_comment(target, key, delta)

    if position < len(target_keys):
        prepend_leading_lines(target, target_keys[position], following)
    else:
        append_following_lines(target, key, following)


def _insert_position(key: Any, delta_keys: List[Any], target_keys: List[Any]) -> Optional[int]:
    index = delta_keys.index(key)
    for previous in reversed(delta_keys[:index]):
        if previous in target_keys:
            return target_keys.index(previous) + 1
    for following in delta_keys[index + 1:]:
        if following in target_keys:
            return target_keys.index(following)
    return None


def _carry_key_comment(target: dict, key: Any, delta: dict) -> None:
    """
    Copy the comments of key in delta onto the inserted key.

    Lines stored after the entry belong to the next delta key and are left
    behind; lines stored after the previous delta key are carried above.
    """
    if not isinstance(target, CommentedMap) or not isinstance(delta, CommentedMap):
        return
    comment = delta.ca.items.get(key)
    if comment is not None:
        target.ca.items[key] = copy.deepcopy(comment)
    else:
        # A deleted entry of the same name may have left its comment behind
        target.ca.items.pop(key, None)
    detach_following_lines(target, key)

    delta_keys = list(delta.keys())
    index = delta_keys.index(key)
    if index:
        prepend_leading_lines(target, key, following_lines(delta, delta_keys[index - 1]))
