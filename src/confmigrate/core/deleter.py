"""
Path-based deletion of configuration nodes.

All paths are first resolved against the input document, then removed in one
pass. Deleting a path that matches nothing is a no-op, which lets rule files
be written against a superset of the keys any one document carries.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from confmigrate.core.comments import (
    append_following_lines,
    detach_following_lines,
    prepend_leading_lines,
)
from confmigrate.core.errors import MalformedPathError
from confmigrate.core.keypath import KeyPath, PathSegment, SegmentKind
from confmigrate.core.parser import YAMLParser
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)

Location = Tuple[Any, Any]  # (parent container, key or index)
_MISSING = object()


class TreeDeleter:
    """Removes nodes addressed by key paths from a configuration tree."""

    def __init__(self, parser: Optional[YAMLParser] = None):
        self.parser = parser or YAMLParser()

    def delete_multi(
        self, document_path: Union[str, Path], key_paths: Iterable[Union[str, KeyPath]]
    ) -> Any:
        """
        Load a document and delete every node matched by key_paths.

        Args:
            document_path: Path to the YAML document
            key_paths: Path expressions or parsed KeyPaths

        Returns:
            The resulting document (the file itself is not modified)

        Raises:
            FileNotFoundError: If the document does not exist
            ParseError: If the document is not valid YAML
            MalformedPathError: If a path is invalid for the document
        """
        document = self.parser.load_yaml_file(document_path)
        logger.info(f"Deleting keys from {document_path}")
        return self.delete_paths(document, key_paths)

    @staticmethod
    def delete_paths(tree: Any, key_paths: Iterable[Union[str, KeyPath]]) -> Any:
        """
        Return a copy of tree without the nodes matched by key_paths.

        Removing a sequence element shifts the following elements down.
        Indices always refer to positions in the input tree, so
        ["items[0]", "items[1]"] removes the first two original elements.
        """
        result = copy.deepcopy(tree)
        paths = [KeyPath.parse(p) if isinstance(p, str) else p for p in key_paths]

        targets: Dict[int, _Target] = {}
        for path in paths:
            matched = 0
            for parent, key, here, owner in _resolve(result, path.segments, KeyPath.root(), path):
                target = targets.setdefault(id(parent), _Target(parent, len(here.segments), owner))
                if key not in target.keys:
                    target.keys.append(key)
                matched += 1
            if matched:
                logger.debug(f"Path '{path}' matched {matched} node(s)")
            else:
                logger.debug(f"Path '{path}' matched nothing, skipped")

        # Deepest containers first, so comment lines moved upwards land on final entries
        for target in sorted(targets.values(), key=lambda t: t.depth, reverse=True):
            target.remove()

        return result


class _Target:
    """Entries to remove from one container."""

    def __init__(self, container: Any, depth: int, owner: Optional[Location]):
        self.container = container
        self.depth = depth
        self.owner = owner
        self.keys: List[Any] = []

    def remove(self) -> None:
        leftover = self._release_comments()
        if isinstance(self.container, list):
            for index in sorted(self.keys, reverse=True):
                del self.container[index]
        else:
            for key in self.keys:
                if key in self.container:
                    del self.container[key]
        if leftover and self.owner is not None:
            append_following_lines(self.owner[0], self.owner[1], leftover)

    def _release_comments(self) -> str:
        """
        Hand comment lines stored on removed entries to the surviving ones.

        Lines go above the next survivor, or below the last one. Returns the
        lines left over when no entry survives.
        """
        if isinstance(self.container, dict):
            positions = list(self.container.keys())
        else:
            positions = list(range(len(self.container)))

        pending = ""
        previous = None
        for key in positions:
            if key in self.keys:
                pending += detach_following_lines(self.container, key)
                continue
            prepend_leading_lines(self.container, key, pending)
            pending = ""
            previous = key

        if pending and previous is not None:
            append_following_lines(self.container, previous, pending)
            return ""
        return pending


def delete_paths(tree: Any, key_paths: Iterable[Union[str, KeyPath]]) -> Any:
    """Module-level shortcut for TreeDeleter.delete_paths."""
    return TreeDeleter.delete_paths(tree, key_paths)


def _resolve(
    node: Any,
    segments: Tuple[PathSegment, ...],
    here: KeyPath,
    full: KeyPath,
    owner: Optional[Location] = None,
    via_wildcard: bool = False,
) -> Iterator[Tuple[Any, Any, KeyPath, Optional[Location]]]:
    """
    Yield (parent, key, parent path, parent location) for every node the
    remaining segments address.

    A segment of the wrong kind for the node it meets is an error on a literal
    path. Below a wildcard it only means that this branch does not match.
    """
    if not segments:
        return
    segment, rest = segments[0], segments[1:]
    expanded = via_wildcard or segment.kind in (SegmentKind.WILDCARD, SegmentKind.INDEX_WILDCARD)

    if isinstance(node, dict):
        if segment.addresses_sequence:
            if via_wildcard:
                return
            raise MalformedPathError(
                f"Key path '{full}' uses index {segment.render()} on mapping '{here or '.'}'",
                str(full),
            )
        if segment.kind is SegmentKind.WILDCARD:
            children = list(node.keys())
        else:
            key = _lookup_key(node, segment.value)
            children = [] if key is _MISSING else [key]
        for key in children:
            if rest:
                yield from _resolve(node[key], rest, here.child(key), full, (node, key), expanded)
            else:
                yield node, key, here, owner

    elif isinstance(node, list):
        if segment.kind is SegmentKind.KEY:
            if via_wildcard:
                return
            raise MalformedPathError(
                f"Key path '{full}' uses key '{segment.value}' on sequence '{here or '.'}'",
                str(full),
            )
        if segment.kind is SegmentKind.INDEX:
            children = [segment.value] if segment.value < len(node) else []
        else:
            children = list(range(len(node)))
        for index in children:
            if rest:
                yield from _resolve(node[index], rest, here.index(index), full, (node, index), expanded)
            else:
                yield node, index, here, owner

    # Scalars have no children: the path simply does not match


def _lookup_key(mapping: dict, name: Any) -> Any:
    """Find name in mapping, also matching non-string keys by their text."""
    if name in mapping:
        return name
    for key in mapping:
        if not isinstance(key, str) and str(key) == str(name):
            return key
    return _MISSING
