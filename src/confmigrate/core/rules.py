"""
Rule file parsing.

A rule file describes how a configuration moves to a new version:

    delete:
      - raftstore.region-split-check-diff
      - rocksdb.defaultcf.compression-per-level[*]
    add:
      server:
        grpc-concurrency: 4   # new default

Several YAML documents may be stacked in one file; their delete lists are
concatenated and their additions merged in document order. Parsing splits
the file into two artifacts that later steps load by path:

    <output_dir>/<prefix>-new-keys.yml     additions, comments preserved
    <output_dir>/<prefix>-delete-keys.yml  {delete: [key paths]}
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import yaml
from ruamel.yaml.comments import CommentedMap

from confmigrate.core.errors import MalformedPathError, ParseError, TypeMismatchError
from confmigrate.core.keypath import KeyPath, parse_key_paths
from confmigrate.core.merger import merge_trees
from confmigrate.core.parser import YAMLParser
from confmigrate.utils.helpers import atomic_write, derived_file_path, ensure_directory
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)

DELETE_SECTION = "delete"
ADD_SECTION = "add"
RULE_SECTIONS = (DELETE_SECTION, ADD_SECTION)

NEW_KEYS_PURPOSE = "new-keys"
DELETE_KEYS_PURPOSE = "delete-keys"

PathLike = Union[str, Path]


@dataclass
class RuleSet:
    """In-memory form of a rule file."""

    delete_paths: Tuple[KeyPath, ...] = ()
    new_keys: CommentedMap = field(default_factory=CommentedMap)

    @property
    def delete_expressions(self) -> List[str]:
        return [str(path) for path in self.delete_paths]

    def is_empty(self) -> bool:
        return not self.delete_paths and not self.new_keys


class RuleFileParser:
    """Parses rule files and writes the derived new-keys/delete-keys artifacts."""

    def __init__(self, parser: Optional[YAMLParser] = None):
        self.parser = parser or YAMLParser()

    def parse(self, rule_file_path: PathLike, output_dir: PathLike, name_prefix: str) -> Tuple[Path, Path]:
        """
        Split a rule file into a new-keys document and a delete-keys document.

        Args:
            rule_file_path: Path to the rule file
            output_dir: Directory receiving both artifacts (created if missing)
            name_prefix: Prefix of the artifact file names

        Returns:
            Tuple of (new_keys_document_path, delete_keys_document_path)

        Raises:
            FileNotFoundError: If the rule file does not exist
            OSError: If the output directory cannot be written
            ParseError: If the rule file is malformed
        """
        if not name_prefix:
            raise ValueError("name_prefix must not be empty")

        rules = self.parse_rules(rule_file_path)

        ensure_directory(output_dir)
        new_keys_path = derived_file_path(output_dir, name_prefix, NEW_KEYS_PURPOSE)
        delete_keys_path = derived_file_path(output_dir, name_prefix, DELETE_KEYS_PURPOSE)

        self.parser.save_yaml_file(rules.new_keys, new_keys_path)
        save_delete_rules(rules.delete_expressions, delete_keys_path)

        logger.info(
            f"Parsed {rule_file_path}: {len(rules.delete_paths)} delete rule(s), "
            f"{len(rules.new_keys)} top-level new key(s)"
        )
        return new_keys_path, delete_keys_path

    def parse_rules(self, rule_file_path: PathLike) -> RuleSet:
        """
        Load and validate a rule file.

        Raises:
            FileNotFoundError: If the rule file does not exist
            ParseError: If the rule file is malformed
        """
        source = str(rule_file_path)
        documents = self.parser.load_yaml_documents(rule_file_path)

        delete_expressions: List[str] = []
        new_keys: Any = CommentedMap()

        for number, document in enumerate(documents, 1):
            if document is None:
                continue
            deletes, additions = self._split_document(document, number, source)
            delete_expressions.extend(deletes)
            if additions and not new_keys:
                new_keys = additions
            elif additions:
                try:
                    new_keys = merge_trees(new_keys, additions).tree
                except TypeMismatchError as e:
                    raise ParseError(f"conflicting '{ADD_SECTION}' sections: {e}", source) from e

        try:
            delete_paths = parse_key_paths(delete_expressions)
        except MalformedPathError as e:
            raise ParseError(f"malformed delete rule: {e}", source) from e

        return RuleSet(delete_paths, new_keys)

    @staticmethod
    def _split_document(document: Any, number: int, source: str) -> Tuple[List[str], Any]:
        if not isinstance(document, dict):
            raise ParseError(
                f"document {number} must be a mapping, got {type(document).__name__}", source
            )

        unknown = [str(key) for key in document if key not in RULE_SECTIONS]
        if unknown:
            raise ParseError(
                f"document {number} has unknown section(s) {', '.join(unknown)}; "
                f"expected {' and/or '.join(RULE_SECTIONS)}",
                source,
            )

        deletes = document.get(DELETE_SECTION) or []
        if not isinstance(deletes, list):
            raise ParseError(f"'{DELETE_SECTION}' must be a list of key paths", source)
        for entry in deletes:
            if not isinstance(entry, str):
                raise ParseError(
                    f"'{DELETE_SECTION}' entries must be strings, got {entry!r}", source
                )

        additions = document.get(ADD_SECTION)
        if additions is not None and not isinstance(additions, dict):
            raise ParseError(f"'{ADD_SECTION}' must be a mapping", source)

        return [str(entry) for entry in deletes], additions


def save_delete_rules(expressions: List[str], output_path: PathLike) -> None:
    """
    Write a delete-keys artifact.

    Args:
        expressions: Key path expressions
        output_path: Destination file
    """
    with atomic_write(output_path) as f:
        yaml.safe_dump({DELETE_SECTION: list(expressions)}, f, default_flow_style=False, sort_keys=False)


def load_delete_rules(path: PathLike) -> List[str]:
    """
    Read a delete-keys artifact back.

    Returns:
        The key path expressions, validated

    Raises:
        FileNotFoundError: If the file does not exist
        ParseError: If the file is not a valid delete-keys document
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Delete rules file not found: {path}")
    except yaml.YAMLError as e:
        raise ParseError(f"invalid YAML in delete rules: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise ParseError("delete rules must be a mapping", str(path))
    expressions = data.get(DELETE_SECTION) or []
    if not isinstance(expressions, list) or not all(isinstance(e, str) for e in expressions):
        raise ParseError(f"'{DELETE_SECTION}' must be a list of strings", str(path))

    try:
        parse_key_paths(expressions)
    except MalformedPathError as e:
        raise ParseError(f"malformed delete rule: {e}", str(path)) from e
    return expressions


def parse(rule_file_path: PathLike, output_dir: PathLike, name_prefix: str) -> Tuple[Path, Path]:
    """Module-level shortcut for RuleFileParser.parse."""
    return RuleFileParser().parse(rule_file_path, output_dir, name_prefix)
