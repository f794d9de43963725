"""
YAML document loading and saving.

Documents are read in ruamel.yaml round-trip mode so that key order,
comments and quoting survive a load/save cycle.
"""

import io
from pathlib import Path
from typing import Any, List, Optional, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from confmigrate.core.errors import ParseError
from confmigrate.utils.helpers import atomic_write
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class YAMLParser:
    """Round-trip YAML parser with error handling using ruamel.yaml."""

    def __init__(self):
        """Initialize ruamel.yaml instance with proper settings."""
        self.yaml = YAML()
        self.yaml.preserve_quotes = True
        self.yaml.width = 1000
        self.yaml.indent(mapping=2, sequence=4, offset=2)

    def load_yaml_file(self, file_path: PathLike) -> CommentedMap:
        """
        Load a configuration document.

        Args:
            file_path: Path to the YAML file

        Returns:
            Parsed document; an empty document yields an empty mapping

        Raises:
            FileNotFoundError: If file doesn't exist
            OSError: If the file cannot be read
            ParseError: If YAML syntax is invalid or the root is not a mapping
        """
        documents = self.load_yaml_documents(file_path)
        if len(documents) > 1:
            raise ParseError("expected a single YAML document", str(file_path))
        data = documents[0] if documents else None
        return self._as_tree(data, str(file_path))

    def load_yaml_documents(self, file_path: PathLike) -> List[Any]:
        """
        Load every document of a (possibly multi-document) YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ParseError: If YAML syntax is invalid
        """
        try:
            with open(file_path, encoding="utf-8") as file:
                documents = list(self.yaml.load_all(file))
        except FileNotFoundError:
            raise FileNotFoundError(f"File not found: {file_path}")
        except (YAMLError, UnicodeDecodeError) as e:
            raise ParseError(f"invalid YAML syntax: {e}", str(file_path)) from e

        logger.debug(f"Loaded {len(documents)} document(s) from {file_path}")
        return documents

    def load_yaml_string(self, text: str) -> CommentedMap:
        """Parse a configuration document held in a string."""
        try:
            data = self.yaml.load(text)
        except YAMLError as e:
            raise ParseError(f"invalid YAML syntax: {e}") from e
        return self._as_tree(data, None)

    def dump_yaml_string(self, data: Any) -> str:
        """Serialize a document to a string."""
        stream = io.StringIO()
        self.yaml.dump(data, stream)
        return stream.getvalue()

    def save_yaml_file(self, data: Any, file_path: PathLike) -> None:
        """
        Save a document, replacing file_path atomically.

        Args:
            data: Document to save
            file_path: Output file path

        Raises:
            OSError: If the destination cannot be written
        """
        with atomic_write(file_path) as file:
            self.yaml.dump(data, file)
        logger.debug(f"Saved document to {file_path}")

    def validate_yaml_syntax(self, file_path: PathLike) -> bool:
        """
        Basic YAML syntax validation.

        Returns:
            True if the file loads as a configuration document
        """
        try:
            self.load_yaml_file(file_path)
            return True
        except (ParseError, OSError):
            return False

    def validate_all_files(self, file_paths: List[str]) -> tuple[bool, Optional[str]]:
        """
        Validate syntax of all input files.

        Returns:
            Tuple of (all_valid, error_message)
        """
        for file_path in file_paths:
            if not Path(file_path).exists():
                return False, f"File not found: {file_path}"

            if not self.validate_yaml_syntax(file_path):
                return False, f"Invalid YAML syntax in: {file_path}"

        return True, None

    @staticmethod
    def _as_tree(data: Any, source: Optional[str]) -> CommentedMap:
        if data is None:
            return CommentedMap()
        if not isinstance(data, dict):
            raise ParseError(
                f"document root must be a mapping, got {type(data).__name__}", source
            )
        return data
