"""
Exception hierarchy for configuration migration.

Every failure raised by the core derives from ConfigMigrateError, except
file access problems, which use the built-in OSError family
(FileNotFoundError, PermissionError) as-is.
"""

from typing import Optional


class ConfigMigrateError(Exception):
    """Base class for all configuration migration errors."""


class ParseError(ConfigMigrateError, ValueError):
    """Raised when a rule file or configuration document is malformed."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class MalformedPathError(ConfigMigrateError, ValueError):
    """
    Raised for an ill-formed key path, or one that does not fit the tree.

    Examples:
        - "a..b" or "a[x]" (syntax)
        - "a[0]" where "a" is a mapping
        - "a.b" where "a" is a sequence
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class TypeMismatchError(ConfigMigrateError, TypeError):
    """
    Raised when a merge meets incompatible node kinds at the same key.

    Example:
        - base:  {"server": {"port": 20160}}
        - delta: {"server": "localhost"}
    """

    def __init__(self, path: str, base_kind: str, delta_kind: str):
        self.path = path
        self.base_kind = base_kind
        self.delta_kind = delta_kind
        super().__init__(
            f"Cannot merge {delta_kind} into {base_kind} at '{path}'"
        )
