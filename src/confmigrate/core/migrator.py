"""
End-to-end migration of a configuration document with a rule file.

Workflow:
1. Parse the rule file into new-keys and delete-keys artifacts
2. Delete the listed keys from the origin document
3. Save the result as the waiting-merge document
4. Merge the new keys into it
5. Save the target configuration

Every artifact is written to a new path under the work directory; nothing is
removed afterwards, so the caller can inspect each intermediate step.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

from confmigrate.core.deleter import TreeDeleter
from confmigrate.core.differ import DiffReport, diff_files
from confmigrate.core.merger import ConfigMerger, MergeConflict, MergePolicy
from confmigrate.core.parser import YAMLParser
from confmigrate.core.rules import RuleFileParser, load_delete_rules
from confmigrate.utils.helpers import derived_file_path, ensure_directory
from confmigrate.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]

WAITING_MERGE_PURPOSE = "waiting-merge"
TARGET_CONFIG_PURPOSE = "target-config"

# Existing values win: rule files only introduce new defaults
DEFAULT_MIGRATION_POLICY = MergePolicy(recursive=True, overwrite_on_conflict=False)


@dataclass
class MigrationResult:
    """Artifacts produced by one migration run."""

    target_config_path: Path
    new_keys_path: Path
    delete_keys_path: Path
    waiting_merge_path: Path
    deleted_paths: List[str] = field(default_factory=list)
    conflicts: List[MergeConflict] = field(default_factory=list)
    target_config: Any = None


class Migrator:
    """Runs the rule-driven migration of one configuration document."""

    def __init__(self, policy: Optional[MergePolicy] = None, parser: Optional[YAMLParser] = None):
        self.policy = policy or DEFAULT_MIGRATION_POLICY
        self.parser = parser or YAMLParser()
        self.rule_parser = RuleFileParser(self.parser)
        self.deleter = TreeDeleter(self.parser)
        self.merger = ConfigMerger(self.policy, self.parser)

    def generate_config_by_rule_file(
        self,
        config_file: PathLike,
        rule_file: PathLike,
        work_dir: PathLike,
        prefix: str,
    ) -> MigrationResult:
        """
        Produce the target configuration for config_file using rule_file.

        Args:
            config_file: Origin configuration document
            rule_file: Rule file describing deletions and additions
            work_dir: Directory receiving all artifacts (created if missing)
            prefix: Prefix of the artifact file names

        Returns:
            MigrationResult describing every artifact written

        Raises:
            FileNotFoundError: If config_file or rule_file does not exist
            OSError: If work_dir cannot be written
            ParseError: If a document or the rule file is malformed
            MalformedPathError: If a delete rule does not fit the document
            TypeMismatchError: If a new key clashes with an existing node kind
        """
        ensure_directory(work_dir)
        logger.info(f"Migrating {config_file} with rules {rule_file}")

        new_keys_path, delete_keys_path = self.rule_parser.parse(rule_file, work_dir, prefix)

        delete_rules = load_delete_rules(delete_keys_path)
        remaining = self.deleter.delete_multi(config_file, delete_rules)

        waiting_merge_path = derived_file_path(work_dir, prefix, WAITING_MERGE_PURPOSE)
        self.parser.save_yaml_file(remaining, waiting_merge_path)
        logger.debug(f"Saved waiting-merge document to {waiting_merge_path}")

        merged = self.merger.merge_files(waiting_merge_path, new_keys_path)

        target_config_path = derived_file_path(work_dir, prefix, TARGET_CONFIG_PURPOSE)
        self.parser.save_yaml_file(merged.tree, target_config_path)
        logger.info(f"Target configuration written to {target_config_path}")

        return MigrationResult(
            target_config_path=target_config_path,
            new_keys_path=new_keys_path,
            delete_keys_path=delete_keys_path,
            waiting_merge_path=waiting_merge_path,
            deleted_paths=delete_rules,
            conflicts=merged.conflicts,
            target_config=merged.tree,
        )

    def compare_defaults(
        self, old_defaults: PathLike, new_defaults: PathLike, ignore_order: bool = True
    ) -> DiffReport:
        """Diff the default configurations of the current and the target version."""
        report = diff_files(old_defaults, new_defaults, ignore_order, self.parser)
        if report:
            logger.info(f"Default configuration changed: {report.summary()}")
        else:
            logger.info("Default configuration unchanged")
        return report
