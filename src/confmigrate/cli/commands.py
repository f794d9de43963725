"""
CLI commands for confmigrate.

Thin wrappers around the core: every command takes explicit file paths and
prints its results with rich.
"""

import time
import tempfile
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from confmigrate.core.deleter import TreeDeleter
from confmigrate.core.differ import ChangeKind, DiffReport, diff_files, format_value
from confmigrate.core.errors import ConfigMigrateError
from confmigrate.core.merger import MergeConflict, MergePolicy, merge
from confmigrate.core.migrator import Migrator
from confmigrate.core.parser import YAMLParser
from confmigrate.core.report import export_conflicts
from confmigrate.core.rules import RuleFileParser, load_delete_rules
from confmigrate.utils.logging import level_from_flags, setup_logging

_KIND_STYLES = {
    ChangeKind.ADDED: "green",
    ChangeKind.REMOVED: "red",
    ChangeKind.CHANGED: "yellow",
}

_handled_errors = (ConfigMigrateError, OSError, ValueError)

existing_file = click.Path(exists=True, dir_okay=False, path_type=Path)


def verbosity_options(command):
    """Add the shared -v/--verbose, --debug and --log-file options."""
    command = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Also write a debug log to this file",
    )(command)
    command = click.option("--debug", is_flag=True, help="Debug output")(command)
    command = click.option("-v", "--verbose", is_flag=True, help="Verbose output")(command)
    return command


def _print_diff(console: Console, report: DiffReport, title: str) -> None:
    """Print a diff report, one coloured line per change, and a summary table."""
    if not report:
        console.print("[green]No differences found[/green]")
        return

    console.print(f"[bold blue]{escape(title)}[/bold blue]")
    for entry in report:
        console.print(Text(entry.render(), style=_KIND_STYLES[entry.kind]), soft_wrap=True)

    table = Table(title="Diff Summary")
    table.add_column("Change", style="cyan")
    table.add_column("Count", style="green")
    for kind, count in report.summary().items():
        table.add_row(kind, str(count))
    console.print(table)


def _print_conflicts(console: Console, conflicts: list[MergeConflict]) -> None:
    """Show conflicts where the base value was kept."""
    table = Table(
        title="Conflicts (base value kept)",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("#", style="dim", width=3)
    table.add_column("Path", style="magenta", overflow="fold")
    table.add_column("Kept", style="green", overflow="fold", max_width=30)
    table.add_column("Ignored", style="red", overflow="fold", max_width=30)

    for i, conflict in enumerate(conflicts, 1):
        table.add_row(
            str(i),
            escape(conflict.path),
            escape(format_value(conflict.base_value)),
            escape(format_value(conflict.delta_value)),
        )
    console.print(table)


def _fail(console: Console, logger, error) -> None:
    logger.error(f"Error: {error}")
    console.print(f"[bold red]Error: {escape(str(error))}[/bold red]")
    raise click.Abort()


@click.command(name="diff")
@click.argument("old_file", type=existing_file)
@click.argument("new_file", type=existing_file)
@click.option(
    "--ignore-order/--strict-order",
    default=True,
    show_default=True,
    help="Ignore key reordering within mappings",
)
@click.option("--fail-on-diff", is_flag=True, help="Exit with status 1 when documents differ")
@verbosity_options
@click.pass_context
def diff_command(
    ctx: click.Context,
    old_file: Path,
    new_file: Path,
    ignore_order: bool,
    fail_on_diff: bool,
    verbose: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """
    Show how NEW_FILE differs from OLD_FILE.

    Typically used on the default configuration of two versions before
    picking a rule file.
    """
    logger = setup_logging(level_from_flags(verbose, debug), log_file)
    console = Console()

    try:
        report = diff_files(old_file, new_file, ignore_order)
    except _handled_errors as e:
        _fail(console, logger, e)

    _print_diff(console, report, f"{old_file} -> {new_file}")
    if report and fail_on_diff:
        ctx.exit(1)


@click.command(name="parse-rules")
@click.argument("rule_file", type=existing_file)
@click.option(
    "-d",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory receiving the derived files",
)
@click.option("-p", "--prefix", default="config", show_default=True, help="File name prefix")
@verbosity_options
def parse_rules(
    rule_file: Path,
    output_dir: Path,
    prefix: str,
    verbose: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """Split RULE_FILE into a new-keys document and a delete-keys document."""
    logger = setup_logging(level_from_flags(verbose, debug), log_file)
    console = Console()

    try:
        new_keys_path, delete_keys_path = RuleFileParser().parse(rule_file, output_dir, prefix)
    except _handled_errors as e:
        _fail(console, logger, e)

    console.print(f"[green]✓ New keys:[/green] {escape(str(new_keys_path))}")
    console.print(f"[green]✓ Delete keys:[/green] {escape(str(delete_keys_path))}")


@click.command(name="delete")
@click.argument("config_file", type=existing_file)
@click.argument("key_paths", nargs=-1)
@click.option(
    "-f",
    "--from-file",
    "delete_rules_file",
    type=existing_file,
    help="Delete-keys document produced by parse-rules",
)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True)
@verbosity_options
def delete(
    config_file: Path,
    key_paths: tuple,
    delete_rules_file: Path,
    output: Path,
    verbose: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """
    Delete KEY_PATHS from CONFIG_FILE and write the result to OUTPUT.

    Paths use dots for keys and brackets for indices, e.g. server.labels,
    items[0] or items[*]. Paths that match nothing are skipped.
    """
    logger = setup_logging(level_from_flags(verbose, debug), log_file)
    console = Console()

    paths = list(key_paths)
    try:
        if delete_rules_file:
            paths.extend(load_delete_rules(delete_rules_file))
        if not paths:
            raise click.UsageError("No key paths given")

        parser = YAMLParser()
        result = TreeDeleter(parser).delete_multi(config_file, paths)
        parser.save_yaml_file(result, output)
    except _handled_errors as e:
        _fail(console, logger, e)

    console.print(f"[green]✓ Applied {len(paths)} delete rule(s) → {escape(str(output))}[/green]")


@click.command(name="merge")
@click.argument("base_file", type=existing_file)
@click.argument("delta_file", type=existing_file)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), required=True)
@click.option(
    "--recursive/--shallow",
    default=True,
    show_default=True,
    help="Recurse into shared mappings, or replace them wholesale",
)
@click.option(
    "--overwrite/--keep-base",
    default=True,
    show_default=True,
    help="On conflict use the delta value, or keep the base value and report it",
)
@click.option(
    "--report",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write conflicts to a JSON (or .csv) file",
)
@verbosity_options
def merge_command(
    base_file: Path,
    delta_file: Path,
    output: Path,
    recursive: bool,
    overwrite: bool,
    report: Path,
    verbose: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """Merge DELTA_FILE into BASE_FILE and write the result to OUTPUT."""
    logger = setup_logging(level_from_flags(verbose, debug), log_file)
    console = Console()

    try:
        result = merge(recursive, overwrite, base_file, delta_file)
        YAMLParser().save_yaml_file(result.tree, output)
        if report:
            export_conflicts(result.conflicts, report)
    except _handled_errors as e:
        _fail(console, logger, e)

    if result.conflicts:
        _print_conflicts(console, result.conflicts)
    console.print(f"[green]✓ Merged configuration written to {escape(str(output))}[/green]")


def _default_work_dir(config_file: Path) -> Path:
    return Path(tempfile.gettempdir()) / "confmigrate" / config_file.stem / str(int(time.time()))


@click.command(name="migrate")
@click.argument("config_file", type=existing_file)
@click.argument("rule_file", type=existing_file)
@click.option(
    "-w",
    "--work-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for intermediate and final files (default: fresh temporary directory)",
)
@click.option("-p", "--prefix", default="", help="File name prefix (default: CONFIG_FILE name)")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the target configuration to this file",
)
@click.option("--old-defaults", type=existing_file, help="Default configuration of the current version")
@click.option("--new-defaults", type=existing_file, help="Default configuration of the target version")
@click.option(
    "--overwrite",
    is_flag=True,
    help="Let rule file values replace existing values instead of keeping them",
)
@click.option(
    "--report",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write conflicts to a JSON (or .csv) file",
)
@verbosity_options
def migrate(
    config_file: Path,
    rule_file: Path,
    work_dir: Path,
    prefix: str,
    output: Path,
    old_defaults: Path,
    new_defaults: Path,
    overwrite: bool,
    report: Path,
    verbose: bool,
    debug: bool,
    log_file: Optional[Path],
):
    """
    Migrate CONFIG_FILE to a new version using RULE_FILE.

    Steps:
    1. Validate the configuration documents
    2. Optionally show how the default configuration changed
    3. Delete the keys listed in the rule file, then merge in the new
       keys (existing values win unless --overwrite)
    """
    logger = setup_logging(level_from_flags(verbose, debug), log_file)
    console = Console()

    if bool(old_defaults) != bool(new_defaults):
        raise click.UsageError("--old-defaults and --new-defaults must be given together")

    work_dir = work_dir or _default_work_dir(config_file)
    prefix = prefix or config_file.stem
    policy = MergePolicy(recursive=True, overwrite_on_conflict=overwrite)
    migrator = Migrator(policy)

    logger.info("Step 1: Validating configuration documents")
    input_files = [config_file] + ([old_defaults, new_defaults] if old_defaults else [])
    is_valid, error_msg = migrator.parser.validate_all_files(input_files)
    if not is_valid:
        _fail(console, logger, error_msg)

    try:
        if old_defaults:
            logger.info("Step 2: Comparing default configurations")
            defaults_diff = migrator.compare_defaults(old_defaults, new_defaults)
            if defaults_diff:
                _print_diff(console, defaults_diff, "Default configuration has changed!")

        logger.info("Step 3: Applying rule file")
        result = migrator.generate_config_by_rule_file(config_file, rule_file, work_dir, prefix)

        if output:
            migrator.parser.save_yaml_file(result.target_config, output)
        if report:
            export_conflicts(result.conflicts, report)
    except _handled_errors as e:
        _fail(console, logger, e)

    if result.conflicts:
        _print_conflicts(console, result.conflicts)

    target = output or result.target_config_path
    console.print(
        Panel.fit(
            f"[bold green]Migration successful![/bold green]\n"
            f"Deleted paths: {len(result.deleted_paths)}\n"
            f"New keys: {escape(str(result.new_keys_path))}\n"
            f"Waiting merge: {escape(str(result.waiting_merge_path))}\n"
            f"Target config: {escape(str(target))}",
            title="confmigrate",
            border_style="green",
        )
    )
    logger.info("Migration finished successfully")


@click.group()
def cli():
    """confmigrate - rule-driven YAML configuration migration."""


cli.add_command(diff_command)
cli.add_command(parse_rules)
cli.add_command(delete)
cli.add_command(merge_command)
cli.add_command(migrate)
