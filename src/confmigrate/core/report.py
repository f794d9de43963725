"""Export of merge conflicts for later review."""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from confmigrate.core.keypath import KeyPath, SegmentKind
from confmigrate.core.merger import MergeConflict
from confmigrate.utils.helpers import atomic_write

CSV_FIELDS = ["path", "base_value", "delta_value"]


def summarize_conflicts(conflicts: List[MergeConflict]) -> Dict[str, Any]:
    """
    Build a summary of the conflicts kept in favour of the base document.

    Returns:
        Dictionary with a timestamp, the conflict count and top-level sections
    """
    sections: Dict[str, int] = {}
    for conflict in conflicts:
        section = _section(conflict.path)
        sections[section] = sections.get(section, 0) + 1

    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "total_conflicts": len(conflicts),
        "conflicts_by_section": sections,
    }


def export_conflicts_json(conflicts: List[MergeConflict], output_path: Union[str, Path]) -> None:
    """Write conflicts and their summary as a JSON document."""
    output_data = {
        "summary": summarize_conflicts(conflicts),
        "conflicts": [conflict.to_dict() for conflict in conflicts],
    }
    with atomic_write(output_path) as file:
        json.dump(output_data, file, indent=2, ensure_ascii=False, default=str)


def export_conflicts_csv(conflicts: List[MergeConflict], output_path: Union[str, Path]) -> None:
    """Write one CSV row per conflict."""
    with atomic_write(output_path, newline="") as file:
        writer = csv.DictWriter(file, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for conflict in conflicts:
            row = conflict.to_dict()
            writer.writerow({key: _format_value_for_csv(row[key]) for key in CSV_FIELDS})


def export_conflicts(conflicts: List[MergeConflict], output_path: Union[str, Path]) -> None:
    """Write conflicts as CSV when output_path ends in .csv, JSON otherwise."""
    if str(output_path).lower().endswith(".csv"):
        export_conflicts_csv(conflicts, output_path)
    else:
        export_conflicts_json(conflicts, output_path)


def _format_value_for_csv(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _section(path: str) -> str:
    """Name of the top-level key a conflict path starts with."""
    segments = KeyPath.parse(path).segments if path not in ("", ".") else ()
    if not segments:
        return "."
    first = segments[0]
    if first.kind is SegmentKind.KEY:
        return str(first.value)
    return first.render()
