"""
File helpers shared by the parser, the rule parser and the CLI.
"""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional, TextIO, Union

PathLike = Union[str, Path]


def derived_file_path(output_dir: PathLike, prefix: str, purpose: str) -> Path:
    """
    Build the deterministic path of a derived artifact.

    Example:
        derived_file_path("/tmp/run", "tikv", "new-keys") -> /tmp/run/tikv-new-keys.yml
    """
    return Path(output_dir) / f"{prefix}-{purpose}.yml"


def ensure_directory(directory: PathLike) -> Path:
    """Create a directory (and parents) if needed; OSError propagates."""
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    return path


@contextlib.contextmanager
def atomic_write(file_path: PathLike, newline: Optional[str] = None) -> Iterator[TextIO]:
    """
    Open a temporary file next to file_path and move it into place on success.

    If the body raises, the temporary file is removed and any existing
    file at file_path is left untouched.
    """
    target = Path(file_path)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline=newline,
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
        delete=False,
    )
    tmp_path = Path(handle.name)
    try:
        with handle:
            yield handle
        os.replace(tmp_path, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            tmp_path.unlink()
        raise

