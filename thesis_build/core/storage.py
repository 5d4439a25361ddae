"""File-system helpers for the build pipeline.

Provides `write_yaml` (settings persistence), `remove_temp_files` for the
by-products LaTeX leaves behind and `publish_output`, which copies a
compiled document to its final location.
"""
from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

import yaml

from .config import settings
from .errors import NotFoundError, SettingsWriteError

LOG = logging.getLogger(__name__)


def write_yaml(doc: Any, path: Union[str, Path]) -> str:
    """Serialize `doc` as YAML at `path`, creating or overwriting the file.

    Ensures the parent directory exists. Returns the absolute path of the
    written file. Any OS or serializer failure is raised as
    `SettingsWriteError`.
    """
    file_path = Path(path).expanduser()
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(doc, fh, sort_keys=False, allow_unicode=True, default_flow_style=False)
    except (OSError, yaml.YAMLError) as exc:
        raise SettingsWriteError(file_path, str(exc)) from exc

    return str(file_path.resolve())


def remove_temp_files(
    directory: Union[str, Path, None] = None,
    patterns: Optional[Iterable[str]] = None,
    exclude: Iterable[Union[str, Path]] = (),
) -> List[str]:
    """Delete files in `directory` whose names match any of `patterns`.

    Matching is case-insensitive and non-recursive. `directory` defaults to
    the current working directory and `patterns` to
    `settings.TEMP_FILE_PATTERNS`. Files listed in `exclude` are kept even
    when they match. Returns the removed paths.
    """
    if patterns is None:
        patterns = settings.TEMP_FILE_PATTERNS
    target = Path(directory) if directory is not None else Path.cwd()
    if not target.is_dir():
        raise NotFoundError(f"Directory to clean does not exist: {target}", [target])

    pattern_list = list(patterns)
    if not pattern_list:
        return []
    matcher = re.compile("|".join(pattern_list), re.IGNORECASE)
    keep = {Path(p).resolve() for p in exclude}

    removed: List[str] = []
    for entry in target.iterdir():
        if entry.is_file() and matcher.search(entry.name) and entry.resolve() not in keep:
            entry.unlink()
            removed.append(str(entry))
            LOG.debug("Removed temporary file %s", entry)
    return removed


def publish_output(src: Union[str, Path], dest: Union[str, Path]) -> str:
    """Copy the compiled document `src` to `dest`, overwriting it.

    Returns the absolute destination path.
    """
    src_path = Path(src)
    if not src_path.exists():
        raise NotFoundError(f"Compiled document not found: {src_path}", [src_path])
    dest_path = Path(dest).expanduser()
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    if src_path.resolve() != dest_path.resolve():
        shutil.copyfile(src_path, dest_path)
    return str(dest_path.resolve())


__all__ = ["write_yaml", "remove_temp_files", "publish_output"]
