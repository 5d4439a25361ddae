"""Match a chapter name to its source file in the repository.

Candidate directories are searched in order; inside each directory names
are compared case-insensitively against ``<chapter><extension>``. The
first hit in the directory's native listing order wins. Listing order is
whatever the filesystem returns, so two files differing only in case
(``Intro.Rmd`` and ``intro.Rmd``) may resolve differently on another
filesystem; a warning is logged when that happens.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.config import settings
from ..core.errors import NotFoundError

LOG = logging.getLogger(__name__)


def _matches_in(directory: Path, target: str) -> List[Path]:
    found: List[Path] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.name.casefold() == target and entry.is_file():
                found.append(Path(entry.path))
    return found


def locate_chapter(
    chapter_name: str,
    repo_root: Union[str, Path],
    candidate_subdirs: Optional[Sequence[str]] = None,
    extension: Optional[str] = None,
) -> Path:
    """Return the source file for `chapter_name`.

    `candidate_subdirs` defaults to ``settings.CHAPTER_SUBDIRS`` where
    ``""`` stands for `repo_root` itself; `extension` defaults to
    ``settings.CHAPTER_EXTENSION``. Missing candidate directories are
    skipped but still reported.

    Raises `NotFoundError` if `repo_root` does not exist or no candidate
    directory holds a match; the message lists every directory searched.
    """
    root = Path(repo_root).expanduser()
    if not root.is_dir():
        raise NotFoundError(f"Repository root {root} does not exist", [root])

    subdirs = list(candidate_subdirs) if candidate_subdirs is not None else list(settings.CHAPTER_SUBDIRS)
    ext = extension if extension is not None else settings.CHAPTER_EXTENSION
    if ext and not ext.startswith("."):
        ext = "." + ext
    target = f"{chapter_name}{ext}".casefold()

    searched: List[Path] = []
    for sub in subdirs:
        directory = root / sub if sub else root
        searched.append(directory)
        if not directory.is_dir():
            LOG.debug("Skipping missing chapter directory %s", directory)
            continue

        matches = _matches_in(directory, target)
        if not matches:
            continue
        if len(matches) > 1:
            LOG.warning(
                "Several files match chapter %r in %s (%s); using %s",
                chapter_name,
                directory,
                ", ".join(m.name for m in matches),
                matches[0].name,
            )
        LOG.debug("Chapter %r resolved to %s", chapter_name, matches[0])
        return matches[0]

    raise NotFoundError(
        f"No file for chapter {chapter_name!r} ({chapter_name}{ext}) in: "
        + ", ".join(str(d) for d in searched),
        searched,
    )


__all__ = ["locate_chapter"]
