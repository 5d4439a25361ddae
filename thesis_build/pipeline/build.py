"""Compile a single chapter or the combined thesis.

Both entry points take a ready `SettingsResolver`, gather the datasets and
graphics listed for the chapter(s), hand a `RenderJob` to a renderer and
copy the result to the requested output path. All paths are absolute;
nothing here changes the working directory.
"""
from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..core.config import settings
from ..core.errors import MissingKeysError, ParseError
from ..core.storage import publish_output, remove_temp_files
from .importer import load_dataset_list
from .locator import locate_chapter
from .render import PandocRenderer, Renderer, RenderJob, RenderOptions
from .settings_resolver import SettingsResolver

LOG = logging.getLogger(__name__)

DOC_TYPES = ("pdf", "docx")
CHAPTER_PACKAGES = ("booktabs", "doi", "float", "lipsum", "makecell", "url")
CHAPTER_LUA_FILTERS = ("scholarly_metadata.lua", "author_info_blocks.lua")
THESIS_HEADER = "ox_thesis_header.tex"
THESIS_TITLE_PAGE = "ox_thesis_title_page.tex"
THESIS_OUTPUT_NAME = "full_thesis"
LEFTOVER_PATTERNS = (r"^_main\.",)


def _chapter_entry(resolver: SettingsResolver, section: str, chapter: str) -> Any:
    table = resolver.get(section) or {}
    if not isinstance(table, Mapping):
        return None
    return table.get(chapter)


def _graphics_map(entry: Any) -> Dict[str, Path]:
    if entry is None:
        return {}
    if isinstance(entry, (str, Path)):
        entry = [entry]
    if isinstance(entry, Mapping):
        return {str(k): Path(v) for k, v in entry.items() if v is not None}
    return {Path(v).stem: Path(v) for v in entry}


def _options(resolver: SettingsResolver, defaults: Dict[str, Any]) -> RenderOptions:
    merged = dict(defaults)
    bibliography = resolver.get("bibliography")
    if bibliography:
        merged["bibliography"] = bibliography
    merged.update(resolver.get("render_options") or {})
    if resolver.get("preprint"):
        merged["extra_dependencies"] = list(merged.get("extra_dependencies", [])) + ["arxiv"]
    return RenderOptions(**merged)


def _tex_bin_dirs(resolver: SettingsResolver) -> List[str]:
    dirs = resolver.get("tex_bin_dirs") or []
    return [dirs] if isinstance(dirs, str) else [str(d) for d in dirs]


def _libraries(resolver: SettingsResolver) -> List[str]:
    libs = resolver.get("load_libraries") or []
    return [libs] if isinstance(libs, str) else [str(lib) for lib in libs]


def _section_mapping(resolver: SettingsResolver, name: str) -> Dict[str, Any]:
    section = resolver.get(name) or {}
    if not isinstance(section, Mapping):
        raise ParseError(resolver.config_path, f"section {name!r} must map chapter names to files")
    return dict(section)


def _tex_dir(resolver: SettingsResolver) -> Path:
    return resolver.repo / settings.TEX_DIR_NAME


def _default_output(resolver: SettingsResolver, stem: str, doc_type: str, today: Optional[dt.date]) -> Path:
    stamp = (today or dt.date.today()).isoformat()
    return _tex_dir(resolver) / f"{stem}_{stamp}.{doc_type}"


def compile_chapter(
    resolver: SettingsResolver,
    chapter: str,
    doc_type: str = "pdf",
    out_path: Union[str, Path, None] = None,
    renderer: Optional[Renderer] = None,
    today: Optional[dt.date] = None,
) -> Path:
    """Build one chapter as a standalone document.

    The chapter source is looked up with `locate_chapter`, rendered to
    ``<repo>/knitted_tex/<chapter>.<doc_type>`` and copied to `out_path`
    (default ``<repo>/knitted_tex/<chapter>_<date>.<doc_type>``). LaTeX
    by-products left next to the chapter source are removed afterwards.
    """
    if doc_type not in DOC_TYPES:
        raise ValueError(f"doc_type must be one of {', '.join(DOC_TYPES)}, got {doc_type!r}")

    repo = resolver.repo
    source = locate_chapter(chapter, repo)
    datasets = load_dataset_list(_chapter_entry(resolver, "data_fps", chapter))
    graphics = _graphics_map(_chapter_entry(resolver, "graphics_fps", chapter))

    styles = repo / settings.STYLES_DIR_NAME
    options = _options(
        resolver,
        {
            "toc": False,
            "top_level_division": "section",
            "extra_dependencies": list(CHAPTER_PACKAGES),
            "lua_filters": [styles / f for f in CHAPTER_LUA_FILTERS if (styles / f).exists()],
        },
    )

    remove_temp_files(source.parent, LEFTOVER_PATTERNS)
    job = RenderJob(
        sources=[source],
        output_path=_tex_dir(resolver) / f"{chapter}.{doc_type}",
        doc_type=doc_type,
        datasets=datasets,
        graphics=graphics,
        working_dir=source.parent,
        options=options,
        tex_bin_dirs=_tex_bin_dirs(resolver),
        libraries=_libraries(resolver),
    )
    rendered = (renderer or PandocRenderer()).render(job)

    dest = Path(out_path) if out_path else _default_output(resolver, chapter, doc_type, today)
    final = Path(publish_output(rendered, dest))
    remove_temp_files(job.working_dir, exclude=[final])
    LOG.info("Chapter %r compiled to %s", chapter, final)
    return final


def compile_thesis(
    resolver: SettingsResolver,
    out_path: Union[str, Path, None] = None,
    renderer: Optional[Renderer] = None,
    today: Optional[dt.date] = None,
) -> Path:
    """Build the combined thesis PDF from the chapters in ``thesis_chapters``.

    Datasets and graphics of every chapter are handed to the renderer.
    Header and title page come from the ``joint_book`` directory next to
    the settings file when present.
    """
    chapters: List[str] = list(resolver.get("thesis_chapters") or [])
    if not chapters:
        raise MissingKeysError(["thesis_chapters"], resolver.config_path)

    repo = resolver.repo
    sources = [locate_chapter(name, repo) for name in chapters]

    data_fps = _section_mapping(resolver, "data_fps")
    datasets = {name: load_dataset_list(fps) for name, fps in data_fps.items()}
    graphics: Dict[str, Path] = {}
    for name, entry in _section_mapping(resolver, "graphics_fps").items():
        for key, fp in _graphics_map(entry).items():
            graphics[f"{name}.{key}"] = fp

    book_dir = resolver.config_path.parent / settings.BOOK_DIR_NAME
    header = book_dir / THESIS_HEADER
    title_page = book_dir / THESIS_TITLE_PAGE
    options = _options(
        resolver,
        {
            "toc": False,
            "number_sections": True,
            "lot": True,
            "lof": True,
            "in_header": header if header.exists() else None,
            "before_body": title_page if title_page.exists() else None,
        },
    )

    working_dir = book_dir if book_dir.is_dir() else repo
    remove_temp_files(working_dir, LEFTOVER_PATTERNS)
    job = RenderJob(
        sources=sources,
        output_path=_tex_dir(resolver) / f"{THESIS_OUTPUT_NAME}.pdf",
        doc_type="pdf",
        datasets=datasets,
        graphics=graphics,
        working_dir=working_dir,
        options=options,
        tex_bin_dirs=_tex_bin_dirs(resolver),
        libraries=_libraries(resolver),
    )
    rendered = (renderer or PandocRenderer()).render(job)

    dest = Path(out_path) if out_path else _default_output(resolver, THESIS_OUTPUT_NAME, "pdf", today)
    final = Path(publish_output(rendered, dest))
    remove_temp_files(job.working_dir, exclude=[final])
    LOG.info("Thesis (%d chapters) compiled to %s", len(chapters), final)
    return final


__all__ = ["compile_chapter", "compile_thesis"]
