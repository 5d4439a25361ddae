"""Configuration defaults for the build pipeline.

A small Settings container read by the other components. Values here are
process-wide defaults; the per-project values live in the YAML settings
document handled by :mod:`thesis_build.pipeline.settings_resolver`.
"""
from dataclasses import dataclass, field
from typing import Tuple


@dataclass
class Settings:
    REQUIRED_SECTIONS: Tuple[str, ...] = ("load_libraries", "dirs", "graphics_fps", "data_fps")
    DIRECTORY_SECTION: str = "dirs"
    REPO_KEY: str = "repo"

    CHAPTER_EXTENSION: str = ".Rmd"
    CHAPTER_SUBDIRS: Tuple[str, ...] = ("", "raw_rmd", "testing")

    TEX_DIR_NAME: str = "knitted_tex"
    BOOK_DIR_NAME: str = "joint_book"
    STYLES_DIR_NAME: str = "styles"

    PANDOC_BIN: str = "pandoc"
    LATEX_ENGINE: str = "xelatex"

    # "keep" or "error"
    UNRESOLVED_POLICY: str = "keep"

    TEMP_FILE_PATTERNS: Tuple[str, ...] = field(
        default_factory=lambda: (
            r"\.bbl$",
            r"\.bcf$",
            r"-blx\.bib$",
            r"-concordance\.tex$",
            r"\.log$",
            r"\.run\.xml$",
            r"\.gz$",
            r"\.pdf$",
        )
    )


settings = Settings()
