"""Error types raised by the build pipeline.

Every error carries the path(s) or key(s) involved so the CLI can print
something actionable.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

PathLike = Union[str, Path]


class ThesisBuildError(Exception):
    """Base class for all pipeline errors."""


class NotFoundError(ThesisBuildError, FileNotFoundError):
    def __init__(self, message: str, paths: Iterable[PathLike] = ()) -> None:
        self.paths: List[str] = [str(p) for p in paths]
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ParseError(ThesisBuildError, ValueError):
    def __init__(self, path: PathLike, detail: str) -> None:
        self.path = str(path)
        self.detail = detail
        super().__init__(f"Could not parse settings file {self.path}: {detail}")


class MissingKeysError(ThesisBuildError, ValueError):
    def __init__(self, missing: Sequence[str], source: Optional[PathLike] = None) -> None:
        self.missing: List[str] = list(missing)
        self.source = str(source) if source is not None else None
        where = f" in {self.source}" if self.source else ""
        super().__init__(f"Missing required settings sections{where}: {', '.join(self.missing)}")


class SettingsWriteError(ThesisBuildError, OSError):
    def __init__(self, path: PathLike, detail: str) -> None:
        self.path = str(path)
        super().__init__(f"Could not write settings to {self.path}: {detail}")

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnresolvedPlaceholderError(ThesisBuildError, ValueError):
    def __init__(self, tokens: Sequence[str], value: str, location: str = "") -> None:
        self.tokens: List[str] = list(tokens)
        self.value = value
        self.location = location
        where = f" at {location}" if location else ""
        super().__init__(
            f"Unknown directory placeholder(s) {', '.join('{' + t + '}' for t in self.tokens)}"
            f"{where} in {value!r}"
        )


class UnsupportedFormatError(ThesisBuildError, ValueError):
    def __init__(self, path: PathLike, extension: str) -> None:
        self.path = str(path)
        self.extension = extension
        super().__init__(f"No dataset loader registered for extension {extension!r} ({self.path})")


class RenderError(ThesisBuildError, RuntimeError):
    def __init__(self, message: str, command: Optional[Sequence[str]] = None, stderr: str = "") -> None:
        self.command = list(command) if command else []
        self.stderr = stderr
        if stderr:
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


__all__ = [
    "ThesisBuildError",
    "NotFoundError",
    "ParseError",
    "MissingKeysError",
    "SettingsWriteError",
    "UnresolvedPlaceholderError",
    "UnsupportedFormatError",
    "RenderError",
]
