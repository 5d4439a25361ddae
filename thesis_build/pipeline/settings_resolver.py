"""Settings document handling.

Loads the YAML settings document that drives a build, checks its required
sections, substitutes ``{dir}`` placeholders from the ``dirs`` section and
writes it back out.

The `SettingsResolver` class runs the whole chain on construction::

    resolver = SettingsResolver("config.yaml")
    resolver.directories["repo"]
    resolver.section("data_fps")

Construction either yields a ready resolver or raises; there is no
half-initialized instance.
"""
from __future__ import annotations

import copy
import enum
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import yaml

from ..core.config import settings
from ..core.errors import MissingKeysError, NotFoundError, ParseError
from ..core.storage import write_yaml
from .placeholders import resolve_directory_table, resolve_placeholders

LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load(path: PathLike) -> Dict[str, Any]:
    """Read the settings document at `path`.

    Raises `NotFoundError` when the file is missing and `ParseError` when it
    is not valid YAML or its top level is not a mapping. An empty file
    loads as an empty mapping.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise NotFoundError(f"Settings file {file_path} does not exist", [file_path])

    try:
        with file_path.open("r", encoding="utf-8") as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ParseError(file_path, str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise ParseError(file_path, f"not UTF-8 text ({exc})") from exc

    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ParseError(file_path, f"top level must be a mapping, got {type(doc).__name__}")

    LOG.debug("Read settings document %s (%d sections)", file_path, len(doc))
    return doc


def validate(doc: Mapping[str, Any], required_keys: Iterable[str], source: Optional[PathLike] = None) -> None:
    """Check that every name in `required_keys` is a top-level key of `doc`.

    Raises `MissingKeysError` listing all absent keys in the order given.
    """
    missing = [k for k in required_keys if k not in doc]
    if missing:
        raise MissingKeysError(missing, source)


def persist(doc: Mapping[str, Any], path: PathLike) -> str:
    """Write `doc` to `path` as YAML. Returns the absolute path written."""
    out = write_yaml(_plain(doc), path)
    LOG.info("Settings written to %s", out)
    return out


def _plain(node: Any) -> Any:
    # safe_dump only knows builtin containers
    if isinstance(node, Mapping):
        return {k: _plain(v) for k, v in node.items()}
    if isinstance(node, (list, tuple)):
        return [_plain(v) for v in node]
    if isinstance(node, Path):
        return str(node)
    return node


class ResolverState(enum.Enum):
    UNCONSTRUCTED = "unconstructed"
    LOADING = "loading"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    READY = "ready"
    FAILED = "failed"


class SettingsResolver:
    """Loaded, validated and placeholder-resolved settings.

    Parameters
    ----------
    config_path:
        Path to the YAML settings document.
    required_keys:
        Top-level sections that must exist. Defaults to
        ``settings.REQUIRED_SECTIONS``.
    policy:
        What to do with ``{token}`` references missing from the directory
        table, ``"keep"`` or ``"error"``. Defaults to
        ``settings.UNRESOLVED_POLICY``.

    The resolved document is only handed out as deep copies, so callers
    cannot change the resolver's state.
    """

    def __init__(
        self,
        config_path: PathLike,
        required_keys: Optional[Sequence[str]] = None,
        policy: Optional[str] = None,
    ) -> None:
        self.config_path = Path(config_path).expanduser().resolve()
        self.required_keys: List[str] = list(
            required_keys if required_keys is not None else settings.REQUIRED_SECTIONS
        )
        self.policy = policy or settings.UNRESOLVED_POLICY
        self._state = ResolverState.UNCONSTRUCTED
        self._values: Dict[str, Any] = {}

        try:
            self._transition(ResolverState.LOADING)
            raw = load(self.config_path)

            self._transition(ResolverState.VALIDATING)
            validate(raw, self.required_keys, self.config_path)

            self._transition(ResolverState.RESOLVING)
            dirs = raw.get(settings.DIRECTORY_SECTION) or {}
            if not isinstance(dirs, Mapping):
                raise ParseError(
                    self.config_path,
                    f"section {settings.DIRECTORY_SECTION!r} must be a mapping of name -> path",
                )
            table = resolve_directory_table(dirs, self.policy)
            self._values = resolve_placeholders(raw, table, self.policy)
        except Exception:
            self._transition(ResolverState.FAILED)
            raise

        self._transition(ResolverState.READY)
        LOG.info("Config read successfully from %s", self.config_path)

    def _transition(self, state: ResolverState) -> None:
        LOG.debug("Settings resolver %s: %s -> %s", self.config_path, self._state.value, state.value)
        self._state = state

    @property
    def state(self) -> ResolverState:
        return self._state

    @property
    def values(self) -> Dict[str, Any]:
        """A deep copy of the resolved settings document."""
        return copy.deepcopy(self._values)

    @property
    def directories(self) -> Dict[str, str]:
        return dict(self._values.get(settings.DIRECTORY_SECTION) or {})

    @property
    def repo(self) -> Path:
        """Repository root from the directory table."""
        dirs = self.directories
        if settings.REPO_KEY not in dirs:
            raise MissingKeysError([f"{settings.DIRECTORY_SECTION}.{settings.REPO_KEY}"], self.config_path)
        return Path(dirs[settings.REPO_KEY]).expanduser()

    def section(self, name: str, default: Any = None) -> Any:
        return copy.deepcopy(self._values.get(name, default))

    def get(self, name: str, default: Any = None) -> Any:
        return self.section(name, default)

    def __getitem__(self, name: str) -> Any:
        if name not in self._values:
            raise KeyError(name)
        return copy.deepcopy(self._values[name])

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def describe(self) -> str:
        """Return the resolved document as YAML text, one section per heading."""
        return yaml.safe_dump(_plain(self._values), sort_keys=False, allow_unicode=True)

    def write_to_file(self, out_path: PathLike) -> str:
        return persist(self._values, out_path)

    def __repr__(self) -> str:
        return f"SettingsResolver({str(self.config_path)!r}, state={self._state.value!r})"


__all__ = ["load", "validate", "persist", "ResolverState", "SettingsResolver"]
