"""Dataset loaders for chapter builds.

Each chapter lists its datasets in the ``data_fps`` settings section. A
loader is picked by file extension from a registry, so supporting a new
format only takes a `DatasetLoader` subclass and a `register_loader` call.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
import yaml

from ..core.errors import NotFoundError, UnsupportedFormatError


LOG = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _path_to_pathlike(path: PathLike) -> Path:
    p = Path(path).expanduser()
    if not p.exists():
        raise NotFoundError(f"Dataset file not found: {p}", [p])
    return p


class DatasetLoader(ABC):
    """Reads one family of file formats into memory."""

    extensions: Tuple[str, ...] = ()

    @abstractmethod
    def load(self, path: Path, **kwargs: Any) -> Any:
        raise NotImplementedError


class CsvLoader(DatasetLoader):
    extensions = (".csv",)

    def load(self, path: Path, **kwargs: Any) -> pd.DataFrame:
        return pd.read_csv(path, **kwargs)


class DelimitedTextLoader(DatasetLoader):
    """Tab-separated text; pass ``sep=`` to override."""

    extensions = (".tsv", ".txt")

    def load(self, path: Path, **kwargs: Any) -> pd.DataFrame:
        kwargs.setdefault("sep", "\t")
        return pd.read_csv(path, **kwargs)


class ExcelLoader(DatasetLoader):
    extensions = (".xlsx", ".xls")

    def load(self, path: Path, **kwargs: Any) -> pd.DataFrame:
        return pd.read_excel(path, **kwargs)


class PickleLoader(DatasetLoader):
    extensions = (".pkl", ".pickle")

    def load(self, path: Path, **kwargs: Any) -> Any:
        return pd.read_pickle(path, **kwargs)


class NumpyLoader(DatasetLoader):
    extensions = (".npy",)

    def load(self, path: Path, **kwargs: Any) -> np.ndarray:
        return np.load(path, **kwargs)


class JsonLoader(DatasetLoader):
    extensions = (".json",)

    def load(self, path: Path, **kwargs: Any) -> Any:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh, **kwargs)


class YamlLoader(DatasetLoader):
    extensions = (".yaml", ".yml")

    def load(self, path: Path, **kwargs: Any) -> Any:
        if kwargs:
            raise TypeError(f"YAML datasets take no loader options, got {', '.join(sorted(kwargs))}")
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh)


_REGISTRY: Dict[str, DatasetLoader] = {}


def register_loader(loader: DatasetLoader, extensions: Optional[Iterable[str]] = None) -> None:
    """Register `loader` for `extensions` (default: ``loader.extensions``).

    Later registrations replace earlier ones for the same extension.
    """
    exts = list(extensions) if extensions is not None else list(loader.extensions)
    if not exts:
        raise ValueError(f"{type(loader).__name__} declares no extensions")
    for ext in exts:
        key = ext.lower() if ext.startswith(".") else "." + ext.lower()
        _REGISTRY[key] = loader


def registered_extensions() -> Tuple[str, ...]:
    return tuple(sorted(_REGISTRY))


def get_loader(path: PathLike) -> DatasetLoader:
    suffix = Path(path).suffix.lower()
    loader = _REGISTRY.get(suffix)
    if loader is None:
        raise UnsupportedFormatError(path, suffix or "<none>")
    return loader


def load_dataset(path: PathLike, **kwargs: Any) -> Any:
    """Load the dataset at `path` with the loader registered for its extension.

    Raises `NotFoundError` when the path does not exist and
    `UnsupportedFormatError` when no loader handles its extension.
    """
    p = _path_to_pathlike(path)
    loader = get_loader(p)
    LOG.debug("Loading %s with %s", p, type(loader).__name__)
    return loader.load(p, **kwargs)


def load_dataset_list(fps: Union[Mapping[str, PathLike], Iterable[PathLike], None]) -> Dict[str, Any]:
    """Load several datasets at once.

    A mapping keeps its keys as dataset names; a plain sequence of paths is
    keyed by file stem. `None` gives an empty dict.
    """
    if fps is None:
        return {}
    if isinstance(fps, (str, Path)):
        fps = [fps]
    if isinstance(fps, Mapping):
        items = [(str(name), fp) for name, fp in fps.items()]
    else:
        items = [(Path(fp).stem, fp) for fp in fps]

    datasets: Dict[str, Any] = {}
    for name, fp in items:
        datasets[name] = load_dataset(fp)
    LOG.info("Loaded %d dataset(s)", len(datasets))
    return datasets


for _loader in (CsvLoader(), DelimitedTextLoader(), ExcelLoader(), PickleLoader(), NumpyLoader(), JsonLoader(), YamlLoader()):
    register_loader(_loader)


__all__ = [
    "DatasetLoader",
    "CsvLoader",
    "DelimitedTextLoader",
    "ExcelLoader",
    "PickleLoader",
    "NumpyLoader",
    "JsonLoader",
    "YamlLoader",
    "register_loader",
    "registered_extensions",
    "get_loader",
    "load_dataset",
    "load_dataset_list",
]
