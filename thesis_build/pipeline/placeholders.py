"""Directory placeholder substitution.

Settings values may reference entries of the directory table with
``{name}`` tokens, e.g. ``"{repo}/data/x.csv"``. A token is a brace pair
around a Python-identifier-like name; anything else in braces (LaTeX
groups, format specs) is plain text.

Unknown tokens follow one of two policies:

- ``"keep"``: known tokens are substituted, unknown ones stay verbatim.
- ``"error"``: any unknown token raises `UnresolvedPlaceholderError`.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from ..core.config import settings
from ..core.errors import UnresolvedPlaceholderError

LOG = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
POLICIES = ("keep", "error")


def _check_policy(policy: Optional[str]) -> str:
    chosen = (policy or settings.UNRESOLVED_POLICY).strip().lower()
    if chosen not in POLICIES:
        raise ValueError(f"Unknown placeholder policy {policy!r}; expected one of {', '.join(POLICIES)}")
    return chosen


def _normalize_table(directory_table: Mapping[str, Any]) -> Dict[str, str]:
    return {str(k): str(v) for k, v in directory_table.items() if v is not None}


def find_tokens(value: str) -> List[str]:
    """Return the distinct placeholder names in `value`, in order of appearance."""
    return list(dict.fromkeys(TOKEN_RE.findall(value)))


def substitute(value: str, table: Mapping[str, str], policy: str = "keep", location: str = "") -> str:
    """Substitute every known token of `value` from `table`.

    Strings without tokens are returned unchanged.
    """
    tokens = find_tokens(value)
    if not tokens:
        return value

    unknown = [t for t in tokens if t not in table]
    if unknown:
        if policy == "error":
            raise UnresolvedPlaceholderError(unknown, value, location)
        LOG.debug("Leaving unknown placeholder(s) %s untouched at %s", unknown, location or "<root>")

    return TOKEN_RE.sub(lambda m: table.get(m.group(1), m.group(0)), value)


def _walk(node: Any, table: Mapping[str, str], policy: str, location: str) -> Any:
    if isinstance(node, str):
        return substitute(node, table, policy, location)
    if isinstance(node, Mapping):
        return {
            k: _walk(v, table, policy, f"{location}.{k}" if location else str(k))
            for k, v in node.items()
        }
    if isinstance(node, list):
        return [_walk(v, table, policy, f"{location}[{i}]") for i, v in enumerate(node)]
    if isinstance(node, tuple):
        return tuple(_walk(v, table, policy, f"{location}[{i}]") for i, v in enumerate(node))
    return node


def resolve_placeholders(doc: Any, directory_table: Mapping[str, Any], policy: Optional[str] = None) -> Any:
    """Return a copy of `doc` with directory placeholders substituted.

    Walks mappings and sequences at any depth; only string scalars are
    rewritten, mapping keys never are. `doc` itself is not modified.
    `policy` defaults to `settings.UNRESOLVED_POLICY`.
    """
    chosen = _check_policy(policy)
    table = _normalize_table(directory_table or {})
    return _walk(doc, table, chosen, "")


def resolve_directory_table(directory_table: Mapping[str, Any], policy: Optional[str] = None) -> Dict[str, str]:
    """Resolve entries of the directory table that refer to each other.

    ``{"repo": "/p", "data": "{repo}/data"}`` becomes
    ``{"repo": "/p", "data": "/p/data"}``. At most ``len(table)`` passes
    are made; entries still holding tokens afterwards form a cycle and are
    kept as-is, or raise under the ``"error"`` policy.
    """
    chosen = _check_policy(policy)
    table = _normalize_table(directory_table or {})

    for _ in range(len(table)):
        updated = {k: substitute(v, table, chosen, f"{settings.DIRECTORY_SECTION}.{k}") for k, v in table.items()}
        if updated == table:
            break
        table = updated

    leftovers = {k: v for k, v in table.items() if find_tokens(v)}
    if leftovers:
        if chosen == "error":
            key, value = next(iter(leftovers.items()))
            raise UnresolvedPlaceholderError(find_tokens(value), value, f"{settings.DIRECTORY_SECTION}.{key}")
        LOG.warning("Directory entries could not be fully resolved: %s", ", ".join(sorted(leftovers)))
    return table


__all__ = ["TOKEN_RE", "find_tokens", "substitute", "resolve_placeholders", "resolve_directory_table"]
