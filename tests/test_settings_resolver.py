import copy
from pathlib import Path

import pytest
import yaml

from thesis_build.core.errors import (
    MissingKeysError,
    NotFoundError,
    ParseError,
    SettingsWriteError,
    UnresolvedPlaceholderError,
)
from thesis_build.pipeline.settings_resolver import (
    ResolverState,
    SettingsResolver,
    load,
    persist,
    validate,
)


def _write_config(path: Path, doc) -> Path:
    path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
    return path


def _base_doc(repo="/home/u/proj"):
    return {
        "load_libraries": ["data.table", "ggplot2"],
        "dirs": {"repo": repo, "data": "{repo}/data"},
        "graphics_fps": {"intro": ["{repo}/figs/map.png"]},
        "data_fps": {"intro": {"pop": "{data}/pop.csv"}},
        "preprint": False,
    }


def test_load_returns_all_top_level_keys(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    doc = load(cfg)
    assert set(doc) >= {"load_libraries", "dirs", "graphics_fps", "data_fps"}


def test_load_missing_file_raises_not_found(tmp_path):
    missing = tmp_path / "nope.yaml"
    with pytest.raises(NotFoundError) as exc:
        load(missing)
    assert str(missing) in str(exc.value)
    # still a FileNotFoundError for callers catching builtins
    assert isinstance(exc.value, FileNotFoundError)


def test_load_malformed_yaml_raises_parse_error(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("dirs: [unclosed\n  repo: x\n", encoding="utf-8")
    with pytest.raises(ParseError) as exc:
        load(bad)
    assert str(bad) in str(exc.value)


def test_load_non_mapping_top_level_is_parse_error(tmp_path):
    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ParseError):
        load(bad)


def test_load_empty_file_gives_empty_mapping(tmp_path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load(empty) == {}


def test_validate_lists_every_missing_key_in_required_order():
    doc = {"dirs": {}, "other": 1}
    required = ["load_libraries", "dirs", "graphics_fps", "data_fps"]
    with pytest.raises(MissingKeysError) as exc:
        validate(doc, required)
    assert exc.value.missing == ["load_libraries", "graphics_fps", "data_fps"]
    assert "graphics_fps" in str(exc.value)


def test_validate_passes_and_has_no_side_effects():
    doc = _base_doc()
    snapshot = copy.deepcopy(doc)
    validate(doc, ["dirs", "data_fps"])
    assert doc == snapshot


def test_resolver_resolves_placeholders_from_dirs(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    resolver = SettingsResolver(cfg)

    assert resolver.state is ResolverState.READY
    assert resolver.directories["data"] == "/home/u/proj/data"
    assert resolver["data_fps"]["intro"]["pop"] == "/home/u/proj/data/pop.csv"
    assert resolver["graphics_fps"]["intro"] == ["/home/u/proj/figs/map.png"]
    assert resolver["preprint"] is False
    assert resolver.repo == Path("/home/u/proj")


def test_resolver_state_cannot_be_changed_from_outside(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    resolver = SettingsResolver(cfg)

    values = resolver.values
    values["dirs"]["repo"] = "/elsewhere"
    resolver.section("data_fps")["intro"]["pop"] = "x"

    assert resolver.directories["repo"] == "/home/u/proj"
    assert resolver["data_fps"]["intro"]["pop"] == "/home/u/proj/data/pop.csv"


def test_resolver_missing_sections_aborts_construction(tmp_path):
    doc = _base_doc()
    del doc["graphics_fps"]
    del doc["load_libraries"]
    cfg = _write_config(tmp_path / "config.yaml", doc)

    with pytest.raises(MissingKeysError) as exc:
        SettingsResolver(cfg)
    assert exc.value.missing == ["load_libraries", "graphics_fps"]
    assert str(cfg) in str(exc.value)


def test_resolver_custom_required_keys(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", {"dirs": {"repo": "/r"}})
    resolver = SettingsResolver(cfg, required_keys=["dirs"])
    assert resolver.directories == {"repo": "/r"}


def test_resolver_unknown_placeholder_policies(tmp_path):
    doc = _base_doc()
    doc["data_fps"]["intro"]["extra"] = "{scratch}/tmp.csv"
    cfg = _write_config(tmp_path / "config.yaml", doc)

    kept = SettingsResolver(cfg, policy="keep")
    assert kept["data_fps"]["intro"]["extra"] == "{scratch}/tmp.csv"

    with pytest.raises(UnresolvedPlaceholderError) as exc:
        SettingsResolver(cfg, policy="error")
    assert exc.value.tokens == ["scratch"]
    assert "data_fps.intro.extra" in str(exc.value)


def test_resolver_rejects_non_mapping_dirs(tmp_path):
    doc = _base_doc()
    doc["dirs"] = ["/a", "/b"]
    cfg = _write_config(tmp_path / "config.yaml", doc)
    with pytest.raises(ParseError):
        SettingsResolver(cfg)


def test_persist_round_trip(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    original = load(cfg)

    out = tmp_path / "out" / "copy.yaml"
    written = persist(original, out)
    assert Path(written).exists()
    assert load(out) == original


def test_write_to_file_persists_resolved_values(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    resolver = SettingsResolver(cfg)
    out = tmp_path / "resolved.yaml"
    resolver.write_to_file(out)

    reloaded = load(out)
    assert reloaded == resolver.values
    assert reloaded["dirs"]["data"] == "/home/u/proj/data"


def test_persist_failure_raises_settings_write_error(tmp_path):
    target = tmp_path / "is_a_dir"
    target.mkdir()
    with pytest.raises(SettingsWriteError) as exc:
        persist({"dirs": {}}, target)
    assert str(target) in str(exc.value)
    assert isinstance(exc.value, OSError)


def test_describe_contains_sections(tmp_path):
    cfg = _write_config(tmp_path / "config.yaml", _base_doc())
    text = SettingsResolver(cfg).describe()
    assert "dirs:" in text
    assert "/home/u/proj/data/pop.csv" in text
