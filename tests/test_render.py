import os
import subprocess
from pathlib import Path

import pytest

from thesis_build.core.errors import RenderError
from thesis_build.pipeline import render
from thesis_build.pipeline.render import PandocRenderer, RenderJob, RenderOptions, build_env


def _job(tmp_path, **kwargs):
    src = tmp_path / "src" / "intro.Rmd"
    src.parent.mkdir(parents=True, exist_ok=True)
    src.write_text("# Intro\n", encoding="utf-8")
    defaults = dict(sources=[src], output_path=tmp_path / "out" / "intro.pdf", working_dir=src.parent)
    defaults.update(kwargs)
    return RenderJob(**defaults)


def test_pdf_command_includes_engine_packages_and_filters(tmp_path):
    opts = RenderOptions(
        latex_engine="xelatex",
        extra_dependencies=["booktabs", "arxiv"],
        lua_filters=[tmp_path / "styles" / "author_info_blocks.lua"],
        top_level_division="section",
        lof=True,
    )
    job = _job(tmp_path, options=opts, graphics={"map": tmp_path / "figs" / "map.png"})
    cmd = PandocRenderer().build_command(job)

    assert cmd[0] == "pandoc"
    assert str(job.sources[0]) in cmd
    assert cmd[cmd.index("-o") + 1] == str(job.output_path)
    assert "--pdf-engine=xelatex" in cmd
    assert "header-includes=\\usepackage{booktabs}" in cmd
    assert "header-includes=\\usepackage{arxiv}" in cmd
    assert "lof=true" in cmd and "lot=true" not in cmd
    assert f"--lua-filter={tmp_path / 'styles' / 'author_info_blocks.lua'}" in cmd
    assert "--top-level-division=section" in cmd
    resource = [c for c in cmd if c.startswith("--resource-path=")][0]
    assert str(tmp_path / "figs") in resource


def test_docx_command_skips_latex_options(tmp_path):
    opts = RenderOptions(extra_dependencies=["booktabs"], toc=True)
    job = _job(tmp_path, doc_type="docx", output_path=tmp_path / "intro.docx", options=opts)
    cmd = PandocRenderer().build_command(job)
    assert not any(c.startswith("--pdf-engine") for c in cmd)
    assert not any("usepackage" in c for c in cmd)
    assert "--toc" in cmd


def test_build_env_adds_tex_dirs_without_touching_os_environ(tmp_path):
    before = os.environ.get("PATH")
    job = _job(tmp_path, tex_bin_dirs=[tmp_path / "texbin"])
    env = build_env(job, base={"PATH": "/usr/bin"})
    assert env["PATH"] == os.pathsep.join(["/usr/bin", str(tmp_path / "texbin")])
    assert os.environ.get("PATH") == before


def test_render_runs_pandoc_and_returns_output(tmp_path, monkeypatch):
    calls = {}

    def fake_run(cmd, **kwargs):
        calls["cmd"] = cmd
        calls["kwargs"] = kwargs
        Path(cmd[cmd.index("-o") + 1]).write_bytes(b"%PDF")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(render.shutil, "which", lambda name, path=None: f"/usr/bin/{name}")
    monkeypatch.setattr(render.subprocess, "run", fake_run)

    job = _job(tmp_path)
    out = PandocRenderer().render(job)

    assert out == job.output_path
    assert out.read_bytes() == b"%PDF"
    assert calls["kwargs"]["cwd"] == str(job.working_dir)
    assert calls["kwargs"]["check"] is True


def test_render_failure_carries_stderr(tmp_path, monkeypatch):
    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(43, cmd, output="", stderr="! LaTeX Error: File `arxiv.sty' not found.")

    monkeypatch.setattr(render.shutil, "which", lambda name, path=None: f"/usr/bin/{name}")
    monkeypatch.setattr(render.subprocess, "run", fake_run)

    with pytest.raises(RenderError) as exc:
        PandocRenderer().render(_job(tmp_path))
    assert "43" in str(exc.value)
    assert "arxiv.sty" in exc.value.stderr


def test_render_missing_engine(tmp_path, monkeypatch):
    monkeypatch.setattr(render.shutil, "which", lambda name, path=None: None if name == "xelatex" else "/bin/x")
    with pytest.raises(RenderError) as exc:
        PandocRenderer().render(_job(tmp_path))
    assert "xelatex" in str(exc.value)
