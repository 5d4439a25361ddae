"""Render contract between the build layer and the document toolchain.

The build layer describes one compilation as a `RenderJob`; anything with a
``render(job) -> Path`` method can turn it into a document. The default
`PandocRenderer` shells out to pandoc with a LaTeX engine for PDF output.

Tool lookup uses an explicit environment mapping built per job, so extra
TeX directories never leak into ``os.environ``.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..core.config import settings
from ..core.errors import RenderError

LOG = logging.getLogger(__name__)


class RenderOptions(BaseModel):
    latex_engine: str = Field(default_factory=lambda: settings.LATEX_ENGINE)
    toc: bool = False
    number_sections: bool = False
    lot: bool = False
    lof: bool = False
    top_level_division: Optional[str] = None
    extra_dependencies: List[str] = Field(default_factory=list)
    lua_filters: List[Path] = Field(default_factory=list)
    in_header: Optional[Path] = None
    before_body: Optional[Path] = None
    bibliography: Optional[Path] = None


class RenderJob(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    sources: List[Path]
    output_path: Path
    doc_type: Literal["pdf", "docx"] = "pdf"
    datasets: Dict[str, Any] = Field(default_factory=dict)
    graphics: Dict[str, Path] = Field(default_factory=dict)
    working_dir: Optional[Path] = None
    options: RenderOptions = Field(default_factory=RenderOptions)
    tex_bin_dirs: List[Path] = Field(default_factory=list)
    libraries: List[str] = Field(default_factory=list)


class Renderer(Protocol):
    def render(self, job: RenderJob) -> Path:
        ...


def build_env(job: RenderJob, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Environment for the render subprocess: `base` plus `job.tex_bin_dirs` on PATH."""
    env = dict(os.environ if base is None else base)
    extra = [str(p) for p in job.tex_bin_dirs]
    if extra:
        current = env.get("PATH", "")
        env["PATH"] = os.pathsep.join([current, *extra]) if current else os.pathsep.join(extra)
    return env


class PandocRenderer:
    """Compile markdown sources to PDF (via a LaTeX engine) or DOCX with pandoc.

    Pandoc does not execute code chunks, so `RenderJob.datasets` are not
    consumed here; graphics directories are put on pandoc's resource path.
    """

    def __init__(self, pandoc_bin: Optional[str] = None, input_format: str = "markdown") -> None:
        self.pandoc_bin = pandoc_bin or settings.PANDOC_BIN
        self.input_format = input_format

    def build_command(self, job: RenderJob) -> List[str]:
        opts = job.options
        cmd: List[str] = [self.pandoc_bin, f"--from={self.input_format}"]
        cmd.extend(str(s) for s in job.sources)
        cmd.extend(["-o", str(job.output_path)])

        if job.doc_type == "pdf":
            cmd.append(f"--pdf-engine={opts.latex_engine}")
            for pkg in opts.extra_dependencies:
                cmd.extend(["-V", f"header-includes=\\usepackage{{{pkg}}}"])
            if opts.lot:
                cmd.extend(["-V", "lot=true"])
            if opts.lof:
                cmd.extend(["-V", "lof=true"])
            if opts.in_header:
                cmd.append(f"--include-in-header={opts.in_header}")
            if opts.before_body:
                cmd.append(f"--include-before-body={opts.before_body}")

        if opts.toc:
            cmd.append("--toc")
        if opts.number_sections:
            cmd.append("--number-sections")
        if opts.top_level_division:
            cmd.append(f"--top-level-division={opts.top_level_division}")
        for lua in opts.lua_filters:
            cmd.append(f"--lua-filter={lua}")
        if opts.bibliography:
            cmd.extend(["--citeproc", f"--bibliography={opts.bibliography}"])

        resource_dirs: List[str] = []
        if job.working_dir:
            resource_dirs.append(str(job.working_dir))
        for fp in job.graphics.values():
            parent = str(Path(fp).parent)
            if parent not in resource_dirs:
                resource_dirs.append(parent)
        if resource_dirs:
            cmd.append(f"--resource-path={os.pathsep.join(resource_dirs)}")
        return cmd

    def _require_tool(self, name: str, env: Dict[str, str]) -> None:
        if shutil.which(name, path=env.get("PATH")) is None:
            raise RenderError(f"Could not find {name!r} on PATH; add its directory to 'tex_bin_dirs'")

    def render(self, job: RenderJob) -> Path:
        if not job.sources:
            raise RenderError("Render job has no source files")
        env = build_env(job)
        self._require_tool(self.pandoc_bin, env)
        if job.doc_type == "pdf":
            self._require_tool(job.options.latex_engine, env)

        if job.libraries:
            LOG.debug("Libraries requested for this build: %s", ", ".join(job.libraries))
        if job.datasets:
            LOG.debug("pandoc ignores %d dataset(s): %s", len(job.datasets), ", ".join(job.datasets))

        job.output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(job)
        cwd = job.working_dir or job.sources[0].parent
        LOG.info("Rendering %s -> %s", ", ".join(s.name for s in job.sources), job.output_path)
        LOG.debug("Command: %s", " ".join(cmd))
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True, cwd=str(cwd), env=env)
        except subprocess.CalledProcessError as e:
            raise RenderError(f"pandoc exited with status {e.returncode}", cmd, e.stderr or "") from e
        except OSError as e:
            raise RenderError(f"Could not run pandoc: {e}", cmd) from e

        if not job.output_path.exists():
            raise RenderError(f"pandoc reported success but {job.output_path} was not created", cmd)
        return job.output_path


__all__ = ["RenderOptions", "RenderJob", "Renderer", "PandocRenderer", "build_env"]
