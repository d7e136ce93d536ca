"""Alternative build path that lets upstream's own CMake project build Luau."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from luaubuild.builder import require_main_source
from luaubuild.errors import MissingSourceError, WorkspaceIOError
from luaubuild.modules import cmake_targets, include_dirs
from luaubuild.schemas import BuildReport
from luaubuild.settings import Settings, get_settings
from luaubuild.toolchains import run_tool

LOGGER = logging.getLogger(__name__)
CMAKE_MINIMUM = "3.10"
GENERATED_MARKER = "# Generated by luau-build; removed by `luau-build clean`."


def is_generated_cmakelists(path: Path) -> bool:
    """True when ``path`` is a ``CMakeLists.txt`` this tool wrote."""

    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            return handle.readline().rstrip("\r\n") == GENERATED_MARKER
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise WorkspaceIOError(f"failed to read {path}: {exc}") from exc


def render_cmakelists(settings: Settings) -> str:
    """Return a ``CMakeLists.txt`` linking the main program against upstream's targets."""

    staging = settings.staging_dir
    if staging.is_absolute():
        staging = Path(os.path.relpath(staging, settings.work_dir))
    staging_ref = staging.as_posix()
    main_ref = Path(os.path.relpath(settings.main_source, settings.work_dir)).as_posix()
    lines = [
        GENERATED_MARKER,
        f"cmake_minimum_required(VERSION {CMAKE_MINIMUM})",
        "project(LuauProject)",
        "",
        "set(CMAKE_CXX_STANDARD 17)",
        "set(CMAKE_CXX_STANDARD_REQUIRED ON)",
        "",
        f"add_subdirectory({staging_ref})",
        "",
        f"add_executable({settings.output_name} {main_ref})",
        "",
        f"target_link_libraries({settings.output_name} PRIVATE",
    ]
    lines += [f"    {target}" for target in cmake_targets()]
    lines += [")", "", f"target_include_directories({settings.output_name} PRIVATE"]
    lines += [f"    ${{CMAKE_SOURCE_DIR}}/{path.as_posix()}" for path in include_dirs(Path(staging_ref))]
    lines += [")", ""]
    return "\n".join(lines)


def _built_binary(settings: Settings) -> Path:
    name = settings.output_path.name
    build_dir = settings.cmake_build_dir
    # Multi-config generators (Visual Studio, Xcode) nest outputs per configuration.
    for candidate in (build_dir / name, build_dir / "Release" / name, build_dir / "Debug" / name):
        if candidate.is_file():
            return candidate
    raise WorkspaceIOError(f"cmake finished but {name} was not found under {build_dir}")


def build_with_cmake(settings: Settings | None = None, *, jobs: int | None = None) -> BuildReport:
    """Generate the top-level ``CMakeLists.txt`` and drive ``cmake`` to build the binary.

    A ``CMakeLists.txt`` already in the working directory is only replaced when
    it carries ``GENERATED_MARKER``; a hand-written one aborts the build.
    """

    cfg = settings or get_settings()
    require_main_source(cfg)
    if not (cfg.staging_dir / "CMakeLists.txt").is_file():
        raise MissingSourceError(f"{cfg.staging_dir}/CMakeLists.txt not found; run `deps` first")

    cmakelists = cfg.cmakelists_path
    if cmakelists.exists() and not is_generated_cmakelists(cmakelists):
        raise WorkspaceIOError(f"{cmakelists} was not generated by luau-build; refusing to overwrite it")
    try:
        cmakelists.write_text(render_cmakelists(cfg), encoding="utf-8")
    except OSError as exc:
        raise WorkspaceIOError(f"failed to write {cmakelists}: {exc}") from exc

    build_dir = cfg.cmake_build_dir
    parallel = jobs or os.cpu_count() or 1
    LOGGER.info("Configuring CMake project in %s", build_dir)
    run_tool(["cmake", "-S", str(cfg.work_dir), "-B", str(build_dir)], cwd=cfg.work_dir)
    LOGGER.info("Building with %s parallel jobs", parallel)
    run_tool(
        ["cmake", "--build", str(build_dir), "--config", "Release", "--parallel", str(parallel)],
        cwd=cfg.work_dir,
    )

    produced = _built_binary(cfg)
    try:
        shutil.copyfile(produced, cfg.output_path)
        mode = cfg.output_path.stat().st_mode
        cfg.output_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    except OSError as exc:
        raise WorkspaceIOError(f"failed to copy {produced} to {cfg.output_path}: {exc}") from exc

    return BuildReport(toolchain="cmake", output=str(cfg.output_path), phases=["CONFIGURE", "BUILD", "DONE"])
