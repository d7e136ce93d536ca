"""Two-phase build: cached Luau static library, then the main program link."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from luaubuild.errors import MissingSourceError, WorkspaceIOError
from luaubuild.modules import include_dirs, source_files
from luaubuild.schemas import BuildReport
from luaubuild.settings import Settings, get_settings
from luaubuild.toolchains import Toolchain, select_toolchain

LOGGER = logging.getLogger(__name__)


class BuildPhase(str, Enum):
    """Builder states, recorded in order on the report."""

    CHECK_LIBRARY = "CHECK_LIBRARY"
    LIBRARY_PRESENT = "LIBRARY_PRESENT"
    COMPILE_DEPS = "COMPILE_DEPS"
    ARCHIVE_DEPS = "ARCHIVE_DEPS"
    LINK = "LINK"
    DONE = "DONE"


def library_path(settings: Settings, toolchain: Toolchain) -> Path:
    return settings.staging_dir / toolchain.library_name


def library_is_cached(library: Path) -> bool:
    """Existence of a non-empty archive is the whole cache policy; sources are not inspected."""

    try:
        return library.is_file() and library.stat().st_size > 0
    except OSError:
        return False


def require_main_source(settings: Settings) -> Path:
    if not settings.main_source.is_file():
        raise MissingSourceError(f"{settings.main_source} not found")
    return settings.main_source


def build_project(settings: Settings | None = None, *, toolchain: Toolchain | None = None) -> BuildReport:
    """Build the output binary, compiling the dependency library first if it is absent."""

    cfg = settings or get_settings()
    main_source = require_main_source(cfg)
    tools = toolchain or select_toolchain(cfg)
    library = library_path(cfg, tools)
    includes = include_dirs(cfg.staging_dir)

    report = BuildReport(toolchain=tools.name, output=str(cfg.output_path), library=str(library))
    report.phases.append(BuildPhase.CHECK_LIBRARY.value)

    if library_is_cached(library):
        LOGGER.info("Using cached dependency library %s", library)
        report.library_cached = True
        report.phases.append(BuildPhase.LIBRARY_PRESENT.value)
    else:
        report.sources = build_library(cfg, tools, library, includes, report)

    report.phases.append(BuildPhase.LINK.value)
    LOGGER.info("Linking %s -> %s", main_source, cfg.output_path)
    tools.link(main_source, includes, library, cfg.output_path, cwd=cfg.work_dir)
    report.phases.append(BuildPhase.DONE.value)
    return report


def build_library(
    settings: Settings,
    toolchain: Toolchain,
    library: Path,
    includes: list[Path],
    report: BuildReport,
) -> int:
    sources = source_files(settings.staging_dir)
    if not sources:
        raise MissingSourceError(
            f"no dependency sources under {settings.staging_dir}; run `deps` first"
        )

    report.phases.append(BuildPhase.COMPILE_DEPS.value)
    LOGGER.info("Compiling %s dependency sources", len(sources))
    toolchain.compile_objects(sources, includes, cwd=settings.work_dir)

    objects = sorted(settings.work_dir.glob(f"*{toolchain.object_suffix}"))
    report.phases.append(BuildPhase.ARCHIVE_DEPS.value)
    LOGGER.info("Archiving %s objects into %s", len(objects), library)
    try:
        toolchain.archive(objects, library, cwd=settings.work_dir)
    finally:
        _remove_objects(objects)
    return len(sources)


def _remove_objects(objects: list[Path]) -> None:
    for path in objects:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise WorkspaceIOError(f"failed to remove {path}: {exc}") from exc
