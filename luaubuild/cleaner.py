"""Undo the effects of ``deps`` and ``build``."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from luaubuild.cmake import is_generated_cmakelists
from luaubuild.errors import WorkspaceIOError
from luaubuild.schemas import CleanReport
from luaubuild.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)
OBJECT_GLOBS = ("*.o", "*.obj")


def clean_workspace(settings: Settings | None = None) -> CleanReport:
    """Remove the staging tree, the output binary, stray objects and the CMake build dir.

    The top-level ``CMakeLists.txt`` goes too, but only when ``build --cmake``
    generated it. Missing targets are skipped, so calling this on a clean tree succeeds. Any
    other removal failure aborts the remaining steps.
    """

    cfg = settings or get_settings()
    report = CleanReport()

    _remove_tree(cfg.staging_dir, report)
    _remove_file(cfg.output_path, report)
    for pattern in OBJECT_GLOBS:
        for path in sorted(cfg.work_dir.glob(pattern)):
            _remove_file(path, report)
    _remove_tree(cfg.cmake_build_dir, report)
    if is_generated_cmakelists(cfg.cmakelists_path):
        _remove_file(cfg.cmakelists_path, report)
    return report


def _remove_tree(path: Path, report: CleanReport) -> None:
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise WorkspaceIOError(f"failed to remove {path}: {exc}") from exc
    LOGGER.info("Removed %s", path)
    report.removed.append(str(path))


def _remove_file(path: Path, report: CleanReport) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise WorkspaceIOError(f"failed to remove {path}: {exc}") from exc
    LOGGER.info("Removed %s", path)
    report.removed.append(str(path))
