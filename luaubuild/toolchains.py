"""Compiler backends: the single place where command lines differ per host platform."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from luaubuild.errors import ToolchainError
from luaubuild.settings import Settings

LOGGER = logging.getLogger(__name__)


def run_tool(command: Sequence[str], *, cwd: Path) -> subprocess.CompletedProcess[str]:
    """Run one toolchain command, raising ``ToolchainError`` on failure.

    Output is captured so a failure can be reported verbatim. A Ctrl-C while the
    child is running kills it before ``KeyboardInterrupt`` propagates.
    """

    args = [str(part) for part in command]
    LOGGER.debug("Running %s (cwd=%s)", shlex.join(args), cwd)
    try:
        completed = subprocess.run(args, cwd=cwd, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise ToolchainError(args, 127, f"executable not found: {args[0]}") from exc
    if completed.returncode != 0:
        stderr = completed.stderr or completed.stdout or ""
        raise ToolchainError(args, completed.returncode, stderr)
    return completed


class Toolchain(Protocol):
    """Compile, archive and link given a source list, include list and output path."""

    name: str
    object_suffix: str
    library_name: str

    def compile_objects(self, sources: Sequence[Path], include_dirs: Sequence[Path], *, cwd: Path) -> None: ...

    def archive(self, objects: Sequence[Path], library: Path, *, cwd: Path) -> None: ...

    def link(
        self,
        main_source: Path,
        include_dirs: Sequence[Path],
        library: Path,
        output: Path,
        *,
        cwd: Path,
    ) -> None: ...


class CommandLineToolchain:
    """Runs the command lines a backend builds; subclasses only say what to run."""

    __slots__ = ()

    def compile_command(self, sources: Sequence[Path], include_dirs: Sequence[Path]) -> list[str]:
        raise NotImplementedError

    def archive_command(self, objects: Sequence[Path], library: Path) -> list[str]:
        raise NotImplementedError

    def link_command(
        self,
        main_source: Path,
        include_dirs: Sequence[Path],
        library: Path,
        output: Path,
    ) -> list[str]:
        raise NotImplementedError

    def compile_objects(self, sources: Sequence[Path], include_dirs: Sequence[Path], *, cwd: Path) -> None:
        run_tool(self.compile_command(sources, include_dirs), cwd=cwd)

    def archive(self, objects: Sequence[Path], library: Path, *, cwd: Path) -> None:
        run_tool(self.archive_command(objects, library), cwd=cwd)

    def link(
        self,
        main_source: Path,
        include_dirs: Sequence[Path],
        library: Path,
        output: Path,
        *,
        cwd: Path,
    ) -> None:
        run_tool(self.link_command(main_source, include_dirs, library, output), cwd=cwd)


@dataclass(slots=True)
class GnuToolchain(CommandLineToolchain):
    """``g++``/``clang++`` plus ``ar``."""

    cxx: str = "g++"
    ar: str = "ar"
    std: str = "c++17"
    name: str = "gnu"
    object_suffix: str = ".o"
    library_name: str = "libluau.a"

    def compile_command(self, sources: Sequence[Path], include_dirs: Sequence[Path]) -> list[str]:
        command = [self.cxx, f"-std={self.std}", "-fPIC", "-c"]
        command += [f"-I{path}" for path in include_dirs]
        command += [str(path) for path in sources]
        return command

    def archive_command(self, objects: Sequence[Path], library: Path) -> list[str]:
        return [self.ar, "rcs", str(library), *(str(path) for path in objects)]

    def link_command(
        self,
        main_source: Path,
        include_dirs: Sequence[Path],
        library: Path,
        output: Path,
    ) -> list[str]:
        command = [self.cxx, f"-std={self.std}"]
        command += [f"-I{path}" for path in include_dirs]
        command += [str(main_source), str(library), "-o", str(output)]
        return command


@dataclass(slots=True)
class MsvcToolchain(CommandLineToolchain):
    """``cl.exe`` plus ``lib.exe``; expects a Developer Command Prompt environment."""

    cl: str = "cl"
    lib: str = "lib"
    std: str = "c++17"
    name: str = "msvc"
    object_suffix: str = ".obj"
    library_name: str = "luau.lib"

    def _common(self) -> list[str]:
        return [self.cl, "/nologo", f"/std:{self.std}", "/EHsc"]

    def compile_command(self, sources: Sequence[Path], include_dirs: Sequence[Path]) -> list[str]:
        command = self._common() + ["/c"]
        command += [f"/I{path}" for path in include_dirs]
        command += [str(path) for path in sources]
        return command

    def archive_command(self, objects: Sequence[Path], library: Path) -> list[str]:
        return [self.lib, "/nologo", f"/OUT:{library}", *(str(path) for path in objects)]

    def link_command(
        self,
        main_source: Path,
        include_dirs: Sequence[Path],
        library: Path,
        output: Path,
    ) -> list[str]:
        command = self._common()
        command += [f"/I{path}" for path in include_dirs]
        command += [str(main_source), str(library), f"/Fe:{output}"]
        return command


def _is_msvc_driver(executable: str) -> bool:
    return Path(executable).stem.lower() in {"cl", "clang-cl"}


def select_toolchain(settings: Settings) -> Toolchain:
    """Pick the backend for the host platform recorded in ``settings``.

    Windows defaults to MSVC; an explicit non-MSVC ``CXX`` (e.g. MinGW ``g++``)
    switches it to the GNU backend.
    """

    if settings.is_windows and (settings.cxx is None or _is_msvc_driver(settings.cxx)):
        return MsvcToolchain(
            cl=settings.cxx or "cl",
            lib=settings.ar or "lib",
            std=settings.cxx_std,
        )
    return GnuToolchain(
        cxx=settings.cxx or "g++",
        ar=settings.ar or "ar",
        std=settings.cxx_std,
    )
