"""The Luau module table shared by the library compile, the link step and CMake."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable


@dataclass(frozen=True, slots=True)
class LuauModule:
    """One upstream directory: where its headers live and which sources to compile."""

    name: str
    include_dirs: tuple[str, ...]
    source_globs: tuple[str, ...] = field(default_factory=tuple)
    cmake_target: str | None = None


# Table order is the compile order. CLI only contributes its library sources;
# the Repl/Analyze/Compile entry points each define their own main().
MODULES: tuple[LuauModule, ...] = (
    LuauModule("Common", ("Common/include",)),
    LuauModule("Ast", ("Ast/include",), ("Ast/src/*.cpp",), "Luau.Ast"),
    LuauModule("Compiler", ("Compiler/include",), ("Compiler/src/*.cpp",), "Luau.Compiler"),
    LuauModule("Config", ("Config/include",), ("Config/src/*.cpp",)),
    LuauModule("EqSat", ("EqSat/include",), ("EqSat/src/*.cpp",)),
    LuauModule("Analysis", ("Analysis/include",), ("Analysis/src/*.cpp",), "Luau.Analysis"),
    LuauModule("VM", ("VM/include",), ("VM/src/*.cpp",), "Luau.VM"),
    LuauModule("CodeGen", ("CodeGen/include",), ("CodeGen/src/*.cpp",), "Luau.CodeGen"),
    LuauModule(
        "CLI",
        ("CLI/include", "CLI/src"),
        (
            "CLI/src/FileUtils.cpp",
            "CLI/src/Flags.cpp",
            "CLI/src/Coverage.cpp",
            "CLI/src/Profiler.cpp",
            "CLI/src/Require.cpp",
        ),
        "Luau.CLI.lib",
    ),
    LuauModule(
        "isocline",
        ("extern/isocline/include",),
        ("extern/isocline/src/isocline.c",),
        "isocline",
    ),
)

CRITICAL_HEADERS: tuple[str, ...] = (
    "Config/include/Luau/LinterConfig.h",
    "Analysis/include/Luau/Linter.h",
    "Analysis/include/Luau/Module.h",
    "EqSat/include/Luau/EGraph.h",
    "Analysis/include/Luau/EqSatSimplificationImpl.h",
    "Analysis/include/Luau/BuiltinTypes.h",
    "Analysis/include/Luau/Frontend.h",
    "Analysis/include/Luau/TypeInfer.h",
)


def include_dirs(staging_dir: Path, modules: Iterable[LuauModule] = MODULES) -> list[Path]:
    dirs: list[Path] = []
    for module in modules:
        dirs.extend(staging_dir / rel for rel in module.include_dirs)
    return dirs


def source_files(staging_dir: Path, modules: Iterable[LuauModule] = MODULES) -> list[Path]:
    """Expand every module's globs in table order; each glob's matches are sorted."""

    sources: list[Path] = []
    seen: set[Path] = set()
    for module in modules:
        for pattern in module.source_globs:
            for path in sorted(staging_dir.glob(pattern)):
                if path.is_file() and path not in seen:
                    seen.add(path)
                    sources.append(path)
    return sources


def cmake_targets(modules: Iterable[LuauModule] = MODULES) -> list[str]:
    return [module.cmake_target for module in modules if module.cmake_target]
