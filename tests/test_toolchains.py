from __future__ import annotations

import subprocess
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from luaubuild.errors import ToolchainError
from luaubuild.settings import Settings
from luaubuild.toolchains import CommandLineToolchain, GnuToolchain, MsvcToolchain, run_tool, select_toolchain

INCLUDES = [Path("luau/Common/include"), Path("luau/Ast/include")]


def _settings(**overrides) -> Settings:  # noqa: ANN003
    base = Settings(
        archive_url="https://example.com/luau/master.zip",
        archive_prefix="luau-master/",
        staging_dir=Path("luau"),
        main_source=Path("main.cpp"),
        output_name="main",
        cxx=None,
        ar=None,
        cxx_std="c++17",
        fetch_timeout=5.0,
        log_level="WARNING",
        platform="linux",
    )
    return replace(base, **overrides)


def test_gnu_command_shapes() -> None:
    tools = GnuToolchain()
    sources = [Path("luau/Ast/src/Ast.cpp"), Path("luau/VM/src/lapi.cpp")]

    assert tools.compile_command(sources, INCLUDES) == [
        "g++",
        "-std=c++17",
        "-fPIC",
        "-c",
        "-Iluau/Common/include",
        "-Iluau/Ast/include",
        "luau/Ast/src/Ast.cpp",
        "luau/VM/src/lapi.cpp",
    ]
    assert tools.archive_command([Path("Ast.o"), Path("lapi.o")], Path("luau/libluau.a")) == [
        "ar",
        "rcs",
        "luau/libluau.a",
        "Ast.o",
        "lapi.o",
    ]
    assert tools.link_command(Path("main.cpp"), INCLUDES, Path("luau/libluau.a"), Path("main")) == [
        "g++",
        "-std=c++17",
        "-Iluau/Common/include",
        "-Iluau/Ast/include",
        "main.cpp",
        "luau/libluau.a",
        "-o",
        "main",
    ]


def test_msvc_command_shapes() -> None:
    tools = MsvcToolchain()
    sources = [Path("luau/Ast/src/Ast.cpp")]

    compile_cmd = tools.compile_command(sources, INCLUDES)
    assert compile_cmd[:5] == ["cl", "/nologo", "/std:c++17", "/EHsc", "/c"]
    assert f"/I{INCLUDES[0]}" in compile_cmd
    assert compile_cmd[-1] == str(sources[0])
    assert tools.archive_command([Path("Ast.obj")], Path("luau/luau.lib")) == [
        "lib",
        "/nologo",
        f"/OUT:{Path('luau/luau.lib')}",
        "Ast.obj",
    ]
    link_cmd = tools.link_command(Path("main.cpp"), INCLUDES, Path("luau/luau.lib"), Path("main.exe"))
    assert link_cmd[-1] == "/Fe:main.exe"
    assert "/c" not in link_cmd
    assert tools.object_suffix == ".obj"


def test_select_toolchain_by_platform() -> None:
    assert isinstance(select_toolchain(_settings(platform="linux")), GnuToolchain)
    assert isinstance(select_toolchain(_settings(platform="darwin")), GnuToolchain)
    assert isinstance(select_toolchain(_settings(platform="win32")), MsvcToolchain)


def test_select_toolchain_honours_explicit_compiler() -> None:
    mingw = select_toolchain(_settings(platform="win32", cxx="g++", ar="ar"))
    assert isinstance(mingw, GnuToolchain)

    clang = select_toolchain(_settings(cxx="clang++", ar="llvm-ar", cxx_std="c++20"))
    assert isinstance(clang, GnuToolchain)
    assert clang.compile_command([], [])[:2] == ["clang++", "-std=c++20"]
    assert clang.archive_command([], Path("lib.a"))[0] == "llvm-ar"

    msvc = select_toolchain(_settings(platform="win32", cxx="C:/VS/bin/cl.exe"))
    assert isinstance(msvc, MsvcToolchain)


def test_run_tool_reports_exit_code_and_stderr(tmp_path: Path) -> None:
    command = [sys.executable, "-c", "import sys; sys.stderr.write('bad flag'); sys.exit(3)"]

    with pytest.raises(ToolchainError) as excinfo:
        run_tool(command, cwd=tmp_path)

    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "bad flag"
    assert excinfo.value.command == command
    assert "bad flag" in str(excinfo.value)


def test_run_tool_missing_executable(tmp_path: Path) -> None:
    with pytest.raises(ToolchainError) as excinfo:
        run_tool(["definitely-not-a-compiler-xyz"], cwd=tmp_path)

    assert excinfo.value.returncode == 127


def test_gnu_toolchain_runs_in_working_directory(monkeypatch, tmp_path: Path) -> None:
    captured: dict[str, object] = {}

    def fake_run(args, cwd, capture_output, text, check):  # noqa: ANN001
        captured["args"] = args
        captured["cwd"] = cwd
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

    monkeypatch.setattr("luaubuild.toolchains.subprocess.run", fake_run)

    GnuToolchain().archive([Path("a.o")], Path("luau/libluau.a"), cwd=tmp_path)

    assert captured["args"] == ["ar", "rcs", "luau/libluau.a", "a.o"]
    assert captured["cwd"] == tmp_path


def test_msvc_toolchain_runs_each_step(monkeypatch, tmp_path: Path) -> None:
    calls: list[list[str]] = []

    def fake_run(args, cwd, capture_output, text, check):  # noqa: ANN001
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

    monkeypatch.setattr("luaubuild.toolchains.subprocess.run", fake_run)
    tools = MsvcToolchain()

    tools.compile_objects([Path("luau/Ast/src/Ast.cpp")], INCLUDES, cwd=tmp_path)
    tools.archive([Path("Ast.obj")], Path("luau.lib"), cwd=tmp_path)
    tools.link(Path("main.cpp"), INCLUDES, Path("luau.lib"), Path("main.exe"), cwd=tmp_path)

    assert [call[0] for call in calls] == ["cl", "lib", "cl"]
    assert "/c" in calls[0]
    assert calls[1][-1] == "Ast.obj"
    assert calls[2][-1] == "/Fe:main.exe"


def test_command_line_toolchain_requires_commands(tmp_path: Path) -> None:
    with pytest.raises(NotImplementedError):
        CommandLineToolchain().compile_objects([], [], cwd=tmp_path)
