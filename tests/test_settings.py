from __future__ import annotations

from pathlib import Path

import pytest

from luaubuild.settings import DEFAULT_ARCHIVE_PREFIX, DEFAULT_ARCHIVE_URL, load_settings

_KEYS = (
    "LUAU_ARCHIVE_URL",
    "LUAU_ARCHIVE_PREFIX",
    "LUAU_STAGING_DIR",
    "LUAU_MAIN_SOURCE",
    "LUAU_OUTPUT_NAME",
    "CXX",
    "AR",
    "LUAU_CXX_STD",
    "FETCH_TIMEOUT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_env_file(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path / "missing.env"), platform="linux")

    assert settings.archive_url == DEFAULT_ARCHIVE_URL
    assert settings.archive_prefix == DEFAULT_ARCHIVE_PREFIX
    assert settings.staging_dir == Path("luau")
    assert settings.main_source == Path("main.cpp")
    assert settings.output_path == Path("main")
    assert settings.archive_path == Path("luau") / "master.zip"
    assert settings.cxx is None
    assert settings.fetch_timeout == 60.0
    assert settings.log_level == "WARNING"


def test_env_file_overrides(tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "LUAU_STAGING_DIR=third_party/luau",
                "LUAU_OUTPUT_NAME=repl",
                "CXX=clang++",
                "FETCH_TIMEOUT=12.5",
                "LOG_LEVEL=debug",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(str(env_path), platform="linux")

    assert settings.staging_dir == Path("third_party/luau")
    assert settings.output_path == Path("repl")
    assert settings.cxx == "clang++"
    assert settings.fetch_timeout == 12.5
    assert settings.log_level == "DEBUG"


def test_process_environment_wins_over_env_file(monkeypatch, tmp_path: Path) -> None:
    env_path = tmp_path / ".env"
    env_path.write_text("CXX=clang++\n", encoding="utf-8")
    monkeypatch.setenv("CXX", "g++-13")

    assert load_settings(str(env_path)).cxx == "g++-13"


def test_windows_output_suffix(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path / "missing.env"), platform="win32")

    assert settings.is_windows
    assert settings.output_path == Path("main.exe")


def test_with_work_dir_anchors_relative_paths(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path / "missing.env"), platform="linux").with_work_dir(tmp_path)

    assert settings.staging_dir == tmp_path / "luau"
    assert settings.main_source == tmp_path / "main.cpp"
    assert settings.output_path == tmp_path / "main"
    assert settings.cmake_build_dir == tmp_path / "build"
    assert settings.cmakelists_path == tmp_path / "CMakeLists.txt"
