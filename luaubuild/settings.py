"""Configuration helpers bound to python-decouple."""

from __future__ import annotations

import sys
from dataclasses import dataclass, replace
from pathlib import Path

from decouple import Config as DecoupleConfig, RepositoryEmpty, RepositoryEnv

DEFAULT_ARCHIVE_URL = "https://github.com/luau-lang/luau/archive/refs/heads/master.zip"
DEFAULT_ARCHIVE_PREFIX = "luau-master/"
TEMP_ARCHIVE_NAME = "master.zip"
CMAKE_BUILD_DIR = "build"


def _is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform).startswith("win")


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved paths and toolchain knobs for one invocation."""

    archive_url: str
    archive_prefix: str
    staging_dir: Path
    main_source: Path
    output_name: str
    cxx: str | None
    ar: str | None
    cxx_std: str
    fetch_timeout: float
    log_level: str
    work_dir: Path = Path(".")
    platform: str = sys.platform

    @property
    def is_windows(self) -> bool:
        return _is_windows(self.platform)

    @property
    def archive_path(self) -> Path:
        return self.staging_dir / TEMP_ARCHIVE_NAME

    @property
    def output_path(self) -> Path:
        suffix = ".exe" if self.is_windows else ""
        return self.work_dir / f"{self.output_name}{suffix}"

    @property
    def cmake_build_dir(self) -> Path:
        return self.work_dir / CMAKE_BUILD_DIR

    @property
    def cmakelists_path(self) -> Path:
        return self.work_dir / "CMakeLists.txt"

    def with_work_dir(self, work_dir: Path) -> "Settings":
        """Re-anchor relative paths under ``work_dir`` (used by tests and ``--cwd``)."""

        staging = self.staging_dir if self.staging_dir.is_absolute() else work_dir / self.staging_dir
        main_source = self.main_source if self.main_source.is_absolute() else work_dir / self.main_source
        return replace(self, work_dir=work_dir, staging_dir=staging, main_source=main_source)


def load_config(env_path: str = ".env") -> DecoupleConfig:
    """Return a decouple config anchored to ``env_path`` when it exists.

    Process environment variables still take precedence over file values.
    """

    if Path(env_path).exists():
        return DecoupleConfig(RepositoryEnv(env_path))
    return DecoupleConfig(RepositoryEmpty())


def load_settings(env_path: str = ".env", *, platform: str | None = None) -> Settings:
    config = load_config(env_path)
    return Settings(
        archive_url=config("LUAU_ARCHIVE_URL", default=DEFAULT_ARCHIVE_URL),
        archive_prefix=config("LUAU_ARCHIVE_PREFIX", default=DEFAULT_ARCHIVE_PREFIX),
        staging_dir=Path(config("LUAU_STAGING_DIR", default="luau")),
        main_source=Path(config("LUAU_MAIN_SOURCE", default="main.cpp")),
        output_name=config("LUAU_OUTPUT_NAME", default="main"),
        cxx=config("CXX", default=None),
        ar=config("AR", default=None),
        cxx_std=config("LUAU_CXX_STD", default="c++17"),
        fetch_timeout=config("FETCH_TIMEOUT", default=60.0, cast=float),
        log_level=config("LOG_LEVEL", default="WARNING").upper(),
        platform=platform or sys.platform,
    )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""

    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS
