"""Pydantic reports returned by each verb and rendered by the CLI."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HeaderCheck(BaseModel):
    """Presence of one critical header inside the staged tree."""

    path: str = Field(description="Header path relative to the staging directory")
    present: bool


class FetchReport(BaseModel):
    """Outcome of a successful ``deps`` run."""

    url: str
    staging_dir: str
    files: int = Field(default=0, ge=0, description="File entries written")
    directories: int = Field(default=0, ge=0, description="Directory entries created")
    headers: list[HeaderCheck] = Field(default_factory=list)

    @property
    def missing_headers(self) -> list[str]:
        return [check.path for check in self.headers if not check.present]


class CleanReport(BaseModel):
    """Paths removed by ``clean``; empty when the tree was already clean."""

    removed: list[str] = Field(default_factory=list)


class BuildReport(BaseModel):
    """Outcome of a successful ``build`` run."""

    toolchain: str = Field(description="Backend that produced the binary (gnu, msvc, cmake)")
    output: str
    library: str | None = None
    library_cached: bool = False
    sources: int = Field(default=0, ge=0, description="Dependency sources compiled in phase 1")
    phases: list[str] = Field(default_factory=list, description="Builder states visited in order")
