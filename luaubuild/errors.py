"""Error taxonomy shared by the fetch/clean/build verbs."""

from __future__ import annotations

from typing import Sequence


class LuauBuildError(Exception):
    """Base class for every error a verb reports to the user."""


class NetworkError(LuauBuildError):
    """The archive request failed at the transport level or returned non-2xx."""


class ArchiveError(LuauBuildError):
    """The downloaded payload is not a usable zip archive."""


class WorkspaceIOError(LuauBuildError):
    """Creating, writing or removing a workspace path failed."""


class MissingSourceError(LuauBuildError):
    """A required input file (or the staged source tree) is absent."""


class ToolchainError(LuauBuildError):
    """An external compiler, archiver or CMake invocation exited non-zero."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip()
        message = f"{self.command[0] if self.command else '<empty>'} exited with status {returncode}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
