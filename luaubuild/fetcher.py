"""Download the Luau source archive and stage it under the staging directory."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath

import httpx

from luaubuild.errors import ArchiveError, NetworkError, WorkspaceIOError
from luaubuild.modules import CRITICAL_HEADERS
from luaubuild.schemas import FetchReport, HeaderCheck
from luaubuild.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)
CHUNK_SIZE = 64 * 1024
LISTED_INCLUDE_DIRS = ("Analysis/include/Luau", "EqSat/include/Luau")


def request_timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(connect=10.0, read=settings.fetch_timeout, write=30.0, pool=10.0)


def fetch_dependencies(
    settings: Settings | None = None,
    *,
    client: httpx.Client | None = None,
    verify: bool = True,
    http2: bool = False,
) -> FetchReport:
    """Download ``settings.archive_url`` and extract it into the staging directory.

    Parameters
    ----------
    settings:
        Optional settings override; defaults to the process-wide settings.
    client:
        Optional ``httpx.Client`` (useful for tests). When omitted, a client is
        created for the duration of this call.
    verify:
        Check the critical headers after extraction and log the Analysis and
        EqSat include directories at DEBUG. Purely diagnostic.

    The temporary archive is removed once extraction succeeds. When extraction
    fails it stays at ``settings.archive_path`` so the payload can be inspected.
    """

    cfg = settings or get_settings()
    try:
        cfg.staging_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WorkspaceIOError(f"failed to create {cfg.staging_dir}: {exc}") from exc

    archive_path = cfg.archive_path
    _download(cfg, archive_path, client=client, http2=http2)

    files, directories = extract_archive(archive_path, cfg.staging_dir, cfg.archive_prefix)
    archive_path.unlink(missing_ok=True)

    report = FetchReport(
        url=cfg.archive_url,
        staging_dir=str(cfg.staging_dir),
        files=files,
        directories=directories,
    )
    if verify:
        report.headers = verify_headers(cfg.staging_dir)
        list_include_dirs(cfg.staging_dir)
    return report


def _download(
    settings: Settings,
    destination: Path,
    *,
    client: httpx.Client | None,
    http2: bool,
) -> None:
    owns_client = client is None
    http_client = client or httpx.Client(
        timeout=request_timeout(settings),
        follow_redirects=True,
        http2=http2,
    )
    LOGGER.info("Downloading %s -> %s", settings.archive_url, destination)
    try:
        with http_client.stream("GET", settings.archive_url) as response:
            response.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    handle.write(chunk)
    except httpx.HTTPStatusError as exc:
        destination.unlink(missing_ok=True)
        raise NetworkError(
            f"GET {settings.archive_url} returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        destination.unlink(missing_ok=True)
        raise NetworkError(f"GET {settings.archive_url} failed: {exc}") from exc
    except OSError as exc:
        raise WorkspaceIOError(f"failed to write {destination}: {exc}") from exc
    finally:
        if owns_client:
            http_client.close()


def staged_path(entry_name: str, prefix: str) -> PurePosixPath | None:
    """Map an archive entry name onto a path relative to the staging root.

    Returns ``None`` for the archive's top-level folder itself. Raises
    ``ArchiveError`` for names that would land outside the staging root.
    """

    name = entry_name.removeprefix(prefix) if prefix else entry_name
    relative = PurePosixPath(name)
    if relative.is_absolute() or ".." in relative.parts:
        raise ArchiveError(f"archive entry escapes the staging directory: {entry_name}")
    if not relative.parts:
        return None
    return relative


def extract_archive(archive_path: Path, staging_dir: Path, prefix: str) -> tuple[int, int]:
    """Extract every entry of ``archive_path`` with ``prefix`` stripped.

    Returns ``(files, directories)`` written. Entries are processed in archive
    order; parents are created per file so ordering does not matter.
    """

    files = 0
    directories = 0
    try:
        archive = zipfile.ZipFile(archive_path)
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"{archive_path} is not a valid zip archive") from exc
    except OSError as exc:
        raise WorkspaceIOError(f"failed to open {archive_path}: {exc}") from exc

    with archive:
        for info in archive.infolist():
            relative = staged_path(info.filename, prefix)
            if relative is None:
                continue
            target = staging_dir.joinpath(*relative.parts)
            try:
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    directories += 1
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as source, target.open("wb") as sink:
                    shutil.copyfileobj(source, sink)
            # NotImplementedError: unsupported compression; RuntimeError: encrypted entry
            except (zipfile.BadZipFile, zipfile.LargeZipFile, NotImplementedError, RuntimeError) as exc:
                raise ArchiveError(f"failed to read {info.filename}: {exc}") from exc
            except OSError as exc:
                raise WorkspaceIOError(f"failed to write {target}: {exc}") from exc
            LOGGER.debug("Extracted %s", target)
            files += 1
    LOGGER.info("Extracted %s files and %s directories into %s", files, directories, staging_dir)
    return files, directories


def verify_headers(staging_dir: Path, headers: tuple[str, ...] = CRITICAL_HEADERS) -> list[HeaderCheck]:
    checks: list[HeaderCheck] = []
    for header in headers:
        present = (staging_dir / header).is_file()
        if not present:
            LOGGER.warning("Critical header missing from staged tree: %s", header)
        checks.append(HeaderCheck(path=header, present=present))
    return checks


def list_include_dirs(staging_dir: Path, directories: tuple[str, ...] = LISTED_INCLUDE_DIRS) -> dict[str, list[str]]:
    """Log and return the entries of the include directories most often missing after an upstream move."""

    listing: dict[str, list[str]] = {}
    for directory in directories:
        root = staging_dir / directory
        entries = sorted(path.name for path in root.iterdir()) if root.is_dir() else []
        LOGGER.debug("Contents of %s: %s", root, ", ".join(entries) or "<missing>")
        listing[directory] = entries
    return listing
