from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Protocol

import requests

from gitdrupal.exceptions import ArchiveInstallError, GitDrupalError

logger: logging.Logger = logging.getLogger(__name__)


class ArchiveSource(Protocol):
    def archive_name(self, name: str, version: str) -> str: ...

    def fetch(self, name: str, version: str) -> requests.Response: ...


def stream_response_to_target(
    *,
    response: requests.Response,
    target_path: Path,
    temp_prefix: str,
) -> Path:
    with tempfile.TemporaryDirectory(prefix=temp_prefix) as tmp_dir:
        file_path = Path(tmp_dir, target_path.name)

        with response, open(file_path, "wb") as output:
            for chunk in response.iter_content(chunk_size=1024 * 8):
                if chunk:
                    output.write(chunk)
            output.flush()
            os.fsync(output.fileno())

        shutil.move(file_path, target_path)
        return target_path


def _check_members(members: list[tarfile.TarInfo], target_dir: Path) -> None:
    root = os.path.realpath(target_dir)
    for member in members:
        destination = os.path.realpath(os.path.join(root, member.name))
        if os.path.commonpath([root, destination]) != root:
            raise tarfile.TarError(
                f"Member {member.name!r} would extract outside {root}"
            )
        if not (member.isfile() or member.isdir()):
            raise tarfile.TarError(
                f"Member {member.name!r} is not a regular file or directory"
            )


def extract_tarball(archive_path: Path, target_dir: Path) -> list[str]:
    """Unpack a gzip tarball into *target_dir* and return its top-level entries."""
    with tarfile.open(archive_path, mode="r:gz") as archive:
        members = archive.getmembers()
        if hasattr(tarfile, "data_filter"):
            # "data" refuses absolute paths, links out of the tree and device nodes
            archive.extractall(target_dir, filter="data")
        else:
            _check_members(members, target_dir)
            archive.extractall(target_dir)
    return sorted({Path(member.name).parts[0] for member in members if member.name})


class ArchiveInstaller(object):
    """Download one extension release and unpack it below a prefix directory."""

    def __init__(self, source: ArchiveSource) -> None:
        self.source = source

    def install(
        self, name: str, version: str, target_dir: Path, replace: bool = False
    ) -> Path:
        """Install *name* at *version* into ``target_dir/name``.

        With ``replace`` the previous ``target_dir/name`` is removed once the
        new archive has been downloaded. A failure while extracting leaves
        whatever was already unpacked in place.
        """
        target_dir = Path(target_dir)
        archive_path = target_dir.joinpath(self.source.archive_name(name, version))
        extension_dir = target_dir.joinpath(name)

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            stream_response_to_target(
                response=self.source.fetch(name, version),
                target_path=archive_path,
                temp_prefix="gitdrupal-download.",
            )

            if replace and extension_dir.exists():
                logger.debug(f"Removing previous files in {extension_dir}")
                shutil.rmtree(extension_dir)

            logger.info(f"Extracting {archive_path.name} into {target_dir}")
            entries = extract_tarball(archive_path, target_dir)
            archive_path.unlink()
        except GitDrupalError:
            raise
        except (OSError, tarfile.TarError, requests.RequestException) as exc:
            raise ArchiveInstallError(
                f"Installing {name} {version} into {target_dir} failed: {exc}"
            ) from exc

        if name not in entries:
            raise ArchiveInstallError(
                f"Archive {archive_path.name} has no top-level '{name}' directory"
            )
        return extension_dir
