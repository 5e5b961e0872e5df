from __future__ import annotations

import os
import platform
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version


def _get_package_version(name: str) -> str:
    """Return the installed version of *name*, or ``"0"`` if not found."""
    try:
        return _pkg_version(name)
    except PackageNotFoundError:
        return "0"


_gitdrupal_version = _get_package_version("gitdrupal")

DEFAULT_USER_AGENT = (
    f"gitdrupal/{_gitdrupal_version}"
    f" ({platform.system()}; {platform.machine()}; compatible)"
)

DEFAULT_PROJECT_URL = "https://www.drupal.org/project"
DEFAULT_ARCHIVE_URL = "https://ftp.drupal.org/files/projects"
ARCHIVE_SUFFIX = ".tar.gz"

# sidecar file holding one section per tracked extension
METADATA_FILE_NAME = ".gitdrupal"
METADATA_SECTION = "extension"
METADATA_FIELDS = ("name", "version", "type", "branch", "prefix")

HTTP_REQUEST_TIMEOUT_SECONDS = 30
HTTP_STREAM_CONNECT_TIMEOUT_SECONDS = 10
HTTP_STREAM_READ_TIMEOUT_SECONDS = 120

HTTP_RETRY_TOTAL = 3
HTTP_RETRY_BACKOFF_FACTOR = 1
HTTP_RETRY_STATUS_FORCELIST = [429, 500, 502, 503, 504]
HTTP_RETRY_ALLOWED_METHODS = ["HEAD", "GET", "OPTIONS"]


def resolve_project_url() -> str:
    """Base URL of the project pages used for name existence probes."""
    explicit = os.environ.get("GITDRUPAL_PROJECT_URL", "").strip()
    return (explicit or DEFAULT_PROJECT_URL).rstrip("/")


def resolve_archive_url() -> str:
    """Base URL of the release archives used for version probes and downloads."""
    explicit = os.environ.get("GITDRUPAL_ARCHIVE_URL", "").strip()
    return (explicit or DEFAULT_ARCHIVE_URL).rstrip("/")
