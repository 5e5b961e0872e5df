#! /bin/env python3
from __future__ import annotations

import logging

import requests
from requests.adapters import HTTPAdapter, Retry

from gitdrupal.exceptions import ExtensionNotFoundError, RemoteInaccessibleError
from gitdrupal.internal_config import (
    ARCHIVE_SUFFIX,
    DEFAULT_USER_AGENT,
    HTTP_REQUEST_TIMEOUT_SECONDS,
    HTTP_RETRY_ALLOWED_METHODS,
    HTTP_RETRY_BACKOFF_FACTOR,
    HTTP_RETRY_STATUS_FORCELIST,
    HTTP_RETRY_TOTAL,
    HTTP_STREAM_CONNECT_TIMEOUT_SECONDS,
    HTTP_STREAM_READ_TIMEOUT_SECONDS,
    resolve_archive_url,
    resolve_project_url,
)

logger: logging.Logger = logging.getLogger(__name__)


class ProjectIndexClient(object):
    """Probe and download extension releases from the remote package index."""

    session: requests.Session
    project_base: str
    archive_base: str

    def __init__(self, project_base: str = "", archive_base: str = "") -> None:
        retry_strategy = Retry(
            total=HTTP_RETRY_TOTAL,
            backoff_factor=HTTP_RETRY_BACKOFF_FACTOR,
            status_forcelist=HTTP_RETRY_STATUS_FORCELIST,
            allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
            # hand the final status back so it can be reported
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": DEFAULT_USER_AGENT})
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.project_base = (project_base or resolve_project_url()).rstrip("/")
        self.archive_base = (archive_base or resolve_archive_url()).rstrip("/")

    @staticmethod
    def archive_name(name: str, version: str) -> str:
        return f"{name}-{version}{ARCHIVE_SUFFIX}"

    def project_url(self, name: str) -> str:
        return f"{self.project_base}/{name}"

    def archive_url(self, name: str, version: str) -> str:
        return f"{self.archive_base}/{self.archive_name(name, version)}"

    def _probe(self, url: str, subject: str) -> bool:
        logger.debug(f"Probing {url}")
        try:
            response = self.session.head(
                url,
                allow_redirects=True,
                timeout=HTTP_REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise RemoteInaccessibleError(f"{subject} not accessible: {exc}") from exc

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise RemoteInaccessibleError(
            f"{subject} not accessible: {response.status_code}"
        )

    def exists(self, name: str) -> bool:
        """Return whether the index knows an extension called *name*."""
        return self._probe(self.project_url(name), f"Extension '{name}'")

    def exists_version(self, name: str, version: str) -> bool:
        """Return whether a release archive for *name* at *version* is published."""
        return self._probe(
            self.archive_url(name, version), f"Version {version} of '{name}'"
        )

    def verify(self, name: str, version: str) -> None:
        """Raise unless both the extension and the requested release resolve."""
        if not self.exists(name):
            raise ExtensionNotFoundError(f"Extension '{name}' not found")
        if not self.exists_version(name, version):
            raise ExtensionNotFoundError(
                f"Version {version} of extension '{name}' not found"
            )

    def fetch(self, name: str, version: str) -> requests.Response:
        """Open a streamed download of the release archive."""
        url = self.archive_url(name, version)
        logger.info(f"Downloading {name} {version} from {url}")
        try:
            response = self.session.get(
                url,
                stream=True,
                timeout=(
                    HTTP_STREAM_CONNECT_TIMEOUT_SECONDS,
                    HTTP_STREAM_READ_TIMEOUT_SECONDS,
                ),
            )
        except requests.RequestException as exc:
            raise RemoteInaccessibleError(
                f"Archive {url} not accessible: {exc}"
            ) from exc

        if response.status_code == 404:
            response.close()
            raise ExtensionNotFoundError(
                f"Version {version} of extension '{name}' not found"
            )
        if response.status_code != 200:
            response.close()
            raise RemoteInaccessibleError(
                f"Archive {url} not accessible: {response.status_code}"
            )
        return response
