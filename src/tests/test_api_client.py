from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from gitdrupal import api_client
from gitdrupal.api_client import ProjectIndexClient
from gitdrupal.exceptions import ExtensionNotFoundError, RemoteInaccessibleError


class _Response:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _client_with_statuses(statuses: dict[str, int]) -> tuple[ProjectIndexClient, list]:
    client = ProjectIndexClient(
        project_base="https://index.test/project",
        archive_base="https://files.test/projects/",
    )
    calls: list[tuple[str, str, dict]] = []

    def _request(method: str):
        def _call(url: str, **kwargs):
            calls.append((method, url, kwargs))
            if url not in statuses:
                raise AssertionError(f"unexpected url: {url}")
            return _Response(statuses[url])

        return _call

    client.session = SimpleNamespace(head=_request("HEAD"), get=_request("GET"))  # type: ignore[assignment]
    return client, calls


def test_init_creates_session_with_retrying_adapters() -> None:
    client = ProjectIndexClient()

    assert "https://" in client.session.adapters
    assert "http://" in client.session.adapters
    retry = client.session.adapters["https://"].max_retries
    assert "HEAD" in retry.allowed_methods
    assert retry.raise_on_status is False
    assert client.session.headers["User-Agent"].startswith("gitdrupal/")


def test_bases_default_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITDRUPAL_PROJECT_URL", "https://mirror.test/project/")
    monkeypatch.setenv("GITDRUPAL_ARCHIVE_URL", "https://mirror.test/files")

    client = ProjectIndexClient()

    assert client.project_url("foo") == "https://mirror.test/project/foo"
    assert client.archive_url("foo", "8.1.0") == "https://mirror.test/files/foo-8.1.0.tar.gz"


def test_bases_fall_back_to_drupal_org(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITDRUPAL_PROJECT_URL", raising=False)
    monkeypatch.delenv("GITDRUPAL_ARCHIVE_URL", raising=False)

    client = ProjectIndexClient()

    assert client.project_url("foo") == "https://www.drupal.org/project/foo"
    assert client.archive_url("foo", "8.x-1.0") == (
        "https://ftp.drupal.org/files/projects/foo-8.x-1.0.tar.gz"
    )


def test_exists_maps_200_and_404() -> None:
    client, calls = _client_with_statuses(
        {
            "https://index.test/project/foo": 200,
            "https://index.test/project/bar": 404,
        }
    )

    assert client.exists("foo") is True
    assert client.exists("bar") is False
    assert [call[0] for call in calls] == ["HEAD", "HEAD"]
    assert calls[0][2]["timeout"] == api_client.HTTP_REQUEST_TIMEOUT_SECONDS


def test_exists_version_probes_archive_url() -> None:
    client, calls = _client_with_statuses(
        {"https://files.test/projects/foo-8.1.0.tar.gz": 200}
    )

    assert client.exists_version("foo", "8.1.0") is True
    assert calls[0][1] == "https://files.test/projects/foo-8.1.0.tar.gz"


def test_unexpected_status_is_inaccessible() -> None:
    client, _ = _client_with_statuses({"https://index.test/project/foo": 503})

    with pytest.raises(RemoteInaccessibleError, match="not accessible: 503"):
        client.exists("foo")


def test_transport_errors_are_inaccessible() -> None:
    client = ProjectIndexClient(project_base="https://index.test/project")

    def _timeout(url: str, **kwargs):
        raise requests.Timeout("read timed out")

    client.session = SimpleNamespace(head=_timeout)  # type: ignore[assignment]

    with pytest.raises(RemoteInaccessibleError, match="read timed out"):
        client.exists("foo")


def test_verify_names_missing_extension_or_version() -> None:
    client, _ = _client_with_statuses(
        {
            "https://index.test/project/foo": 200,
            "https://files.test/projects/foo-9.0.0.tar.gz": 404,
            "https://index.test/project/nope": 404,
        }
    )

    with pytest.raises(ExtensionNotFoundError, match="Extension 'nope' not found"):
        client.verify("nope", "9.0.0")
    with pytest.raises(ExtensionNotFoundError, match="Version 9.0.0"):
        client.verify("foo", "9.0.0")


def test_fetch_streams_archive() -> None:
    client, calls = _client_with_statuses(
        {"https://files.test/projects/foo-8.1.0.tar.gz": 200}
    )

    response = client.fetch("foo", "8.1.0")

    assert response.status_code == 200
    assert calls[0][0] == "GET"
    assert calls[0][2]["stream"] is True


@pytest.mark.parametrize(
    ("status", "error"), [(404, ExtensionNotFoundError), (500, RemoteInaccessibleError)]
)
def test_fetch_rejects_non_200(status: int, error: type[Exception]) -> None:
    client, _ = _client_with_statuses(
        {"https://files.test/projects/foo-8.1.0.tar.gz": status}
    )

    with pytest.raises(error):
        client.fetch("foo", "8.1.0")
