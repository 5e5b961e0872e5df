from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace

import pytest

from gitdrupal.api_client import ProjectIndexClient
from gitdrupal.extension_manager import ExtensionLifecycleController
from gitdrupal.metadata_store import MetadataStore


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="run slow tests that drive a real git binary",
    )
    parser.addoption(
        "--only-slow",
        action="store_true",
        default=False,
        help="run only tests marked as slow",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: marks tests as slow")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    only_slow = bool(config.getoption("--only-slow"))
    run_slow = bool(config.getoption("--slow")) or only_slow

    if only_slow:
        selected: list[pytest.Item] = []
        deselected: list[pytest.Item] = []
        for item in items:
            if "slow" in item.keywords:
                selected.append(item)
            else:
                deselected.append(item)

        if deselected:
            config.hook.pytest_deselected(items=deselected)
        items[:] = selected

    if run_slow:
        return

    skip_slow = pytest.mark.skip(reason="need --slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


def build_tarball(name: str, files: dict[str, bytes]) -> bytes:
    """Return a gzip tarball laid out like a drupal.org release archive."""
    data = io.BytesIO()
    with tarfile.open(fileobj=data, mode="w:gz") as archive:
        for relative, payload in files.items():
            info = tarfile.TarInfo(name=f"{name}/{relative}")
            info.size = len(payload)
            archive.addfile(info, io.BytesIO(payload))
    return data.getvalue()


class _IndexResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    def close(self) -> None:
        return None


class FakeIndexClient(ProjectIndexClient):
    """Real index client whose session answers from published releases."""

    def __init__(self) -> None:
        super().__init__(
            project_base="https://index.test/project",
            archive_base="https://files.test/projects",
        )
        self.statuses: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.session = SimpleNamespace(head=self._head)  # type: ignore[assignment]

    def publish(self, name: str, *versions: str) -> None:
        self.statuses[self.project_url(name)] = 200
        for version in versions:
            self.statuses[self.archive_url(name, version)] = 200

    def _head(self, url: str, **kwargs) -> _IndexResponse:
        self.calls.append(("HEAD", url))
        return _IndexResponse(self.statuses.get(url, 404))


@dataclass
class FakeInstaller:
    """Writes a VERSION file into ``target_dir/name`` instead of downloading."""

    calls: list[tuple[str, str, Path, bool]] = field(default_factory=list)

    def install(
        self, name: str, version: str, target_dir: Path, replace: bool = False
    ) -> Path:
        self.calls.append((name, version, Path(target_dir), replace))
        extension_dir = Path(target_dir, name)
        extension_dir.mkdir(parents=True, exist_ok=True)
        extension_dir.joinpath("VERSION").write_text(version)
        return extension_dir


@dataclass
class FakeGit:
    branch: str = "main"
    ready_calls: int = 0
    staged: list[list[str]] = field(default_factory=list)
    commits: list[tuple[list[str], str, bool]] = field(default_factory=list)

    def ensure_ready(self) -> None:
        self.ready_calls += 1

    def current_branch(self) -> str:
        return self.branch

    def stage(self, paths) -> None:
        self.staged.append(list(paths))

    def commit(self, paths, message: str, quiet: bool = False) -> None:
        self.commits.append((list(paths), message, quiet))


@pytest.fixture
def fake_client() -> FakeIndexClient:
    client = FakeIndexClient()
    client.publish("foo", "8.1.0", "8.2.0")
    return client


@pytest.fixture
def fake_installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def controller(
    tmp_path: Path,
    fake_client: FakeIndexClient,
    fake_installer: FakeInstaller,
    fake_git: FakeGit,
) -> ExtensionLifecycleController:
    return ExtensionLifecycleController(
        root=tmp_path,
        client=fake_client,  # type: ignore[arg-type]
        installer=fake_installer,  # type: ignore[arg-type]
        store=MetadataStore(tmp_path),
        git=fake_git,  # type: ignore[arg-type]
    )
