#! /bin/env python3
from __future__ import annotations

import dataclasses
import logging
import shutil
from pathlib import Path
from typing import Callable

import typer

from gitdrupal import commit_messages
from gitdrupal.api_client import ProjectIndexClient
from gitdrupal.exceptions import GitDrupalError, LocalOperationError, StateConflictError
from gitdrupal.git_manager import GitManager
from gitdrupal.install_engine import ArchiveInstaller
from gitdrupal.metadata_store import MetadataStore
from gitdrupal.models import (
    AddRequest,
    CommitOptions,
    ExtensionRecord,
    MoveRequest,
    RemoveRequest,
    UpdateRequest,
    normalize_prefix,
)
from gitdrupal.validation import (
    infer_extension_type,
    validate_commit_options,
    validate_name,
    validate_prefix,
    validate_version,
)

app: typer.Typer = typer.Typer(
    help="Vendor Drupal modules and themes into a git working tree.",
    no_args_is_help=True,
)
logger: logging.Logger = logging.getLogger(__name__)


class ExtensionLifecycleController(object):
    """Add, update, move and remove vendored extensions.

    Every operation checks its preconditions before touching the network or
    the filesystem, then installs or relocates files, rewrites the metadata
    record and finally stages and commits both as one change. Nothing is
    rolled back if a later step fails.
    """

    root: Path
    client: ProjectIndexClient
    installer: ArchiveInstaller
    store: MetadataStore
    git: GitManager

    def __init__(
        self,
        root: Path | None = None,
        client: ProjectIndexClient | None = None,
        installer: ArchiveInstaller | None = None,
        store: MetadataStore | None = None,
        git: GitManager | None = None,
    ) -> None:
        self.root = Path(root) if root is not None else Path.cwd()
        self.client = client if client is not None else ProjectIndexClient()
        self.installer = (
            installer if installer is not None else ArchiveInstaller(self.client)
        )
        self.store = store if store is not None else MetadataStore(self.root)
        self.git = git if git is not None else GitManager(cwd=self.root)

    @property
    def store_path(self) -> str:
        return self.store.path.name

    def _load_existing(self, name: str) -> ExtensionRecord:
        record = self.store.get(name)
        if record is None:
            raise StateConflictError(f"Extension '{name}' does not exist")
        return record

    def _record_changes(
        self, paths: list[str], default_message: str, options: CommitOptions
    ) -> None:
        if options.no_index:
            logger.info("Leaving changes unstaged (--no-index)")
            return

        self.git.stage(paths)
        if options.no_commit:
            logger.info("Changes staged, not committing (--no-commit)")
            return

        self.git.commit(
            paths, options.message or default_message, quiet=options.quiet
        )

    def add(self, request: AddRequest) -> ExtensionRecord:
        validate_commit_options(request.options)
        name = validate_name(request.name)
        version = validate_version(request.version)
        prefix = validate_prefix(normalize_prefix(request.prefix))

        if self.store.exists(name, prefix):
            raise StateConflictError(f"Extension '{name}' already exists")

        self.git.ensure_ready()
        self.client.verify(name, version)
        self.installer.install(name, version, self.root.joinpath(prefix))

        record = ExtensionRecord(
            name=name,
            version=version,
            type=infer_extension_type(prefix),
            branch=self.git.current_branch(),
            prefix=prefix,
        )
        self.store.put(record)
        logger.info(f"Added {record.name} {record.version} in {record.path}")

        self._record_changes(
            [record.path, self.store_path],
            commit_messages.add_message(record),
            request.options,
        )
        return record

    def update(self, request: UpdateRequest) -> ExtensionRecord:
        validate_commit_options(request.options)
        name = validate_name(request.name)
        version = validate_version(request.version)

        previous = self._load_existing(name)
        if previous.version == version:
            raise StateConflictError(
                f"Already have this version of '{name}': {version}"
            )

        self.git.ensure_ready()
        self.client.verify(name, version)
        self.installer.install(
            name, version, self.root.joinpath(previous.prefix), replace=True
        )

        current = dataclasses.replace(
            previous, version=version, branch=self.git.current_branch()
        )
        self.store.set_fields(name, version=current.version, branch=current.branch)
        logger.info(f"Updated {name} from {previous.version} to {current.version}")

        self._record_changes(
            [current.path, self.store_path],
            commit_messages.update_message(previous, current),
            request.options,
        )
        return current

    def move(self, request: MoveRequest) -> ExtensionRecord:
        validate_commit_options(request.options)
        name = validate_name(request.name)
        prefix = validate_prefix(normalize_prefix(request.prefix))

        previous = self._load_existing(name)
        if previous.prefix == prefix:
            raise StateConflictError(
                f"Extension '{name}' is already within this path: {prefix}/"
            )

        self.git.ensure_ready()
        current = dataclasses.replace(
            previous, prefix=prefix, branch=self.git.current_branch()
        )
        source = self.root.joinpath(previous.path)
        destination = self.root.joinpath(current.path)
        if destination.exists():
            raise LocalOperationError(f"Destination {current.path} already exists")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(source, destination)
        except OSError as exc:
            raise LocalOperationError(
                f"Moving {previous.path} to {current.path} failed: {exc}"
            ) from exc
        if source.exists():
            raise LocalOperationError(
                f"Moving {previous.path} to {current.path} left files behind"
            )

        self.store.set_fields(name, prefix=current.prefix, branch=current.branch)
        logger.info(f"Moved {name} from {previous.path} to {current.path}")

        self._record_changes(
            [previous.path, current.path, self.store_path],
            commit_messages.move_message(previous, current),
            request.options,
        )
        return current

    def remove(self, request: RemoveRequest) -> ExtensionRecord:
        validate_commit_options(request.options)
        name = validate_name(request.name)

        record = self._load_existing(name)
        self.git.ensure_ready()

        try:
            shutil.rmtree(self.root.joinpath(record.path))
        except OSError as exc:
            raise LocalOperationError(
                f"Deleting {record.path} failed: {exc}"
            ) from exc

        if not request.options.no_index:
            self.store.remove(name)
        logger.info(f"Removed {name} from {record.path}")

        self._record_changes(
            [record.path, self.store_path],
            commit_messages.remove_message(record),
            request.options,
        )

        if self.store.path.exists() and self.store.is_empty():
            # an empty metadata file is meaningless, its deletion is always committed
            self.store.delete_file()
            self.git.stage([self.store_path])
            self.git.commit(
                [self.store_path],
                commit_messages.remove_store_message(self.store_path),
                quiet=request.options.quiet,
            )
        return record

    def list_records(self) -> list[ExtensionRecord]:
        return self.store.records()

    def show(self, name: str) -> ExtensionRecord:
        return self._load_existing(validate_name(name))


def build_controller() -> ExtensionLifecycleController:
    return ExtensionLifecycleController(root=Path.cwd())


def _configure_logging(log_level: str, quiet: bool = False) -> None:
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Invalid log level: {log_level!r}")
    if quiet:
        level = max(level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(relativeCreated)d [%(levelname)s] %(message)s",
    )


def _run(
    operation: str,
    action: Callable[[ExtensionLifecycleController], ExtensionRecord],
) -> None:
    try:
        record = action(build_controller())
    except GitDrupalError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(commit_messages.success_message(operation, record))


def _ignored_prefix(prefix: str, command: str) -> None:
    if prefix:
        logger.warning(
            f"--prefix is ignored by '{command}', the recorded prefix is used"
        )


_MESSAGE_HELP = "Commit message to use instead of the generated one."
_QUIET_HELP = "Suppress informational output."
_NO_INDEX_HELP = "Do not stage or commit the changes."
_NO_COMMIT_HELP = "Stage the changes but do not commit them."
_LOG_LEVEL_HELP = "Logging level (debug, info, warning, error)."


@app.command()
def add(
    name: str = typer.Argument(..., help="Machine name of the extension."),
    version: str = typer.Argument(..., help="Release to install, e.g. 8.x-1.0."),
    prefix: str = typer.Option(..., "--prefix", "-p", help="Directory to install into."),
    message: str = typer.Option("", "--message", "-m", help=_MESSAGE_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=_QUIET_HELP),
    no_index: bool = typer.Option(False, "--no-index", help=_NO_INDEX_HELP),
    no_commit: bool = typer.Option(False, "--no-commit", help=_NO_COMMIT_HELP),
    log_level: str = typer.Option("info", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """Download an extension release and commit it together with its metadata."""
    _configure_logging(log_level, quiet)
    options = CommitOptions(message, quiet, no_index, no_commit)
    _run("Addition", lambda c: c.add(AddRequest(name, version, prefix, options)))


@app.command()
def update(
    name: str = typer.Argument(..., help="Machine name of the extension."),
    version: str = typer.Argument(..., help="Release to switch to."),
    prefix: str = typer.Option("", "--prefix", "-p", help="Ignored."),
    message: str = typer.Option("", "--message", "-m", help=_MESSAGE_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=_QUIET_HELP),
    no_index: bool = typer.Option(False, "--no-index", help=_NO_INDEX_HELP),
    no_commit: bool = typer.Option(False, "--no-commit", help=_NO_COMMIT_HELP),
    log_level: str = typer.Option("info", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """Replace a tracked extension with another release."""
    _configure_logging(log_level, quiet)
    _ignored_prefix(prefix, "update")
    options = CommitOptions(message, quiet, no_index, no_commit)
    _run("Update", lambda c: c.update(UpdateRequest(name, version, options)))


@app.command()
def move(
    name: str = typer.Argument(..., help="Machine name of the extension."),
    prefix: str = typer.Option(..., "--prefix", "-p", help="Directory to move into."),
    message: str = typer.Option("", "--message", "-m", help=_MESSAGE_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=_QUIET_HELP),
    no_index: bool = typer.Option(False, "--no-index", help=_NO_INDEX_HELP),
    no_commit: bool = typer.Option(False, "--no-commit", help=_NO_COMMIT_HELP),
    log_level: str = typer.Option("info", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """Relocate a tracked extension to another directory."""
    _configure_logging(log_level, quiet)
    options = CommitOptions(message, quiet, no_index, no_commit)
    _run("Move", lambda c: c.move(MoveRequest(name, prefix, options)))


@app.command()
def remove(
    name: str = typer.Argument(..., help="Machine name of the extension."),
    prefix: str = typer.Option("", "--prefix", "-p", help="Ignored."),
    message: str = typer.Option("", "--message", "-m", help=_MESSAGE_HELP),
    quiet: bool = typer.Option(False, "--quiet", "-q", help=_QUIET_HELP),
    no_index: bool = typer.Option(False, "--no-index", help=_NO_INDEX_HELP),
    no_commit: bool = typer.Option(False, "--no-commit", help=_NO_COMMIT_HELP),
    log_level: str = typer.Option("info", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """Delete a tracked extension and its metadata."""
    _configure_logging(log_level, quiet)
    _ignored_prefix(prefix, "remove")
    options = CommitOptions(message, quiet, no_index, no_commit)
    _run("Removal", lambda c: c.remove(RemoveRequest(name, options)))


@app.command("list")
def list_cmd(
    log_level: str = typer.Option("warning", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """List all tracked extensions."""
    _configure_logging(log_level)
    try:
        records = build_controller().list_records()
    except GitDrupalError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for record in records:
        typer.echo(
            f"{record.name}\t{record.version}\t{record.type}\t{record.prefix}\t{record.branch}"
        )


@app.command()
def show(
    name: str = typer.Argument(..., help="Machine name of the extension."),
    log_level: str = typer.Option("warning", "--log-level", help=_LOG_LEVEL_HELP),
) -> None:
    """Print the recorded metadata of one extension."""
    _configure_logging(log_level)
    try:
        record = build_controller().show(name)
    except GitDrupalError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    for field, value in record.as_fields().items():
        typer.echo(f"extension.{record.name}.{field}={value}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
