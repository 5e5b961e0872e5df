from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from gitdrupal.exceptions import VersionControlError

logger: logging.Logger = logging.getLogger(__name__)

RunCommand = Callable[..., subprocess.CompletedProcess[str]]


class GitManager(object):
    """Run the handful of git commands the extension lifecycle needs."""

    def __init__(
        self,
        cwd: Path | None = None,
        git_binary: str = "git",
        run_command: RunCommand = subprocess.run,
    ) -> None:
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.git_binary = git_binary
        self.run_command = run_command

    def _git(self, *args: str) -> str:
        cmd = [self.git_binary, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            process = self.run_command(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                check=False,
                text=True,
            )
        except FileNotFoundError as exc:
            raise VersionControlError(f"git executable not found: {exc}") from exc

        if process.returncode != 0:
            detail = f"{process.stderr}".strip() or f"{process.stdout}".strip()
            raise VersionControlError(
                f"git {args[0]} failed ({process.returncode}): {detail}"
            )
        return f"{process.stdout}".strip()

    def toplevel(self) -> Path:
        return Path(self._git("rev-parse", "--show-toplevel"))

    def is_clean(self) -> bool:
        return self._git("status", "--porcelain") == ""

    def current_branch(self) -> str:
        try:
            return self._git("symbolic-ref", "--quiet", "--short", "HEAD")
        except VersionControlError as exc:
            raise VersionControlError(
                "HEAD is detached, check out a branch first"
            ) from exc

    def ensure_ready(self) -> None:
        """Require a clean, non-detached tree and the top-level directory as cwd."""
        if self.toplevel().resolve() != self.cwd.resolve():
            raise VersionControlError(
                "Must be run from the top-level directory of the working tree"
            )
        self.current_branch()
        if not self.is_clean():
            raise VersionControlError(
                "Working tree has local changes, commit or stash them first"
            )

    def stage(self, paths: Iterable[str]) -> None:
        # -A records deletions of paths that no longer exist on disk
        self._git("add", "-A", "--", *paths)

    def commit(self, paths: Iterable[str], message: str, quiet: bool = False) -> None:
        args = ["commit", "-m", message]
        if quiet:
            args.append("--quiet")
        output = self._git(*args, "--", *paths)
        if output and not quiet:
            logger.info(output)
