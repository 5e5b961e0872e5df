from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath


class ExtensionType(str, Enum):
    MODULE = "module"
    THEME = "theme"
    EXTENSION = "extension"

    def __str__(self) -> str:
        return self.value


def normalize_prefix(prefix: str) -> str:
    """Return *prefix* as a POSIX path without trailing separator."""
    cleaned = str(prefix).strip().replace("\\", "/").rstrip("/")
    if not cleaned:
        return ""
    # collapses "./" segments and repeated separators
    normalized = str(PurePosixPath(cleaned))
    return "" if normalized == "." else normalized


@dataclass(frozen=True)
class ExtensionRecord:
    name: str
    version: str
    type: ExtensionType
    branch: str
    prefix: str

    @property
    def path(self) -> str:
        return f"{self.prefix}/{self.name}" if self.prefix else self.name

    def as_fields(self) -> dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "type": str(self.type),
            "branch": self.branch,
            "prefix": self.prefix,
        }


@dataclass(frozen=True)
class CommitOptions:
    message: str = ""
    quiet: bool = False
    no_index: bool = False
    no_commit: bool = False


@dataclass(frozen=True)
class AddRequest:
    name: str
    version: str
    prefix: str
    options: CommitOptions = field(default_factory=CommitOptions)


@dataclass(frozen=True)
class UpdateRequest:
    name: str
    version: str
    options: CommitOptions = field(default_factory=CommitOptions)


@dataclass(frozen=True)
class MoveRequest:
    name: str
    prefix: str
    options: CommitOptions = field(default_factory=CommitOptions)


@dataclass(frozen=True)
class RemoveRequest:
    name: str
    options: CommitOptions = field(default_factory=CommitOptions)
