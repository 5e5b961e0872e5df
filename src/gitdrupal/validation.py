from __future__ import annotations

import re
from pathlib import PurePosixPath

from gitdrupal.exceptions import ValidationError
from gitdrupal.models import CommitOptions, ExtensionType

NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*[a-z0-9]$")
# supported core majors are 3 through 9, e.g. "8.1.0", "7.x-1.2", "3.x"
VERSION_PATTERN = re.compile(r"^[3-9]\.(\d+|x)")

_TYPE_BY_DIRECTORY = {
    "modules": ExtensionType.MODULE,
    "module": ExtensionType.MODULE,
    "themes": ExtensionType.THEME,
    "theme": ExtensionType.THEME,
}


def is_valid_name(name: str) -> bool:
    return bool(NAME_PATTERN.match(name or ""))


def is_valid_version(version: str) -> bool:
    return bool(VERSION_PATTERN.match(version or ""))


def validate_name(name: str) -> str:
    if not is_valid_name(name):
        raise ValidationError(f"Invalid extension name: '{name}'")
    return name


def validate_version(version: str) -> str:
    if not is_valid_version(version):
        raise ValidationError(f"Invalid extension version: '{version}'")
    return version


def validate_prefix(prefix: str) -> str:
    if not prefix:
        raise ValidationError("A prefix is required for this operation")
    path = PurePosixPath(prefix)
    if path.is_absolute() or ".." in path.parts:
        raise ValidationError(
            f"Prefix must be relative to the repository root: '{prefix}'"
        )
    return prefix


def validate_commit_options(options: CommitOptions) -> None:
    """Reject flag pairings that disagree on whether a commit happens."""
    if options.no_index and options.no_commit:
        raise ValidationError("Options --no-index and --no-commit are exclusive")
    if options.no_index and options.message:
        raise ValidationError("Options --no-index and --message are exclusive")
    if options.message and options.no_commit:
        raise ValidationError("Options --message and --no-commit are exclusive")


def infer_extension_type(prefix: str) -> ExtensionType:
    """Guess the extension type from the deepest typed directory in *prefix*."""
    for part in reversed(PurePosixPath(prefix).parts):
        extension_type = _TYPE_BY_DIRECTORY.get(part.lower())
        if extension_type is not None:
            return extension_type
    return ExtensionType.EXTENSION
