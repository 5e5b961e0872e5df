"""Sidecar metadata file describing every vendored extension.

The file uses git-config syntax so ``git config -f .gitdrupal
extension.<name>.version`` reads the same values this module writes::

    [extension "foo"]
    	name = foo
    	version = 8.1.0
"""

from __future__ import annotations

import configparser
import os
import re
import tempfile
from pathlib import Path

from gitdrupal.exceptions import MetadataStoreError
from gitdrupal.internal_config import (
    METADATA_FIELDS,
    METADATA_FILE_NAME,
    METADATA_SECTION,
)
from gitdrupal.models import ExtensionRecord, ExtensionType

_SECTION_PATTERN = re.compile(rf'^{METADATA_SECTION}\s+"(?P<name>[^"]+)"$')


def _section_name(name: str) -> str:
    return f'{METADATA_SECTION} "{name}"'


class MetadataStore(object):
    """Keyed access to the extension records stored below the tree root."""

    root: Path
    path: Path

    def __init__(self, root: Path, file_name: str = METADATA_FILE_NAME) -> None:
        self.root = Path(root)
        self.path = self.root.joinpath(file_name)

    def _read(self) -> dict[str, dict[str, str]]:
        """Return every section of the file keyed by its raw header."""
        if not self.path.is_file():
            return {}

        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            # git indents keys with tabs, configparser would read them as continuations
            text = "\n".join(
                line.lstrip() for line in self.path.read_text("utf-8").splitlines()
            )
            parser.read_string(text, source=str(self.path))
        except (OSError, configparser.Error) as exc:
            raise MetadataStoreError(f"Cannot read {self.path}: {exc}") from exc

        return {section: dict(parser.items(section)) for section in parser.sections()}

    def _load(self) -> dict[str, dict[str, str]]:
        sections: dict[str, dict[str, str]] = {}
        for section, fields in self._read().items():
            match = _SECTION_PATTERN.match(section)
            if match is None:
                continue
            sections[match.group("name")] = fields
        return sections

    def _save(self, sections: dict[str, dict[str, str]]) -> None:
        lines: list[str] = []
        # sections written by other tools are carried over untouched
        for section, fields in self._read().items():
            if _SECTION_PATTERN.match(section):
                continue
            lines.append(f"[{section}]")
            lines.extend(f"\t{key} = {value}" for key, value in fields.items())
        for name, fields in sections.items():
            lines.append(f"[{_section_name(name)}]")
            for key in METADATA_FIELDS:
                if key in fields:
                    lines.append(f"\t{key} = {fields[key]}")
        content = "\n".join(lines) + "\n" if lines else ""

        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.root,
                prefix=f"{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as output:
                output.write(content)
                output.flush()
                os.fsync(output.fileno())
            os.replace(output.name, self.path)
        except OSError as exc:
            raise MetadataStoreError(f"Cannot write {self.path}: {exc}") from exc

    @staticmethod
    def _to_record(fields: dict[str, str]) -> ExtensionRecord:
        missing = [key for key in METADATA_FIELDS if key not in fields]
        if missing:
            raise MetadataStoreError(
                f"Record for '{fields.get('name', '?')}' lacks fields: {', '.join(missing)}"
            )
        try:
            extension_type = ExtensionType(fields["type"])
        except ValueError:
            extension_type = ExtensionType.EXTENSION
        return ExtensionRecord(
            name=fields["name"],
            version=fields["version"],
            type=extension_type,
            branch=fields["branch"],
            prefix=fields["prefix"],
        )

    def get(self, name: str) -> ExtensionRecord | None:
        fields = self._load().get(name)
        if fields is None:
            return None
        return self._to_record(fields)

    def get_value(self, key: str) -> str | None:
        """Look up a single ``extension.<name>.<field>`` key."""
        section, _, rest = key.partition(".")
        name, _, field = rest.rpartition(".")
        if section != METADATA_SECTION or not name or field not in METADATA_FIELDS:
            raise ValueError(f"Invalid metadata key: '{key}'")
        return self._load().get(name, {}).get(field)

    def has_record(self, name: str) -> bool:
        return name in self._load()

    def exists(self, name: str, prefix: str = "") -> bool:
        """Treat a record or an on-disk ``prefix/name`` directory as present."""
        if self.has_record(name):
            return True
        return bool(prefix) and self.root.joinpath(prefix, name).exists()

    def names(self) -> list[str]:
        return sorted(self._load())

    def records(self) -> list[ExtensionRecord]:
        sections = self._load()
        return [self._to_record(sections[name]) for name in sorted(sections)]

    def put(self, record: ExtensionRecord) -> None:
        sections = self._load()
        sections[record.name] = record.as_fields()
        self._save(sections)

    def set_fields(self, name: str, **fields: str) -> None:
        unknown = [key for key in fields if key not in METADATA_FIELDS]
        if unknown:
            raise ValueError(f"Unknown metadata fields: {', '.join(unknown)}")

        sections = self._load()
        if name not in sections:
            raise MetadataStoreError(f"No record for '{name}' in {self.path}")
        sections[name].update({key: str(value) for key, value in fields.items()})
        self._save(sections)

    def remove(self, name: str) -> None:
        sections = self._load()
        if sections.pop(name, None) is None:
            raise MetadataStoreError(f"No record for '{name}' in {self.path}")
        self._save(sections)

    def is_empty(self) -> bool:
        if not self.path.is_file():
            return True
        return self.path.stat().st_size == 0

    def delete_file(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise MetadataStoreError(f"Cannot delete {self.path}: {exc}") from exc
