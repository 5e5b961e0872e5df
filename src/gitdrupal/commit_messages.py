from __future__ import annotations

from gitdrupal.models import ExtensionRecord


def add_message(record: ExtensionRecord) -> str:
    return (
        f"Add '{record.name}' {record.type} {record.version} to {record.prefix}"
    )


def update_message(previous: ExtensionRecord, current: ExtensionRecord) -> str:
    return (
        f"Update '{current.name}' {current.type} from {previous.version}"
        f" to {current.version}"
    )


def move_message(previous: ExtensionRecord, current: ExtensionRecord) -> str:
    return (
        f"Move '{current.name}' {current.type} from {previous.prefix}"
        f" to {current.prefix}"
    )


def remove_message(record: ExtensionRecord) -> str:
    return (
        f"Remove '{record.name}' {record.type} {record.version} from {record.prefix}"
    )


def remove_store_message(file_name: str) -> str:
    return f"Remove empty {file_name}"


def success_message(operation: str, record: ExtensionRecord) -> str:
    return f"{operation} of '{record.name}' {record.type} successful."
