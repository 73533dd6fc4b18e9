"""Text-format parsing, type checks and field lookups for message comparison."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from google.protobuf import text_format
from google.protobuf.descriptor import Descriptor, FieldDescriptor
from google.protobuf.message import Message

_FIELD_SUBSCRIPT_RE = re.compile(r"([^.()\[\]]+)\[(\d+)\]")
_FIELD_RE = re.compile(r"([^.()\[\]]+)")
_EXTENSION_RE = re.compile(r"\(([^)]+)\)")


class ProtoParseError(ValueError):
    """Raised when text cannot be parsed as a message of the requested type."""

    def __init__(self, text: str, type_name: str, error_text: str) -> None:
        super().__init__(f'Failed to parse "{text}" as a {type_name}:\n{error_text}')
        self.text = text
        self.type_name = type_name
        self.error_text = error_text


@dataclass(frozen=True)
class FieldPathElement:
    """One step of a field path: a field and, optionally, an element index."""

    field: FieldDescriptor
    index: Optional[int] = None


def parse_partial_from_text(text: str, message_type: type[Message]) -> Message:
    """Parse text format into a new message of message_type.

    Required fields may be missing; the result is then not fully initialized.
    Raises ProtoParseError when the text does not parse.
    """
    message = message_type()
    try:
        text_format.Parse(text, message)
    except text_format.ParseError as error:
        raise ProtoParseError(
            text, message.DESCRIPTOR.full_name, f"{error}\n"
        ) from error
    return message


def proto_comparable(first: Message, second: Message) -> bool:
    """Whether the two messages are of the same type and can be compared."""
    first_descriptor = first.DESCRIPTOR
    second_descriptor = second.DESCRIPTOR
    return (
        first_descriptor is second_descriptor
        or first_descriptor.full_name == second_descriptor.full_name
    )


def describe_types(expected: Message, actual: Message) -> str:
    """Describe the expected and the actual message types."""
    return (
        f"whose type should be {expected.DESCRIPTOR.full_name} "
        f"but actually is {actual.DESCRIPTOR.full_name}"
    )


def find_fields(descriptor: Descriptor, names: Iterable[str]) -> list[FieldDescriptor]:
    """Look up fields by fully qualified name in the pool of descriptor.

    Raises ValueError naming every field that could not be found.
    """
    pool = descriptor.file.pool
    found: list[FieldDescriptor] = []
    missing: list[str] = []
    for name in names:
        try:
            found.append(pool.FindFieldByName(name))
        except KeyError:
            missing.append(name)
    if missing:
        raise ValueError(
            f"Could not find fields for proto {descriptor.full_name} "
            f"with fully qualified names: {','.join(missing)}"
        )
    return found


def _find_extension(descriptor: Descriptor, name: str) -> FieldDescriptor:
    try:
        return descriptor.file.pool.FindExtensionByName(name)
    except KeyError:
        raise ValueError(f"No such extension '{name}'") from None


def parse_field_path(field_path: str, descriptor: Descriptor) -> list[FieldPathElement]:
    """Split a relative field path into its elements.

    The path is a dot-separated list of field names, indexed field names such
    as "items[2]", and extension names in parentheses. Raises ValueError when
    the path is malformed or names fields that do not exist.
    """
    elements: list[FieldPathElement] = []
    pos = 0
    while pos < len(field_path):
        if pos > 0:
            if field_path[pos] != ".":
                raise ValueError(
                    f"Cannot parse field path '{field_path}' at offset {pos}: "
                    "expected '.'"
                )
            pos += 1
            if pos == len(field_path):
                break
        subscript = _FIELD_SUBSCRIPT_RE.match(field_path, pos)
        plain = None if subscript else _FIELD_RE.match(field_path, pos)
        named = subscript or plain
        if named is not None:
            name = named.group(1)
            index = int(subscript.group(2)) if subscript else None
            if not elements:
                field = descriptor.fields_by_name.get(name)
                if field is None:
                    raise ValueError(
                        f"No such field '{name}' in message '{descriptor.full_name}'"
                    )
            else:
                parent = elements[-1].field
                parent_type = parent.message_type
                field = parent_type.fields_by_name.get(name) if parent_type else None
                if field is None:
                    raise ValueError(
                        f"No such field '{name}' in '{parent.full_name}'"
                    )
            elements.append(FieldPathElement(field, index))
            pos = named.end()
            continue
        extension = _EXTENSION_RE.match(field_path, pos)
        if extension is None:
            raise ValueError(
                f"Cannot parse field path '{field_path}' at offset {pos}: "
                "expected field or extension"
            )
        name = extension.group(1)
        field = _find_extension(descriptor, name)
        if not elements:
            if not _extends(field, descriptor):
                raise ValueError(
                    f"Extension '{name}' does not extend message "
                    f"'{descriptor.full_name}'"
                )
        else:
            parent = elements[-1].field
            if parent.message_type is None or not _extends(field, parent.message_type):
                raise ValueError(
                    f"Extension '{name}' does not extend '{parent.full_name}'"
                )
        elements.append(FieldPathElement(field))
        pos = extension.end()

    if not elements:
        raise ValueError(f"Empty field path '{field_path}'")
    if elements[-1].index is not None:
        raise ValueError(
            "Terminally ignoring fields by index is currently not supported "
            f"('{field_path}')"
        )
    return elements


def _extends(extension: FieldDescriptor, descriptor: Any) -> bool:
    containing = extension.containing_type
    return containing is not None and containing.full_name == descriptor.full_name


def path_is_ignored(
    ignored_path: Sequence[FieldPathElement],
    field: FieldDescriptor,
    parent_path: Sequence[FieldPathElement],
) -> bool:
    """Whether field, reached through parent_path, is covered by ignored_path.

    An element of ignored_path with an index only covers the element of a
    repeated field at that index; without one it covers every element.
    """
    if len(parent_path) + 1 != len(ignored_path):
        return False
    for current, ignored in zip(parent_path, ignored_path):
        if current.field.full_name != ignored.field.full_name:
            return False
        if ignored.index is not None and ignored.index != current.index:
            return False
    return field.full_name == ignored_path[-1].field.full_name