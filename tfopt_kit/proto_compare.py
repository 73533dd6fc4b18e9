"""Field-by-field comparison of protocol buffer messages with a difference report."""

from __future__ import annotations

import math
import struct
import sys
from typing import Any, Optional, Union

from google.protobuf import text_encoding, text_format
from google.protobuf.descriptor import Descriptor, FieldDescriptor
from google.protobuf.message import Message

from tfopt_kit.proto_options import (
    FieldComparison,
    FloatComparison,
    ProtoComparison,
    RepeatedFieldComparison,
    Scope,
)
from tfopt_kit.proto_text import (
    FieldPathElement,
    describe_types,
    find_fields,
    parse_field_path,
    parse_partial_from_text,
    path_is_ignored,
    proto_comparable,
)

_DOUBLE_STD_ERROR = 32 * sys.float_info.epsilon
_FLOAT_STD_ERROR = 32 * 2.0**-23

# A step of the path to a value: the field element and the text that follows
# its name when printed ("[3]" for an element of a repeated field).
_Step = tuple[FieldPathElement, str]


def _is_repeated(field: FieldDescriptor) -> bool:
    return field.label == FieldDescriptor.LABEL_REPEATED


def _is_map(field: FieldDescriptor) -> bool:
    return (
        _is_repeated(field)
        and field.message_type is not None
        and field.message_type.GetOptions().map_entry
    )


def _get(message: Message, field: FieldDescriptor) -> Any:
    if field.is_extension:
        return message.Extensions[field]
    return getattr(message, field.name)


def _present(message: Message) -> dict[str, FieldDescriptor]:
    return {field.full_name: field for field, _ in message.ListFields()}


def _step_text(step: _Step) -> str:
    element, suffix = step
    field = element.field
    name = f"({field.full_name})" if field.is_extension else field.name
    return name + suffix


def _display(steps: list[_Step]) -> str:
    return ".".join(_step_text(step) for step in steps)


def _round_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def _format_float(value: float, single: bool) -> str:
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    short, long = (6, 9) if single else (15, 17)
    text = f"{value:.{short}g}"
    if single:
        exact = _round_float32(float(text)) == _round_float32(value)
    else:
        exact = float(text) == value
    return text if exact else f"{value:.{long}g}"


def _format_value(field: FieldDescriptor, value: Any) -> str:
    cpp_type = field.cpp_type
    if cpp_type == FieldDescriptor.CPPTYPE_MESSAGE:
        return "{ " + text_format.MessageToString(value, as_one_line=True) + " }"
    if cpp_type == FieldDescriptor.CPPTYPE_STRING:
        raw = value if isinstance(value, bytes) else value.encode("utf-8")
        return '"' + text_encoding.CEscape(raw, False) + '"'
    if cpp_type == FieldDescriptor.CPPTYPE_BOOL:
        return "true" if value else "false"
    if cpp_type == FieldDescriptor.CPPTYPE_ENUM:
        enum_value = field.enum_type.values_by_number.get(value)
        return enum_value.name if enum_value is not None else str(value)
    if cpp_type == FieldDescriptor.CPPTYPE_DOUBLE:
        return _format_float(value, single=False)
    if cpp_type == FieldDescriptor.CPPTYPE_FLOAT:
        return _format_float(value, single=True)
    return str(value)


def _format_entry(field: FieldDescriptor, key: Any, value: Any) -> str:
    entry_type = field.message_type
    key_text = _format_value(entry_type.fields_by_name["key"], key)
    value_text = _format_value(entry_type.fields_by_name["value"], value)
    return f"{{ key: {key_text} value: {value_text} }}"


class MessageDiffer:
    """Compares messages of one type as a ProtoComparison prescribes.

    Comparison is not symmetric: in partial scope only the fields present in
    the expected message are considered.
    """

    def __init__(self, comparison: ProtoComparison, descriptor: Descriptor) -> None:
        self._comparison = comparison
        self._ignored_fields = frozenset(
            field.full_name for field in find_fields(descriptor, comparison.ignore_fields)
        )
        self._ignored_paths = [
            parse_field_path(path, descriptor) for path in comparison.ignore_field_paths
        ]

    def compare(self, expected: Message, actual: Message) -> bool:
        """Whether actual matches expected."""
        if not proto_comparable(expected, actual):
            return False
        return self._compare_message(expected, actual, [], None)

    def differences(self, expected: Message, actual: Message) -> list[str]:
        """Lines describing how actual differs from expected, in field order."""
        if not proto_comparable(expected, actual):
            raise ValueError(describe_types(expected, actual))
        report: list[str] = []
        self._compare_message(expected, actual, [], report)
        return report

    # Comparison of messages and fields.

    def _is_ignored(self, field: FieldDescriptor, parent: list[_Step]) -> bool:
        if field.full_name in self._ignored_fields:
            return True
        parent_path = [element for element, _ in parent]
        return any(
            path_is_ignored(ignored, field, parent_path) for ignored in self._ignored_paths
        )

    def _compare_message(
        self,
        expected: Message,
        actual: Message,
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        equivalent = self._comparison.field_comparison is FieldComparison.EQUIVALENT
        partial = self._comparison.scope is Scope.PARTIAL
        expected_present = _present(expected)
        actual_present = _present(actual)
        if partial:
            candidates = dict(expected_present)
        else:
            candidates = {**expected_present, **actual_present}
            if equivalent:
                for field in expected.DESCRIPTOR.fields:
                    candidates.setdefault(field.full_name, field)

        equal = True
        for field in sorted(candidates.values(), key=lambda item: item.number):
            if self._is_ignored(field, parent):
                if report is not None:
                    step = (FieldPathElement(field), "")
                    report.append(f"ignored: {_display([*parent, step])}")
                continue
            if equivalent and (partial or not field.is_extension):
                in_expected = in_actual = True
            else:
                in_expected = field.full_name in expected_present
                in_actual = field.full_name in actual_present

            if in_expected and in_actual:
                same = self._compare_field(
                    field, _get(expected, field), _get(actual, field), parent, report
                )
            elif in_expected:
                self._report_side("deleted", field, _get(expected, field), parent, report)
                same = False
            else:
                self._report_side("added", field, _get(actual, field), parent, report)
                same = False
            if not same:
                equal = False
                if report is None:
                    return False
        return equal

    def _compare_field(
        self,
        field: FieldDescriptor,
        expected: Any,
        actual: Any,
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        if _is_map(field):
            return self._compare_map(field, expected, actual, parent, report)
        if _is_repeated(field):
            if self._comparison.repeated_field_comparison is RepeatedFieldComparison.AS_SET:
                return self._compare_as_set(field, list(expected), list(actual), parent, report)
            return self._compare_as_list(field, list(expected), list(actual), parent, report)
        steps = [*parent, (FieldPathElement(field), "")]
        return self._compare_values(field, expected, actual, steps, report)

    def _compare_values(
        self,
        field: FieldDescriptor,
        expected: Any,
        actual: Any,
        steps: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        if field.cpp_type == FieldDescriptor.CPPTYPE_MESSAGE:
            return self._compare_message(expected, actual, steps, report)
        if self._scalars_equal(field, expected, actual):
            return True
        if report is not None:
            report.append(
                f"modified: {_display(steps)}: "
                f"{_format_value(field, expected)} -> {_format_value(field, actual)}"
            )
        return False

    def _compare_as_list(
        self,
        field: FieldDescriptor,
        expected: list[Any],
        actual: list[Any],
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        equal = True
        for index in range(max(len(expected), len(actual))):
            steps = [*parent, (FieldPathElement(field, index), f"[{index}]")]
            if index < len(expected) and index < len(actual):
                same = self._compare_values(
                    field, expected[index], actual[index], steps, report
                )
            else:
                same = False
                if report is not None:
                    kind, value = (
                        ("deleted", expected[index])
                        if index < len(expected)
                        else ("added", actual[index])
                    )
                    report.append(
                        f"{kind}: {_display(steps)}: {_format_value(field, value)}"
                    )
            if not same:
                equal = False
                if report is None:
                    return False
        return equal

    def _compare_as_set(
        self,
        field: FieldDescriptor,
        expected: list[Any],
        actual: list[Any],
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        def steps_at(index: int) -> list[_Step]:
            return [*parent, (FieldPathElement(field, index), f"[{index}]")]

        matches: dict[int, int] = {}
        used: set[int] = set()
        for i, item in enumerate(expected):
            for j, other in enumerate(actual):
                if j not in used and self._compare_values(
                    field, item, other, steps_at(i), None
                ):
                    matches[i] = j
                    used.add(j)
                    break

        equal = True
        for i, item in enumerate(expected):
            if i not in matches:
                equal = False
                if report is None:
                    return False
                report.append(
                    f"deleted: {_display(steps_at(i))}: {_format_value(field, item)}"
                )
            elif matches[i] != i and report is not None:
                report.append(
                    f"moved: {_display(steps_at(i))} -> "
                    f"{_display(steps_at(matches[i]))} : {_format_value(field, item)}"
                )
        subset = self._comparison.scope is Scope.PARTIAL
        for j, other in enumerate(actual):
            if j in used or subset:
                continue
            equal = False
            if report is None:
                return False
            report.append(f"added: {_display(steps_at(j))}: {_format_value(field, other)}")
        return equal

    def _compare_map(
        self,
        field: FieldDescriptor,
        expected: Any,
        actual: Any,
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> bool:
        entry_type = field.message_type
        key_field = entry_type.fields_by_name["key"]
        value_field = entry_type.fields_by_name["value"]
        subset = self._comparison.scope is Scope.PARTIAL
        equal = True
        for key in sorted(set(expected) | set(actual)):
            entry_step = (FieldPathElement(field), f"[{_format_value(key_field, key)}]")
            entry_steps = [*parent, entry_step]
            if key in expected and key in actual:
                if self._is_ignored(value_field, entry_steps):
                    continue
                same = self._compare_values(
                    value_field,
                    expected[key],
                    actual[key],
                    [*entry_steps, (FieldPathElement(value_field), "")],
                    report,
                )
            elif key in expected:
                same = False
                if report is not None:
                    report.append(
                        f"deleted: {_display(entry_steps)}: "
                        f"{_format_entry(field, key, expected[key])}"
                    )
            else:
                if subset:
                    continue
                same = False
                if report is not None:
                    report.append(
                        f"added: {_display(entry_steps)}: "
                        f"{_format_entry(field, key, actual[key])}"
                    )
            if not same:
                equal = False
                if report is None:
                    return False
        return equal

    def _report_side(
        self,
        kind: str,
        field: FieldDescriptor,
        value: Any,
        parent: list[_Step],
        report: Optional[list[str]],
    ) -> None:
        if report is None:
            return
        if _is_map(field):
            key_field = field.message_type.fields_by_name["key"]
            for key in sorted(value):
                step = (FieldPathElement(field), f"[{_format_value(key_field, key)}]")
                report.append(
                    f"{kind}: {_display([*parent, step])}: "
                    f"{_format_entry(field, key, value[key])}"
                )
        elif _is_repeated(field):
            for index, item in enumerate(value):
                step = (FieldPathElement(field, index), f"[{index}]")
                report.append(
                    f"{kind}: {_display([*parent, step])}: {_format_value(field, item)}"
                )
        else:
            step = (FieldPathElement(field), "")
            report.append(
                f"{kind}: {_display([*parent, step])}: {_format_value(field, value)}"
            )

    # Scalar comparison.

    def _scalars_equal(self, field: FieldDescriptor, expected: Any, actual: Any) -> bool:
        if field.cpp_type == FieldDescriptor.CPPTYPE_DOUBLE:
            return self._floats_equal(expected, actual, single=False)
        if field.cpp_type == FieldDescriptor.CPPTYPE_FLOAT:
            return self._floats_equal(expected, actual, single=True)
        return expected == actual

    def _floats_equal(self, first: float, second: float, single: bool) -> bool:
        if first == second:
            return True
        comparison = self._comparison
        if comparison.treating_nans_as_equal and math.isnan(first) and math.isnan(second):
            return True
        if comparison.float_comparison is FloatComparison.EXACT:
            return False
        if not (math.isfinite(first) and math.isfinite(second)):
            return False
        if comparison.has_custom_margin or comparison.has_custom_fraction:
            margin = comparison.float_margin
            fraction = comparison.float_fraction
        else:
            margin = fraction = _FLOAT_STD_ERROR if single else _DOUBLE_STD_ERROR
        difference = abs(first - second)
        return difference <= max(margin, fraction * max(abs(first), abs(second)))


def _expected_message(actual: Message, expected: Union[Message, str]) -> Message:
    if isinstance(expected, str):
        return parse_partial_from_text(expected, type(actual))
    return expected


def proto_compare(
    comparison: ProtoComparison, actual: Message, expected: Union[Message, str]
) -> bool:
    """Whether actual and expected are of one type and match under comparison.

    expected may be given in text format, parsed as the type of actual.
    """
    expected_message = _expected_message(actual, expected)
    if not proto_comparable(actual, expected_message):
        return False
    return MessageDiffer(comparison, actual.DESCRIPTOR).compare(expected_message, actual)


def describe_diff(
    comparison: ProtoComparison, actual: Message, expected: Union[Message, str]
) -> str:
    """Describe how actual differs from expected under comparison."""
    expected_message = _expected_message(actual, expected)
    differ = MessageDiffer(comparison, actual.DESCRIPTOR)
    lines = differ.differences(expected_message, actual)
    return "with the difference:\n" + "\n".join(lines)