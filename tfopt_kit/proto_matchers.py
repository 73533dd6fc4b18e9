"""Matchers that check protocol buffer messages against an expected message."""

from __future__ import annotations

import copy
from typing import Any, Optional, Union

from google.protobuf import text_format
from google.protobuf.message import Message

from tfopt_kit.proto_compare import describe_diff, proto_compare
from tfopt_kit.proto_options import FieldComparison, ProtoComparison
from tfopt_kit.proto_text import (
    ProtoParseError,
    describe_types,
    parse_partial_from_text,
    proto_comparable,
)

Expected = Union[Message, str]


def _clone(message: Message) -> Message:
    clone = type(message)()
    clone.CopyFrom(message)
    return clone


def _print_message(message: Message) -> str:
    return "<" + text_format.MessageToString(message, as_one_line=True) + ">"


def _initialization_errors(message: Message) -> str:
    return ", ".join(message.FindInitializationErrors())


class ProtoMatcher:
    """Matches a message that equals, or is equivalent to, an expected one.

    The expected value is either a message, which is copied, or a text-format
    string, which is parsed as the type of each message being matched.
    """

    allows_fraction_of_one = False

    def __init__(
        self,
        expected: Expected,
        comparison: Optional[ProtoComparison] = None,
        must_be_initialized: bool = False,
    ) -> None:
        self.comparison = (
            copy.deepcopy(comparison) if comparison is not None else ProtoComparison()
        )
        self.must_be_initialized = must_be_initialized
        if isinstance(expected, Message):
            if must_be_initialized and not expected.IsInitialized():
                raise ValueError(
                    "The protocol buffer given to *InitializedProto() must itself "
                    "be initialized, but the following required fields are "
                    f"missing: {_initialization_errors(expected)}."
                )
            self.expected: Expected = _clone(expected)
        elif isinstance(expected, str):
            self.expected = expected
        else:
            raise TypeError(
                f"expected must be a message or a text-format string, "
                f"not {type(expected).__name__}"
            )

    def _print_expected(self) -> str:
        if isinstance(self.expected, str):
            return f"<{self.expected}>"
        return f"{self.expected.DESCRIPTOR.full_name} {_print_message(self.expected)}"

    def _expected_for(self, actual: Message) -> tuple[Optional[Message], str]:
        if isinstance(self.expected, Message):
            return self.expected, ""
        try:
            return parse_partial_from_text(self.expected, type(actual)), ""
        except ProtoParseError as error:
            return None, (
                f"where {self._print_expected()} doesn't parse as a "
                f"{actual.DESCRIPTOR.full_name}:\n{error.error_text}"
            )

    def match_and_explain(self, actual: Optional[Message]) -> tuple[bool, str]:
        """Return whether actual matches, and an explanation of the result."""
        if actual is None:
            return False, ""
        if self.must_be_initialized and not actual.IsInitialized():
            return False, "which isn't fully initialized"
        expected, explanation = self._expected_for(actual)
        if expected is None:
            return False, explanation
        comparable = proto_comparable(actual, expected)
        match = comparable and proto_compare(self.comparison, actual, expected)
        if not comparable:
            return False, describe_types(expected, actual)
        if not match:
            return False, describe_diff(self.comparison, actual, expected)
        return True, ""

    def matches(self, actual: Optional[Message]) -> bool:
        """Whether actual matches."""
        return self.match_and_explain(actual)[0]

    def describe(self) -> str:
        """Describe what a matching message is."""
        initialized = "fully initialized and " if self.must_be_initialized else ""
        return (
            f"is {initialized}{self.comparison.describe_relation()}"
            f"{self._print_expected()}"
        )

    def describe_negation(self) -> str:
        """Describe what a non-matching message is."""
        initialized = "not fully initialized or " if self.must_be_initialized else ""
        return (
            f"is {initialized}not {self.comparison.describe_relation()}"
            f"{self._print_expected()}"
        )


class TupleProtoMatcher:
    """Matches a pair (actual, expected) of messages, for pointwise checks."""

    allows_fraction_of_one = True

    def __init__(self, comparison: Optional[ProtoComparison] = None) -> None:
        self.comparison = (
            copy.deepcopy(comparison) if comparison is not None else ProtoComparison()
        )

    def matches(self, actual: Message, expected: Expected) -> bool:
        """Whether actual matches expected, given as a message or in text format."""
        return proto_compare(self.comparison, actual, expected)

    def _is_equal(self) -> bool:
        return self.comparison.field_comparison is FieldComparison.EQUAL

    def describe(self) -> str:
        """Describe what a matching pair is."""
        return "are equal" if self._is_equal() else "are equivalent"

    def describe_negation(self) -> str:
        """Describe what a non-matching pair is."""
        return "are not equal" if self._is_equal() else "are not equivalent"


class IsInitializedProtoMatcher:
    """Matches a message whose required fields are all set."""

    def match_and_explain(self, actual: Optional[Message]) -> tuple[bool, str]:
        """Return whether actual is initialized, and an explanation."""
        if actual is None:
            return False, "which is null"
        if not actual.IsInitialized():
            return False, (
                "which is missing the following required fields: "
                + _initialization_errors(actual)
            )
        return True, ""

    def matches(self, actual: Optional[Message]) -> bool:
        """Whether actual is initialized."""
        return self.match_and_explain(actual)[0]

    def describe(self) -> str:
        return "is a fully initialized protocol buffer"

    def describe_negation(self) -> str:
        return "is not a fully initialized protocol buffer"


def _make(
    expected: Optional[Expected],
    message_type: Optional[type[Message]],
    field_comparison: FieldComparison,
    must_be_initialized: bool,
) -> Any:
    comparison = ProtoComparison(field_comparison=field_comparison)
    if expected is None:
        if must_be_initialized:
            raise TypeError("an expected message is required")
        return TupleProtoMatcher(comparison)
    if isinstance(expected, str) and message_type is not None:
        expected = parse_partial_from_text(expected, message_type)
    return ProtoMatcher(expected, comparison, must_be_initialized)


def equals_proto(
    expected: Optional[Expected] = None,
    message_type: Optional[type[Message]] = None,
) -> Union[ProtoMatcher, TupleProtoMatcher]:
    """A matcher for messages equal to expected.

    Without expected, returns a matcher for (actual, expected) pairs. With
    message_type, a text-format expected is parsed at once as that type.
    """
    return _make(expected, message_type, FieldComparison.EQUAL, False)


def equiv_to_proto(
    expected: Optional[Expected] = None,
    message_type: Optional[type[Message]] = None,
) -> Union[ProtoMatcher, TupleProtoMatcher]:
    """A matcher for messages equivalent to expected."""
    return _make(expected, message_type, FieldComparison.EQUIVALENT, False)


def equals_initialized_proto(
    expected: Expected, message_type: Optional[type[Message]] = None
) -> ProtoMatcher:
    """A matcher for initialized messages equal to expected."""
    return _make(expected, message_type, FieldComparison.EQUAL, True)


def equiv_to_initialized_proto(
    expected: Expected, message_type: Optional[type[Message]] = None
) -> ProtoMatcher:
    """A matcher for initialized messages equivalent to expected."""
    return _make(expected, message_type, FieldComparison.EQUIVALENT, True)


def is_initialized_proto() -> IsInitializedProtoMatcher:
    """A matcher for messages whose required fields are all set."""
    return IsInitializedProtoMatcher()