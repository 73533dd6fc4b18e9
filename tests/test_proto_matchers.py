import pytest
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from tfopt_kit.proto_matchers import (
    IsInitializedProtoMatcher,
    ProtoMatcher,
    TupleProtoMatcher,
    equals_initialized_proto,
    equals_proto,
    equiv_to_initialized_proto,
    equiv_to_proto,
    is_initialized_proto,
)
from tfopt_kit.proto_options import FieldComparison, ProtoComparison
from tfopt_kit.proto_text import ProtoParseError

_F = descriptor_pb2.FieldDescriptorProto


def _build_classes():
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="proto_matchers_test.proto", package="tf_opt.testing", syntax="proto2"
    )
    sub = file_proto.message_type.add(name="SubProto")
    sub.field.add(name="field_a", number=1, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL)
    sub.field.add(name="field_b", number=2, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL)
    test = file_proto.message_type.add(name="TestProto")
    test.field.add(
        name="integer_field", number=1, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL
    )
    test.field.add(
        name="string_field", number=2, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL
    )
    test.field.add(
        name="message_field",
        number=3,
        type=_F.TYPE_MESSAGE,
        label=_F.LABEL_OPTIONAL,
        type_name=".tf_opt.testing.SubProto",
    )
    other = file_proto.message_type.add(name="OtherProto")
    other.field.add(name="value", number=1, type=_F.TYPE_INT32, label=_F.LABEL_OPTIONAL)
    required = file_proto.message_type.add(name="RequiredProto")
    required.field.add(name="id", number=1, type=_F.TYPE_INT32, label=_F.LABEL_REQUIRED)
    required.field.add(name="note", number=2, type=_F.TYPE_STRING, label=_F.LABEL_OPTIONAL)
    pool = descriptor_pool.DescriptorPool()
    pool.Add(file_proto)
    return tuple(
        message_factory.GetMessageClass(
            pool.FindMessageTypeByName(f"tf_opt.testing.{name}")
        )
        for name in ("TestProto", "OtherProto", "RequiredProto")
    )


TestProto, OtherProto, RequiredProto = _build_classes()


def test_equals_string():
    actual = TestProto(integer_field=1, string_field="blabla")
    assert equals_proto("integer_field: 1 string_field: 'blabla'").matches(actual)


def test_equals_proto():
    actual = TestProto(integer_field=1, string_field="blabla")
    expected = TestProto(integer_field=1, string_field="blabla")
    assert equals_proto(expected).matches(actual)


def test_different_protos_explains_difference():
    actual = TestProto(integer_field=1)
    matcher = equals_proto("integer_field: 2", TestProto)
    assert matcher.match_and_explain(actual) == (
        False,
        "with the difference:\nmodified: integer_field: 2 -> 1",
    )


def test_pointwise_tuple_matcher():
    actual = [
        TestProto(integer_field=1),
        TestProto(string_field="hello"),
        TestProto(integer_field=2, string_field="world"),
    ]
    expected = [
        "integer_field: 1",
        "string_field: 'hello'",
        "integer_field: 2 string_field: 'world'",
    ]
    matcher = equals_proto()
    assert isinstance(matcher, TupleProtoMatcher)
    assert all(matcher.matches(a, e) for a, e in zip(actual, expected))
    assert not matcher.matches(actual[0], expected[1])


def test_tuple_matcher_descriptions():
    assert equals_proto().describe() == "are equal"
    assert equals_proto().describe_negation() == "are not equal"
    assert equiv_to_proto().describe() == "are equivalent"
    assert equiv_to_proto().describe_negation() == "are not equivalent"


def test_expected_message_is_copied():
    expected = TestProto(integer_field=1)
    matcher = equals_proto(expected)
    expected.integer_field = 5
    assert matcher.matches(TestProto(integer_field=1))
    assert not matcher.matches(TestProto(integer_field=5))


def test_type_mismatch_explained():
    matcher = equals_proto(OtherProto(value=1))
    assert matcher.match_and_explain(TestProto(integer_field=1)) == (
        False,
        "whose type should be tf_opt.testing.OtherProto "
        "but actually is tf_opt.testing.TestProto",
    )


def test_unparsable_text_explained():
    matched, explanation = equals_proto("no_such_field: 1").match_and_explain(
        TestProto()
    )
    assert not matched
    assert explanation.startswith(
        "where <no_such_field: 1> doesn't parse as a tf_opt.testing.TestProto:\n"
    )


def test_typed_text_that_does_not_parse_raises():
    with pytest.raises(ProtoParseError):
        equals_proto("no_such_field: 1", TestProto)


def test_none_does_not_match():
    assert equals_proto("integer_field: 1").match_and_explain(None) == (False, "")


def test_equals_versus_equivalent():
    actual = TestProto(integer_field=0)
    assert not equals_proto("").matches(actual)
    assert equiv_to_proto("").matches(actual)
    assert equiv_to_proto(TestProto()).matches(actual)


def test_equals_initialized_proto():
    matcher = equals_initialized_proto("id: 1")
    assert matcher.matches(RequiredProto(id=1))
    assert matcher.match_and_explain(RequiredProto()) == (
        False,
        "which isn't fully initialized",
    )


def test_equiv_to_initialized_proto():
    matcher = equiv_to_initialized_proto(RequiredProto(id=3))
    assert matcher.matches(RequiredProto(id=3, note=""))
    assert not matcher.matches(RequiredProto(id=4))


def test_initialized_matcher_requires_initialized_expected():
    with pytest.raises(ValueError, match="following required fields are missing: id"):
        equals_initialized_proto(RequiredProto())


def test_descriptions():
    assert equals_proto("integer_field: 1").describe() == (
        "is equal to <integer_field: 1>"
    )
    assert equiv_to_proto("integer_field: 1").describe_negation() == (
        "is not equivalent to <integer_field: 1>"
    )
    assert equals_initialized_proto(RequiredProto(id=1)).describe() == (
        "is fully initialized and equal to tf_opt.testing.RequiredProto <id: 1>"
    )
    assert equals_initialized_proto("id: 1").describe_negation() == (
        "is not fully initialized or not equal to <id: 1>"
    )


def test_proto_matcher_rejects_bad_expected():
    with pytest.raises(TypeError):
        ProtoMatcher(42, ProtoComparison())


def test_proto_matcher_keeps_its_own_comparison():
    comparison = ProtoComparison(field_comparison=FieldComparison.EQUIVALENT)
    matcher = ProtoMatcher("", comparison)
    comparison.field_comparison = FieldComparison.EQUAL
    assert matcher.matches(TestProto(integer_field=0))


def test_is_initialized_proto():
    matcher = is_initialized_proto()
    assert isinstance(matcher, IsInitializedProtoMatcher)
    assert matcher.matches(RequiredProto(id=1))
    assert matcher.match_and_explain(RequiredProto()) == (
        False,
        "which is missing the following required fields: id",
    )
    assert matcher.match_and_explain(None) == (False, "which is null")
    assert matcher.describe() == "is a fully initialized protocol buffer"
    assert matcher.describe_negation() == "is not a fully initialized protocol buffer"