import pytest

from tfopt_kit.proto_options import (
    FieldComparison,
    FloatComparison,
    ProtoComparison,
    RepeatedFieldComparison,
    Scope,
)


def test_default_is_default():
    comparison = ProtoComparison()
    assert comparison.is_default()
    assert comparison.field_comparison is FieldComparison.EQUAL
    assert comparison.float_comparison is FloatComparison.EXACT
    assert comparison.repeated_field_comparison is RepeatedFieldComparison.AS_LIST
    assert comparison.scope is Scope.FULL


@pytest.mark.parametrize(
    "changes",
    [
        {"field_comparison": FieldComparison.EQUIVALENT},
        {"float_comparison": FloatComparison.APPROXIMATE},
        {"treating_nans_as_equal": True},
        {"repeated_field_comparison": RepeatedFieldComparison.AS_SET},
        {"scope": Scope.PARTIAL},
        {"ignore_fields": ["pkg.Msg.field"]},
        {"ignore_field_paths": ["field"]},
    ],
)
def test_any_change_is_not_default(changes):
    assert not ProtoComparison(**changes).is_default()


def test_default_lists_are_not_shared():
    first = ProtoComparison()
    first.ignore_fields.append("pkg.Msg.field")
    assert ProtoComparison().ignore_fields == []


def test_set_margin_records_value():
    comparison = ProtoComparison()
    comparison.set_margin(0.5)
    assert comparison.has_custom_margin
    assert comparison.float_margin == 0.5
    assert not comparison.is_default()


def test_negative_margin_rejected():
    comparison = ProtoComparison()
    with pytest.raises(ValueError, match="negative margin"):
        comparison.set_margin(-0.1)
    assert not comparison.has_custom_margin


@pytest.mark.parametrize("fraction", [-0.1, 1.0, 1.5])
def test_bad_fraction_rejected(fraction):
    comparison = ProtoComparison()
    with pytest.raises(ValueError, match="Fraction for Approximately"):
        comparison.set_fraction(fraction)
    assert not comparison.has_custom_fraction


def test_fraction_of_one_allowed_when_asked():
    comparison = ProtoComparison()
    comparison.set_fraction(1.0, allow_one=True)
    assert comparison.has_custom_fraction
    assert comparison.float_fraction == 1.0
    with pytest.raises(ValueError):
        comparison.set_fraction(1.5, allow_one=True)


def test_describe_default():
    assert ProtoComparison().describe_relation() == "equal to "


def test_describe_equivalent_partial_nans():
    comparison = ProtoComparison(
        field_comparison=FieldComparison.EQUIVALENT,
        scope=Scope.PARTIAL,
        treating_nans_as_equal=True,
    )
    text = comparison.describe_relation()
    assert text.startswith("partially equivalent")
    assert text.endswith(" (treating NaNs as equal) to ")


def test_describe_ignoring():
    comparison = ProtoComparison(
        repeated_field_comparison=RepeatedFieldComparison.AS_SET,
        ignore_fields=["a.B.c", "a.B.d"],
    )
    text = comparison.describe_relation()
    assert text.startswith("(ignoring repeated field ordering) ")
    assert "(ignoring fields: a.B.c, a.B.d) " in text
    assert text.endswith("equal to ")


def test_describe_approximately_with_bounds():
    comparison = ProtoComparison(float_comparison=FloatComparison.APPROXIMATE)
    assert comparison.describe_relation().startswith("approximately equal")
    comparison.set_margin(0.5)
    comparison.set_fraction(0.25)
    text = comparison.describe_relation()
    assert "absolute error of float or double fields <= 0.5" in text
    assert " or relative error of float or double fields <= 0.25) " in text


def test_describe_bounds_only_when_approximate():
    comparison = ProtoComparison()
    comparison.set_margin(0.5)
    assert "absolute error" not in comparison.describe_relation()