"""Functions that derive a modified proto matcher from another one.

Each returns a new matcher and leaves the one it was given unchanged.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Optional, TypeVar, Union

from tfopt_kit.proto_matchers import ProtoMatcher, TupleProtoMatcher
from tfopt_kit.proto_options import FloatComparison, RepeatedFieldComparison, Scope

M = TypeVar("M", bound=Union[ProtoMatcher, TupleProtoMatcher])


def _derive(matcher: M) -> M:
    result = copy.copy(matcher)
    result.comparison = copy.deepcopy(matcher.comparison)
    return result


def _names(names: Union[str, Iterable[str]]) -> list[str]:
    if isinstance(names, str):
        return [names]
    return list(names)


def approximately(
    matcher: M, margin: Optional[float] = None, fraction: Optional[float] = None
) -> M:
    """Compare floating-point fields approximately.

    Values match when within margin or within fraction of the larger
    magnitude. Without either, a small default error for the type is used.
    """
    result = _derive(matcher)
    result.comparison.float_comparison = FloatComparison.APPROXIMATE
    if margin is not None:
        result.comparison.set_margin(margin)
    if fraction is not None:
        result.comparison.set_fraction(
            fraction, allow_one=type(matcher).allows_fraction_of_one
        )
    return result


def treating_nans_as_equal(matcher: M) -> M:
    """Treat NaN floating-point fields as equal."""
    result = _derive(matcher)
    result.comparison.treating_nans_as_equal = True
    return result


def ignoring_fields(fields: Union[str, Iterable[str]], matcher: M) -> M:
    """Ignore the fields with these fully qualified names."""
    result = _derive(matcher)
    result.comparison.ignore_fields.extend(_names(fields))
    return result


def ignoring_field_paths(field_paths: Union[str, Iterable[str]], matcher: M) -> M:
    """Ignore the fields at these paths relative to the matched message."""
    result = _derive(matcher)
    result.comparison.ignore_field_paths.extend(_names(field_paths))
    return result


def ignoring_repeated_field_ordering(matcher: M) -> M:
    """Ignore the order of elements within repeated fields."""
    result = _derive(matcher)
    result.comparison.repeated_field_comparison = RepeatedFieldComparison.AS_SET
    return result


def partially(matcher: M) -> M:
    """Consider only the fields present in the expected message."""
    result = _derive(matcher)
    result.comparison.scope = Scope.PARTIAL
    return result