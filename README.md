# tfopt_kit

Matchers for checking protocol buffer messages in tests. A matcher compares
a message with an expected one, given either as a message or as a text-format
string, and when they differ it says how.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Modules

- `tfopt_kit.proto_matchers`: the matchers.
  - `equals_proto(expected, message_type=None)` and
    `equiv_to_proto(expected, message_type=None)` return a `ProtoMatcher`.
    "Equivalent" treats an unset field like one set to its default value.
    A text-format `expected` is parsed as the type of each message matched.
    If `message_type` is given, it is parsed as that type straight away.
  - `equals_initialized_proto` and `equiv_to_initialized_proto` also require
    every required field of the matched message to be set. They raise
    `ValueError` if the expected message is not itself initialized.
  - Called with no argument, `equals_proto()` and `equiv_to_proto()` return a
    `TupleProtoMatcher`, whose `matches(actual, expected)` compares a pair.
    This is handy for checking two lists element by element.
  - `is_initialized_proto()` returns an `IsInitializedProtoMatcher`.
  - Every matcher has `matches`, `describe` and `describe_negation`.
    `ProtoMatcher` and `IsInitializedProtoMatcher` also have
    `match_and_explain`, which returns `(matched, explanation)`.
- `tfopt_kit.proto_transforms`: functions that derive a new matcher from a
  `ProtoMatcher` or `TupleProtoMatcher` and leave the given one unchanged.
  They can be nested in any order.
  - `approximately(matcher, margin=None, fraction=None)`: floating-point fields
    match when they are within `margin` of each other, or within `fraction`
    of the larger magnitude. Without either, a small default error for float
    or double is used.
  - `treating_nans_as_equal(matcher)`
  - `ignoring_fields(fields, matcher)`: takes fully qualified field names.
  - `ignoring_field_paths(field_paths, matcher)`: takes paths relative to the
    matched message, such as `items`, `items[2].name` or `(pkg.ext).sub`.
  - `ignoring_repeated_field_ordering(matcher)`
  - `partially(matcher)`: only fields present in the expected message count.
- `tfopt_kit.proto_options`: `ProtoComparison`, the dataclass of comparison
  options that the matchers carry, and the enums `FieldComparison`,
  `FloatComparison`, `RepeatedFieldComparison` and `Scope`.
- `tfopt_kit.proto_compare`: `MessageDiffer`, which compares two messages of
  one type and lists their differences. It also has the functions
  `proto_compare(comparison, actual, expected)` and
  `describe_diff(comparison, actual, expected)`.
- `tfopt_kit.proto_text`: the helpers underneath.
  - `parse_partial_from_text` raises `ProtoParseError` when the text does not
    parse.
  - `proto_comparable` and `describe_types` check and describe message types.
  - `find_fields` looks up fields by fully qualified name.
  - `parse_field_path` and `path_is_ignored` handle field paths made of
    `FieldPathElement` values.

## Examples

```python
from tfopt_kit.proto_matchers import equals_proto
from tfopt_kit.proto_transforms import approximately, ignoring_fields, partially

equals_proto("integer_field: 1 string_field: 'blabla'").matches(message)

partially(equals_proto("string_field: 'blabla'")).matches(message)

ignoring_fields(
    ["my.package.TestProto.integer_field"],
    equals_proto("integer_field: 2"),
).matches(message)

approximately(equals_proto(expected_message), margin=1e-6).matches(message)

pair_matcher = equals_proto()
all(pair_matcher.matches(a, e) for a, e in zip(actual_messages, expected_texts))
```

When a match fails, `match_and_explain` gives the reason:

```python
matched, explanation = equals_proto("integer_field: 2").match_and_explain(message)
# explanation:
# with the difference:
# modified: integer_field: 2 -> 1
```

## What it does not do

The matchers take message objects only. To check serialized bytes or a
text-format string, first parse it into a message yourself, for example with
`ParseFromString` or `parse_partial_from_text`. The package also has no
command-line interface.