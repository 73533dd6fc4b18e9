"""Protocol buffer matchers for tests, with configurable comparison and difference reports."""

__version__ = "0.1.0"

__all__ = [
    "proto_options",
    "proto_text",
    "proto_compare",
    "proto_matchers",
    "proto_transforms",
]