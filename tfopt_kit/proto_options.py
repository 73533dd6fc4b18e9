"""Options that say how two protocol buffer messages are compared."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class FieldComparison(enum.Enum):
    """Whether unset fields equal fields set to their default."""

    EQUAL = "equal"
    EQUIVALENT = "equivalent"


class FloatComparison(enum.Enum):
    """Exact or approximate comparison of floating-point fields."""

    EXACT = "exact"
    APPROXIMATE = "approximate"


class RepeatedFieldComparison(enum.Enum):
    """Whether the order of elements in repeated fields matters."""

    AS_LIST = "as_list"
    AS_SET = "as_set"


class Scope(enum.Enum):
    """Compare all fields, or only those present in the expected message."""

    FULL = "full"
    PARTIAL = "partial"


def _format_double(value: float) -> str:
    return f"{value:.17g}"


@dataclass
class ProtoComparison:
    """How to compare two messages."""

    field_comparison: FieldComparison = FieldComparison.EQUAL
    float_comparison: FloatComparison = FloatComparison.EXACT
    treating_nans_as_equal: bool = False
    has_custom_margin: bool = False
    has_custom_fraction: bool = False
    repeated_field_comparison: RepeatedFieldComparison = RepeatedFieldComparison.AS_LIST
    scope: Scope = Scope.FULL
    float_margin: float = 0.0
    float_fraction: float = 0.0
    ignore_fields: list[str] = field(default_factory=list)
    ignore_field_paths: list[str] = field(default_factory=list)

    def set_margin(self, margin: float) -> None:
        """Set the absolute error allowed in approximate float comparison."""
        if not margin >= 0.0:
            raise ValueError("Using a negative margin for Approximately")
        self.has_custom_margin = True
        self.float_margin = float(margin)

    def set_fraction(self, fraction: float, allow_one: bool = False) -> None:
        """Set the relative error allowed in approximate float comparison.

        The fraction must lie in [0, 1), or in [0, 1] when allow_one is set.
        """
        upper_ok = fraction <= 1.0 if allow_one else fraction < 1.0
        if not (0.0 <= fraction and upper_ok):
            raise ValueError("Fraction for Approximately must be >= 0.0 and < 1.0")
        self.has_custom_fraction = True
        self.float_fraction = float(fraction)

    def is_default(self) -> bool:
        """Whether every option still has its default value."""
        return self == ProtoComparison()

    def describe_relation(self) -> str:
        """Describe the relation these options require, ending in " to "."""
        parts: list[str] = []
        if self.repeated_field_comparison is RepeatedFieldComparison.AS_SET:
            parts.append("(ignoring repeated field ordering) ")
        if self.ignore_fields:
            parts.append(f"(ignoring fields: {', '.join(self.ignore_fields)}) ")
        if self.float_comparison is FloatComparison.APPROXIMATE:
            parts.append("approximately ")
            bounds: list[str] = []
            if self.has_custom_margin:
                bounds.append(
                    "absolute error of float or double fields <= "
                    + _format_double(self.float_margin)
                )
            if self.has_custom_fraction:
                bounds.append(
                    "relative error of float or double fields <= "
                    + _format_double(self.float_fraction)
                )
            if bounds:
                parts.append("(" + " or ".join(bounds) + ") ")
        if self.scope is Scope.PARTIAL:
            parts.append("partially ")
        parts.append(
            "equal" if self.field_comparison is FieldComparison.EQUAL else "equivalent"
        )
        if self.treating_nans_as_equal:
            parts.append(" (treating NaNs as equal)")
        parts.append(" to ")
        return "".join(parts)