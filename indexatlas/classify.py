"""
indexatlas.classify — Continuous value → discrete bin classification.

Design contract:
    - Bin definitions are ordered, contiguous and non-overlapping:
      bins[i].min == bins[i-1].max for every i > 0.
    - Membership is half-open, min <= v < max, except for the final bin,
      which is closed (min <= v <= max) so the domain maximum is classified.
    - A value on an interior boundary belongs to the upper bin.
    - None, and any value outside every bin, map to NO_DATA_COLOR.
    - Each bin's colour is the palette sampled at the definition's
      sample_point, computed once when the scale is built.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from indexatlas.constants import NO_DATA_COLOR

Interpolator = Callable[[float], str]


@dataclass(frozen=True, slots=True)
class BinDefinition:
    min: float
    max: float
    sample_point: float
    label: str

    def to_dict(self) -> dict[str, object]:
        return {
            "min": self.min,
            "max": self.max,
            "samplePoint": self.sample_point,
            "label": self.label,
        }


@dataclass(frozen=True, slots=True)
class Bin:
    min: float
    max: float
    color: str
    label: str


@dataclass(frozen=True, slots=True)
class ColorScale:
    bins: tuple[Bin, ...]

    def get_color(self, value: float | None) -> str:
        bin_ = classify_value(value, self.bins)
        return bin_.color if bin_ is not None else NO_DATA_COLOR


HDI_BIN_DEFINITIONS: tuple[BinDefinition, ...] = (
    BinDefinition(0.0, 0.450, 0.0, "Low (< 0.450)"),
    BinDefinition(0.450, 0.550, 0.14, "Low (0.450 - 0.549)"),
    BinDefinition(0.550, 0.650, 0.28, "Medium (0.550 - 0.649)"),
    BinDefinition(0.650, 0.700, 0.42, "Medium (0.650 - 0.699)"),
    BinDefinition(0.700, 0.800, 0.57, "High (0.700 - 0.799)"),
    BinDefinition(0.800, 0.850, 0.71, "Very High (0.800 - 0.849)"),
    BinDefinition(0.850, 0.900, 0.85, "Very High (0.850 - 0.899)"),
    BinDefinition(0.900, 1.0, 1.0, "Very High (0.900+)"),
)

# WHR scores and OECD dimensions share the 0-10 scale and its breakpoints.
TEN_POINT_BIN_DEFINITIONS: tuple[BinDefinition, ...] = (
    BinDefinition(0.0, 2.0, 0.0, "Very Low (< 2.0)"),
    BinDefinition(2.0, 3.0, 0.14, "Low (2.0 - 2.9)"),
    BinDefinition(3.0, 4.0, 0.28, "Below Average (3.0 - 3.9)"),
    BinDefinition(4.0, 5.0, 0.42, "Average (4.0 - 4.9)"),
    BinDefinition(5.0, 6.0, 0.57, "Above Average (5.0 - 5.9)"),
    BinDefinition(6.0, 7.0, 0.71, "High (6.0 - 6.9)"),
    BinDefinition(7.0, 8.0, 0.85, "Very High (7.0 - 7.9)"),
    BinDefinition(8.0, 10.0, 1.0, "Exceptional (8.0+)"),
)


def validate_bin_definitions(definitions: Sequence[BinDefinition]) -> None:
    """Raise ValueError unless definitions are non-empty, ordered and contiguous."""
    if not definitions:
        raise ValueError("Bin definitions must not be empty")
    for i, d in enumerate(definitions):
        if not d.min < d.max:
            raise ValueError(f"Bin {i} ('{d.label}') has min {d.min} >= max {d.max}")
        if not 0.0 <= d.sample_point <= 1.0:
            raise ValueError(
                f"Bin {i} ('{d.label}') sample point {d.sample_point} outside [0, 1]"
            )
        if i > 0 and d.min != definitions[i - 1].max:
            raise ValueError(
                f"Bin {i} ('{d.label}') starts at {d.min}, "
                f"previous bin ends at {definitions[i - 1].max}"
            )


def classify_value(value: float | None, bins: Sequence[Bin | BinDefinition]):
    """Return the bin containing ``value``, or None."""
    if value is None:
        return None
    last = len(bins) - 1
    for i, b in enumerate(bins):
        if i == last:
            if b.min <= value <= b.max:
                return b
        elif b.min <= value < b.max:
            return b
    return None


def create_color_scale(
    interpolator: Interpolator,
    bin_definitions: Sequence[BinDefinition],
) -> ColorScale:
    validate_bin_definitions(bin_definitions)
    return ColorScale(bins=tuple(
        Bin(min=d.min, max=d.max, color=interpolator(d.sample_point), label=d.label)
        for d in bin_definitions
    ))


# ---------------------------------------------------------------------------
# HDI categories
# ---------------------------------------------------------------------------

HDI_LOW_MAX = 0.550
HDI_MEDIUM_MAX = 0.700
HDI_HIGH_MAX = 0.800


def classify_hdi(hdi: float | None) -> str | None:
    """UNDP category for an HDI value: Low, Medium, High or Very High."""
    if hdi is None:
        return None
    if hdi < HDI_LOW_MAX:
        return "Low"
    if hdi < HDI_MEDIUM_MAX:
        return "Medium"
    if hdi < HDI_HIGH_MAX:
        return "High"
    return "Very High"
