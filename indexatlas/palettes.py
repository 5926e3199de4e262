"""
indexatlas.palettes — Continuous palettes as t → "#rrggbb" interpolators.

Backed by matplotlib's perceptually uniform colormaps. ``t`` is clamped
to [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass

import matplotlib
from matplotlib.colors import to_hex

from indexatlas.classify import Interpolator


def _interpolator(cmap_name: str) -> Interpolator:
    cmap = matplotlib.colormaps[cmap_name]

    def interpolate(t: float) -> str:
        return to_hex(cmap(min(1.0, max(0.0, float(t)))))

    return interpolate


@dataclass(frozen=True, slots=True)
class PaletteDefinition:
    id: str
    label: str
    interpolator: Interpolator


PALETTES: tuple[PaletteDefinition, ...] = tuple(
    PaletteDefinition(id=name, label=name.capitalize(), interpolator=_interpolator(name))
    for name in ("plasma", "viridis", "inferno", "magma", "cividis", "turbo")
)

DEFAULT_PALETTE_ID: str = "plasma"


def get_palette_by_id(palette_id: str) -> PaletteDefinition:
    for palette in PALETTES:
        if palette.id == palette_id:
            return palette
    raise KeyError(f"Unknown palette id: '{palette_id}'")
