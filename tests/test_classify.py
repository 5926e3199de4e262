"""
tests/test_classify.py — Bin classification, colour scales and palettes.

Requires: pytest, matplotlib
"""

from __future__ import annotations

import random
import re

import pytest

from indexatlas.classify import (
    HDI_BIN_DEFINITIONS,
    TEN_POINT_BIN_DEFINITIONS,
    BinDefinition,
    classify_hdi,
    classify_value,
    create_color_scale,
    validate_bin_definitions,
)
from indexatlas.constants import NO_DATA_COLOR
from indexatlas.palettes import DEFAULT_PALETTE_ID, PALETTES, get_palette_by_id

HEX_RE = re.compile(r"^#[0-9a-f]{6}$")


def _grey(t: float) -> str:
    level = round(t * 255)
    return f"#{level:02x}{level:02x}{level:02x}"


# ---------------------------------------------------------------------------
# Bin membership
# ---------------------------------------------------------------------------

class TestClassifyValue:

    def test_interior_boundary_belongs_to_upper_bin(self):
        scale = create_color_scale(_grey, HDI_BIN_DEFINITIONS)
        assert scale.get_color(0.450) == scale.bins[1].color
        assert scale.get_color(0.449) == scale.bins[0].color

    def test_final_bin_is_closed(self):
        assert classify_value(1.0, HDI_BIN_DEFINITIONS) is HDI_BIN_DEFINITIONS[-1]
        assert classify_value(10.0, TEN_POINT_BIN_DEFINITIONS) is TEN_POINT_BIN_DEFINITIONS[-1]

    def test_domain_minimum_in_first_bin(self):
        assert classify_value(0.0, HDI_BIN_DEFINITIONS) is HDI_BIN_DEFINITIONS[0]

    @pytest.mark.parametrize("value", [None, -0.01, 1.01])
    def test_none_and_out_of_range(self, value):
        assert classify_value(value, HDI_BIN_DEFINITIONS) is None
        assert create_color_scale(_grey, HDI_BIN_DEFINITIONS).get_color(value) == NO_DATA_COLOR

    @pytest.mark.parametrize("definitions", [HDI_BIN_DEFINITIONS, TEN_POINT_BIN_DEFINITIONS])
    def test_every_in_domain_value_lands_in_exactly_one_bin(self, definitions):
        rng = random.Random(11)
        lo, hi = definitions[0].min, definitions[-1].max
        samples = [rng.uniform(lo, hi) for _ in range(500)]
        samples += [d.min for d in definitions] + [hi]
        last = len(definitions) - 1
        for v in samples:
            containing = [
                d for i, d in enumerate(definitions)
                if d.min <= v < d.max or (i == last and d.min <= v <= d.max)
            ]
            assert len(containing) == 1
            assert classify_value(v, definitions) is containing[0]


# ---------------------------------------------------------------------------
# Colour scales
# ---------------------------------------------------------------------------

class TestCreateColorScale:

    def test_colors_sampled_at_sample_points(self):
        scale = create_color_scale(_grey, HDI_BIN_DEFINITIONS)
        assert [b.color for b in scale.bins] == [_grey(d.sample_point) for d in HDI_BIN_DEFINITIONS]
        assert [b.label for b in scale.bins] == [d.label for d in HDI_BIN_DEFINITIONS]

    def test_interpolator_called_once_per_bin(self):
        calls = []

        def counting(t: float) -> str:
            calls.append(t)
            return "#000000"

        scale = create_color_scale(counting, TEN_POINT_BIN_DEFINITIONS)
        for v in (0.5, 5.5, 9.9):
            scale.get_color(v)
        assert len(calls) == len(TEN_POINT_BIN_DEFINITIONS)

    def test_to_dict_is_camel_case(self):
        assert HDI_BIN_DEFINITIONS[0].to_dict() == {
            "min": 0.0, "max": 0.45, "samplePoint": 0.0, "label": "Low (< 0.450)",
        }


class TestValidateBinDefinitions:

    def test_bundled_tables_are_valid(self):
        validate_bin_definitions(HDI_BIN_DEFINITIONS)
        validate_bin_definitions(TEN_POINT_BIN_DEFINITIONS)

    def test_empty(self):
        with pytest.raises(ValueError, match="empty"):
            validate_bin_definitions([])

    def test_gap(self):
        defs = [BinDefinition(0, 1, 0.0, "a"), BinDefinition(1.5, 2, 1.0, "b")]
        with pytest.raises(ValueError, match="starts at"):
            validate_bin_definitions(defs)

    def test_inverted_bin(self):
        with pytest.raises(ValueError, match="min"):
            validate_bin_definitions([BinDefinition(2, 1, 0.5, "x")])

    def test_sample_point_out_of_range(self):
        with pytest.raises(ValueError, match="sample point"):
            validate_bin_definitions([BinDefinition(0, 1, 1.5, "x")])


class TestClassifyHdi:

    @pytest.mark.parametrize("hdi,category", [
        (0.3, "Low"),
        (0.549, "Low"),
        (0.550, "Medium"),
        (0.699, "Medium"),
        (0.700, "High"),
        (0.800, "Very High"),
        (0.95, "Very High"),
        (None, None),
    ])
    def test_thresholds(self, hdi, category):
        assert classify_hdi(hdi) == category


# ---------------------------------------------------------------------------
# Palettes
# ---------------------------------------------------------------------------

class TestPalettes:

    def test_default_exists(self):
        assert get_palette_by_id(DEFAULT_PALETTE_ID).id == "plasma"

    def test_unknown_palette(self):
        with pytest.raises(KeyError):
            get_palette_by_id("rainbow")

    @pytest.mark.parametrize("palette", PALETTES, ids=lambda p: p.id)
    def test_interpolators_return_hex(self, palette):
        for t in (0.0, 0.5, 1.0):
            assert HEX_RE.match(palette.interpolator(t))

    def test_endpoints_differ_and_clamp(self):
        plasma = get_palette_by_id("plasma").interpolator
        assert plasma(0.0) != plasma(1.0)
        assert plasma(-1.0) == plasma(0.0)
        assert plasma(2.0) == plasma(1.0)

    def test_palette_drives_color_scale(self):
        plasma = get_palette_by_id("plasma").interpolator
        scale = create_color_scale(plasma, HDI_BIN_DEFINITIONS)
        assert scale.get_color(0.95) == plasma(1.0)
