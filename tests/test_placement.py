"""
Unit tests for the placement engine and cell keys.
"""

import math

import pytest

from collage.config import DEFAULT_TEMPLATE_SIZES
from collage.errors import LayoutError, UnknownTemplateError
from collage.geometry import chebyshev_ring
from collage.models import Member, TemplateKind
from collage.placement import (
    CENTER_BLOCK,
    CENTER_KEY,
    Layout,
    bind_members,
    cell_key,
    parse_cell_key,
    placements,
)


ALL_KINDS = list(TemplateKind)


class TestCellKeys:
    """The '<section>:<row>-<col>' key format."""

    def test_build_and_parse(self):
        key = cell_key('top', 0, 3)
        assert key == 'top:0-3'
        assert parse_cell_key(key) == ('top', 0, 3)

    def test_negative_coordinates(self):
        assert parse_cell_key('spiral:-1-2') == ('spiral', -1, 2)
        assert parse_cell_key('spiral:-1--2') == ('spiral', -1, -2)
        assert parse_cell_key('top-extension:-1-4') == ('top-extension', -1, 4)

    @pytest.mark.parametrize('bad', ['', 'top', 'top:1', 'top:a-b', ':1-2'])
    def test_malformed_keys(self, bad):
        with pytest.raises(LayoutError):
            parse_cell_key(bad)


class TestPlacementInvariants:
    """Properties that hold for every template kind."""

    @pytest.mark.parametrize('kind', ALL_KINDS)
    @pytest.mark.parametrize('count', [0, 1, 2, 5, 7, 9, 19, 37, 64, 150])
    def test_count_unique_keys_single_center(self, kind, count):
        cells = placements(kind, count)

        assert len(cells) == count
        assert len({c.key for c in cells}) == count
        if count:
            assert sum(1 for c in cells if c.is_center) == 1
            assert cells[0].is_center
            assert cells[0].key == CENTER_KEY

    @pytest.mark.parametrize('kind', ALL_KINDS)
    def test_indexes_follow_order(self, kind):
        cells = placements(kind, 25)
        assert [c.index for c in cells] == list(range(25))

    @pytest.mark.parametrize('kind', ALL_KINDS)
    def test_deterministic(self, kind):
        assert placements(kind, 40) == placements(kind, 40)

    @pytest.mark.parametrize('kind', ALL_KINDS)
    @pytest.mark.parametrize('count', [-3, -1, 2.5, float('nan'), float('inf'), None, '7', True])
    def test_invalid_counts_are_empty(self, kind, count):
        assert placements(kind, count) == []

    def test_integral_float_count(self):
        assert len(placements('square', 4.0)) == 4

    def test_large_count_terminates(self):
        assert len(placements('circle', 5000)) == 5000

    def test_template_name_parsing(self):
        assert len(placements('HEXAGONAL', 3)) == 3
        with pytest.raises(UnknownTemplateError):
            placements('triangle', 3)


class TestSquarePlacement:
    """Square spiral around a 2x2 centre block."""

    def test_single_member(self):
        cells = placements(TemplateKind.SQUARE, 1)

        assert len(cells) == 1
        center = cells[0]
        assert center.is_center
        assert (center.row, center.col) == (0, 0)
        assert (center.row_span, center.col_span) == (2, 2)

    def test_nine_members(self):
        cells = placements(TemplateKind.SQUARE, 9)

        assert len({c.key for c in cells}) == 9
        assert sum(1 for c in cells if c.is_center) == 1
        assert [c.key for c in cells[1:]] == [
            'spiral:1--1', 'spiral:0--1', 'spiral:-1--1', 'spiral:-1-0',
            'spiral:-1-1', 'spiral:-1-2', 'spiral:0-2', 'spiral:1-2',
        ]
        rings = [chebyshev_ring(c.row, c.col) for c in cells]
        assert rings == sorted(rings)

    def test_spiral_skips_center_block(self):
        cells = placements(TemplateKind.SQUARE, 60)
        for cell in cells[1:]:
            assert (cell.row, cell.col) not in CENTER_BLOCK

    def test_radius_monotonic_for_large_layouts(self):
        cells = placements(TemplateKind.SQUARE, 120)
        rings = [chebyshev_ring(c.row, c.col) for c in cells]
        assert rings == sorted(rings)


class TestHexagonalPlacement:
    """Hexagonal rings of 6r cells."""

    def test_ring_sizes(self):
        cells = placements(TemplateKind.HEXAGONAL, 1 + 6 + 12)
        ring_counts = {}
        for cell in cells[1:]:
            ring_counts[cell.row] = ring_counts.get(cell.row, 0) + 1
        assert ring_counts == {1: 6, 2: 12}

    def test_angles_and_radius(self):
        sizes = DEFAULT_TEMPLATE_SIZES['xlarge']
        cells = placements(TemplateKind.HEXAGONAL, 8, sizes)

        ring1 = [c for c in cells if c.row == 1]
        assert [c.angle for c in ring1] == pytest.approx([2 * math.pi * i / 6 for i in range(6)])
        # ring 1 clears the centre: (120 + 60) / 2 + 8
        assert all(c.radius == 98 for c in ring1)

    def test_partial_outer_ring_keeps_full_ring_angles(self):
        cells = placements(TemplateKind.HEXAGONAL, 9)
        outer = [c for c in cells if c.row == 2]
        assert [c.key for c in outer] == ['ring2:2-0', 'ring2:2-1']
        assert outer[1].angle == pytest.approx(2 * math.pi / 12)


class TestCirclePlacement:
    """Concentric rings sized by circumference."""

    def test_ring_capacity_from_circumference(self):
        sizes = DEFAULT_TEMPLATE_SIZES['xlarge']
        cells = placements(TemplateKind.CIRCLE, 1 + 9 + 3, sizes)

        ring1 = [c for c in cells if c.row == 1]
        ring2 = [c for c in cells if c.row == 2]
        # 2*pi*98 / (60 + 8) = 9.05
        assert len(ring1) == 9
        assert len(ring2) == 3
        assert all(c.radius == 98 for c in ring1)
        assert all(c.radius == 196 for c in ring2)

    def test_partial_ring_spreads_evenly(self):
        cells = placements(TemplateKind.CIRCLE, 5)
        assert [c.angle for c in cells[1:]] == pytest.approx(
            [0, math.pi / 2, math.pi, 3 * math.pi / 2]
        )

    def test_sizes_change_capacity(self):
        # small: ring 1 at (48 + 24) / 2 + 8 = 44, 2*pi*44 / (24 + 8) = 8.6
        cells = placements(TemplateKind.CIRCLE, 30, DEFAULT_TEMPLATE_SIZES['small'])
        assert len([c for c in cells if c.row == 1]) == 8


class TestLayout:
    """Layout wrapper around a placement list."""

    def test_lookup(self):
        layout = Layout.compute('square', 9)

        assert len(layout) == 9
        assert CENTER_KEY in layout
        assert layout.index_of(CENTER_KEY) == 0
        assert layout.index_of('spiral:1--1') == 1
        assert layout.index_of('nowhere:0-0') == -1
        assert layout.cell('spiral:0-2').col == 2

    def test_unknown_key_raises(self):
        with pytest.raises(LayoutError):
            Layout.compute('square', 3).cell('spiral:9-9')

    def test_bounds_include_center_span(self):
        bounds = Layout.compute('square', 9).bounds()
        assert (bounds.min_row, bounds.max_row) == (-1, 1)
        assert (bounds.min_col, bounds.max_col) == (-1, 2)
        assert (bounds.rows, bounds.cols) == (3, 4)

    def test_bounds_single_member(self):
        bounds = Layout.compute('square', 1).bounds()
        assert (bounds.rows, bounds.cols) == (2, 2)

    def test_bounds_empty_or_ring(self):
        assert Layout.compute('square', 0).bounds() is None
        assert Layout.compute('circle', 5).bounds() is None

    def test_bind_members_center_is_first(self):
        members = [Member(id=str(i), name=f"M{i}") for i in range(3)]
        pairs = bind_members(placements('hexagonal', 4), members)

        assert pairs[0][0].is_center
        assert pairs[0][1] is members[0]
        assert pairs[3][1] is None
