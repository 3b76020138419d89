"""
Integration tests for LayoutSession: layout, state, interaction and export.
"""

import asyncio
import os

import pytest
from PIL import Image

from collage.errors import ConfigurationError, ExportError, UnknownTemplateError
from collage.models import GridSlot, Member, Offset, RingSlot, TemplateKind
from collage.placement import CENTER_KEY
from collage.session import LayoutSession
from tests.conftest import PALETTE, make_image_bytes, make_members


def close_to(pixel, expected, tolerance=8):
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, expected))


@pytest.fixture
def hero():
    return Member(id='hero', name='Hero', photo_ref=make_image_bytes((20, 20), (0, 0, 0)))


class TestLayoutLifecycle:
    """Recompute on member or template change."""

    def test_initial_layout(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config)

        assert session.template_kind == TemplateKind.SQUARE
        assert len(session.layout) == 9
        assert session.store.index_of(CENTER_KEY) == 0

    def test_default_template_from_config(self, test_config):
        session = LayoutSession(make_members(2), config=test_config)
        assert session.template_kind == TemplateKind.SQUARE

    def test_unknown_template(self, test_config):
        with pytest.raises(UnknownTemplateError):
            LayoutSession(make_members(2), 'triangle', test_config)

    def test_bad_default_template_is_config_error(self, test_config):
        config = test_config.model_copy(update={'DEFAULT_TEMPLATE': 'triangle'})

        with pytest.raises(ConfigurationError) as exc_info:
            LayoutSession(make_members(2), config=config)

        assert exc_info.value.details['DEFAULT_TEMPLATE'] == 'triangle'
        assert 'square' in exc_info.value.details['known_templates']

    def test_explicit_template_skips_bad_default(self, test_config):
        config = test_config.model_copy(update={'DEFAULT_TEMPLATE': 'triangle'})
        session = LayoutSession(make_members(2), 'circle', config)
        assert session.template_kind == TemplateKind.CIRCLE

    def test_set_members_recomputes_and_keeps_state(self, test_config):
        session = LayoutSession(make_members(3), 'square', test_config)
        session.assign('spiral:1--1', 'chosen.jpg')

        layout = session.set_members(make_members(12))

        assert len(layout) == 12
        assert session.store.has_image('spiral:1--1')

    def test_set_template_recomputes_and_keeps_state(self, test_config):
        session = LayoutSession(make_members(7), 'square', test_config)
        session.assign(CENTER_KEY, 'chosen.jpg')

        session.set_template('hexagonal')

        assert session.template_kind == TemplateKind.HEXAGONAL
        assert session.layout.keys[1] == 'ring1:1-0'
        assert session.store.index_of('ring1:1-0') == 1
        assert session.store.style_of(CENTER_KEY).source_ref == 'chosen.jpg'

    def test_same_template_is_a_no_op(self, test_config):
        session = LayoutSession(make_members(3), 'circle', test_config)
        session.assign(CENTER_KEY, 'x.jpg')
        session.set_template('circle')
        assert session.store.has_image(CENTER_KEY)

    def test_empty_members(self, test_config):
        session = LayoutSession([], 'square', test_config)
        assert len(session.layout) == 0
        assert session.build_spec().slots == []


class TestHero:
    """Seeding the centre cell."""

    def test_hero_seeds_center(self, sample_members, hero, test_config):
        session = LayoutSession(sample_members, 'square', test_config, hero=hero)

        state = session.view().style_of(CENTER_KEY, session.members)
        assert state.source_ref == hero.photo_ref

    def test_reset_reseeds_hero(self, sample_members, hero, test_config):
        session = LayoutSession(sample_members, 'square', test_config, hero=hero)
        session.assign('spiral:1--1', 'x.jpg')
        session.store.set_offset(CENTER_KEY, 0, 0)

        session.reset()

        assert not session.store.has_image('spiral:1--1')
        assert session.store.has_image(CENTER_KEY)
        assert session.store.offset_of(CENTER_KEY) == Offset(50, 50)

    def test_template_switch_keeps_hero(self, sample_members, hero, test_config):
        session = LayoutSession(sample_members, 'square', test_config, hero=hero)
        session.set_template('circle')
        assert session.store.has_image(CENTER_KEY)

    def test_reset_without_hero(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config)
        session.assign(CENTER_KEY, 'x.jpg')
        session.reset()
        assert len(session.store) == 0


class TestBuildSpec:
    """RenderSpec for the current template."""

    def test_spiral_grid(self, sample_members, test_config):
        spec = LayoutSession(sample_members, 'square', test_config).build_spec()

        assert (spec.cols, spec.rows) == (4, 3)
        assert spec.base_size == test_config.BASE_CELL_PX
        assert spec.desired_gap_px == test_config.DESIRED_GAP_PX
        assert not spec.uses_physical_size
        assert all(isinstance(s, GridSlot) for s in spec.slots)

    def test_poster(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config, fixed_poster=True)
        spec = session.build_spec()

        assert (spec.cols, spec.rows) == (8, 10)
        assert spec.uses_physical_size
        assert spec.dpi == 300
        assert session.store.index_of('top:0-0') == 1

    def test_ring(self, sample_members, test_config):
        spec = LayoutSession(sample_members, 'hexagonal', test_config, grid_size='small').build_spec()

        assert (spec.cols, spec.rows) == (1, 1)
        assert all(isinstance(s, RingSlot) for s in spec.slots)
        assert spec.slots[0].diameter == test_config.template_size('small').center


class TestInteraction:
    """The controller writes into the session's store."""

    def test_drag_updates_offset(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config)
        session.assign(CENTER_KEY, 'x.jpg')

        session.controller.pointer_down(CENTER_KEY, 0, 0, 100, 100)
        session.controller.pointer_move(-25, 0)
        session.controller.pointer_up()

        assert session.store.offset_of(CENTER_KEY) == Offset(25, 50)

    def test_tap_calls_replace_callback(self, sample_members, test_config):
        requested = []
        session = LayoutSession(sample_members, 'square', test_config,
                                on_replace_request=requested.append)
        assert session.controller.activate('spiral:0-2')
        assert requested == ['spiral:0-2']


class TestSessionExport:
    """End-to-end export through the session."""

    def test_export_spiral(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config)

        result = asyncio.run(session.export('group'))

        # 4x3 cells of 20px at the minimum device scale of 2
        assert (result.width, result.height) == (160, 120)
        with Image.open(result.path) as img:
            center = img.convert('RGB').getpixel((80, 80))
        assert close_to(center, PALETTE[0])

    def test_export_hero_in_center(self, sample_members, hero, test_config):
        session = LayoutSession(sample_members, 'square', test_config, hero=hero)
        result = session.export_sync('hero.png')

        with Image.open(result.path) as img:
            assert close_to(img.convert('RGB').getpixel((80, 80)), (0, 0, 0))

    def test_export_poster(self, test_config):
        config = test_config.model_copy(update={'OPTIMIZE_ENABLED': False})
        session = LayoutSession(make_members(45), 'square', config, fixed_poster=True)

        result = session.export_sync('poster.png')

        assert (result.width, result.height) == (2550, 3750)

    @pytest.mark.parametrize('kind', ['hexagonal', 'circle'])
    def test_export_rings(self, kind, test_config):
        session = LayoutSession(make_members(10), kind, test_config, grid_size='small')
        result = session.export_sync(f'{kind}.png')

        assert result.width == result.height
        with Image.open(result.path) as img:
            mid = img.width // 2
            assert close_to(img.convert('RGB').getpixel((mid, mid)), PALETTE[0])

    def test_export_failure_names_cell(self, sample_members, test_config):
        session = LayoutSession(sample_members, 'square', test_config)
        session.assign('spiral:0-2', b'garbage')

        with pytest.raises(ExportError) as exc_info:
            session.export_sync('fail.png')

        assert exc_info.value.cell_key == 'spiral:0-2'
        assert not os.path.exists(os.path.join(test_config.OUTPUT_FOLDER, 'fail.png'))
