"""
Layout session.

Ties an ordered member list and a template kind to a computed Layout, the
cell state store, the interaction controller and the export trigger. The
layout is recomputed whenever the members or the template change.
"""

import asyncio
from typing import Callable, List, Optional, Sequence

from loguru import logger

from .config import AppConfig, get_config
from .errors import ConfigurationError, UnknownTemplateError
from .export import ExportResult, export_image
from .interaction import InteractionController
from .models import Member, PhotoRef, RenderSpec, TemplateKind
from .placement import CENTER_KEY, Layout
from .store import CellStateStore, CellStateView
from .templates import POSTER_CAPACITY, member_index_resolver, script_for


def default_template_kind(config: AppConfig) -> TemplateKind:
    """The configured DEFAULT_TEMPLATE; a name that is not a template kind is a config error."""
    try:
        return TemplateKind.parse(config.DEFAULT_TEMPLATE)
    except UnknownTemplateError as e:
        raise ConfigurationError(
            f"DEFAULT_TEMPLATE '{config.DEFAULT_TEMPLATE}' is not a template kind",
            details={'DEFAULT_TEMPLATE': config.DEFAULT_TEMPLATE,
                     'known_templates': e.details['known_templates']},
            suggestions=e.suggestions + ["Fix DEFAULT_TEMPLATE in config/settings.yaml"],
        ) from e


class LayoutSession:
    """One group's collage being arranged and exported"""

    def __init__(self,
                 members: Sequence[Member] = (),
                 template_kind=None,
                 config: AppConfig = None,
                 hero: Optional[Member] = None,
                 fixed_poster: bool = False,
                 grid_size: Optional[str] = None,
                 on_replace_request: Optional[Callable[[str], None]] = None):
        self.config = config or get_config()
        self.fixed_poster = fixed_poster
        self.grid_size = grid_size or self.config.GRID_SIZE
        self._members: List[Member] = list(members)
        self._kind = (TemplateKind.parse(template_kind) if template_kind
                      else default_template_kind(self.config))
        self.hero: Optional[Member] = None

        self.store = CellStateStore()
        self.controller = InteractionController(self.store, on_replace_request)
        self.layout: Layout = self._recompute()

        if hero is not None:
            self.seed_center(hero)

    @property
    def members(self) -> List[Member]:
        return list(self._members)

    @property
    def template_kind(self) -> TemplateKind:
        return self._kind

    @property
    def sizes(self):
        return self.config.template_size(self.grid_size)

    def _recompute(self) -> Layout:
        self.layout = Layout.compute(self._kind, len(self._members), self.sizes)
        self.store.index_of = member_index_resolver(self.layout, self._uses_poster())
        logger.debug(f"Layout recomputed: {self._kind.value}, {len(self.layout)} cells")
        return self.layout

    def _uses_poster(self) -> bool:
        return self.fixed_poster and self._kind == TemplateKind.SQUARE

    def set_members(self, members: Sequence[Member]) -> Layout:
        """Replace the member list; assignments whose keys survive are kept."""
        self._members = list(members)
        if self._uses_poster() and len(self._members) > POSTER_CAPACITY:
            logger.warning(f"Poster holds {POSTER_CAPACITY} photos; "
                           f"{len(self._members) - POSTER_CAPACITY} members will not appear")
        return self._recompute()

    def set_template(self, template_kind) -> Layout:
        """Switch template. Cell state survives; only `center:0-0` is shared between templates."""
        kind = TemplateKind.parse(template_kind)
        if kind != self._kind:
            self._kind = kind
            self._recompute()
        return self.layout

    def seed_center(self, hero: Member) -> None:
        """Show the hero member's photo in the centre cell."""
        self.hero = hero
        self._reseed_hero()

    def _reseed_hero(self) -> None:
        if self.hero is not None and self.hero.photo_ref:
            self.store.assign(CENTER_KEY, self.hero.photo_ref)
            logger.info(f"Seeded centre cell with {self.hero.name}")

    def assign(self, key: str, source_ref: PhotoRef) -> None:
        """Replace the photo shown in one cell (tap-to-replace result)."""
        self.store.assign(key, source_ref)

    def view(self) -> CellStateView:
        return self.store.view()

    def build_spec(self) -> RenderSpec:
        """RenderSpec for the current template and member count."""
        script = script_for(self.layout, self.sizes, self._uses_poster())
        return RenderSpec(
            cols=script.cols,
            rows=script.rows,
            base_size=script.base_size or self.config.BASE_CELL_PX,
            desired_gap_px=(script.desired_gap_px if script.desired_gap_px is not None
                            else self.config.DESIRED_GAP_PX),
            background=self.config.BACKGROUND,
            target_width_in=script.target_width_in,
            target_height_in=script.target_height_in,
            dpi=script.dpi or self.config.DPI,
            slots=script.slots,
        )

    async def export(self, filename: str, **kwargs) -> ExportResult:
        return await export_image(filename, self.build_spec(), self.view(),
                                  self._members, self.config, **kwargs)

    def export_sync(self, filename: str, **kwargs) -> ExportResult:
        return asyncio.run(self.export(filename, **kwargs))

    def reset(self) -> None:
        """Clear every assignment and pan offset; the hero photo is seeded again."""
        self.store.reset()
        self._reseed_hero()
