"""
Canvas composer for collage exports.

This module handles:
- Sizing the output surface (physical inches x DPI, or cells x base size
  supersampled by the device scale)
- Filling the background before any cell is painted
- Painting each cell with half-gap insets on internal edges and a cover-fit
  crop that honours the cell's pan offset
- Clipping ring-template cells to circles or hexagons

Each cell is painted completely (image awaited, then drawn) before the next
one starts, so paint order is exactly the script order.
"""

import inspect
import time
from typing import Optional, Sequence, Tuple

from PIL import Image, ImageChops, ImageDraw
from loguru import logger

from .config import AppConfig, get_config
from .errors import RenderError
from .geometry import circle_bbox, hexagon_vertices
from .loader import ImageLoader
from .models import (
    CENTERED,
    CellShape,
    DrawHelpers,
    GridSlot,
    Member,
    Offset,
    RenderSpec,
    RingSlot,
)
from .store import CellStateView
from .utils import clamp, parse_color, round_half_up


MASK_SUPERSAMPLE = 4


def cover_crop(src_width: float, src_height: float,
               dst_width: float, dst_height: float,
               offset: Offset = CENTERED) -> Tuple[float, float, float, float]:
    """
    Source rectangle (sx, sy, sw, sh) that fills the destination without
    distortion.

    The crop has the destination's aspect ratio and is cut along whichever
    axis is proportionally larger. The pan offset positions it like a CSS
    background-position percentage: (50, 50) centres the crop.
    """
    if src_width <= 0 or src_height <= 0 or dst_width <= 0 or dst_height <= 0:
        raise ValueError("cover_crop needs positive source and destination sizes")

    src_ratio = src_width / src_height
    dst_ratio = dst_width / dst_height

    if src_ratio > dst_ratio:
        # Source is wider than destination, crop horizontally
        sh = src_height
        sw = sh * dst_ratio
    else:
        # Source is taller than destination, crop vertically
        sw = src_width
        sh = sw / dst_ratio

    sx = (src_width - sw) * offset.x / 100
    sy = (src_height - sh) * offset.y / 100
    return (sx, sy, sw, sh)


def cell_rect(row: float, col: float, row_span: int, col_span: int,
              cell_width: float, cell_height: float, gap: float,
              cols: int, rows: int) -> Tuple[int, int, int, int]:
    """
    Destination rectangle (dx, dy, dw, dh) of a grid cell.

    Internal edges are inset by half the gap so two neighbours are exactly
    one gap apart; edges on the canvas boundary get no inset.
    """
    half = gap / 2
    left = 0 if col <= 0 else half
    right = 0 if col + col_span >= cols else half
    top = 0 if row <= 0 else half
    bottom = 0 if row + row_span >= rows else half

    # round edges, not sizes, so neighbours never drift more than a pixel
    dx = round_half_up(col * cell_width + left)
    dy = round_half_up(row * cell_height + top)
    dw = round_half_up((col + col_span) * cell_width - right) - dx
    dh = round_half_up((row + row_span) * cell_height - bottom) - dy
    return (dx, dy, dw, dh)


def shape_mask(size: Tuple[int, int], shape: CellShape) -> Optional[Image.Image]:
    """Anti-aliased L-mode mask for a circle or hexagon filling `size`."""
    if shape == CellShape.RECT:
        return None
    w, h = size
    big = (w * MASK_SUPERSAMPLE, h * MASK_SUPERSAMPLE)
    mask = Image.new('L', big, 0)
    draw = ImageDraw.Draw(mask)
    cx, cy = big[0] / 2, big[1] / 2
    diameter = min(big)
    if shape == CellShape.CIRCLE:
        draw.ellipse(circle_bbox(cx, cy, diameter), fill=255)
    else:
        draw.polygon(hexagon_vertices(cx, cy, diameter), fill=255)
    return mask.resize(size, Image.Resampling.LANCZOS)


class CanvasComposer:
    """Paints a RenderSpec into a fresh Pillow image."""

    def __init__(self, config: AppConfig = None):
        self.config = config or get_config()

    def device_scale(self, spec: RenderSpec) -> float:
        if spec.uses_physical_size:
            # exact physical pixels, no supersampling
            return 1.0
        if spec.scale is not None:
            return float(spec.scale)
        return clamp(self.config.DEVICE_PIXEL_RATIO or 1.0,
                     self.config.MIN_DEVICE_SCALE,
                     self.config.MAX_DEVICE_SCALE)

    def output_size(self, spec: RenderSpec) -> Tuple[int, int]:
        """Pixel dimensions of the canvas for `spec`."""
        if spec.cols <= 0 or spec.rows <= 0:
            raise RenderError(
                f"Render grid must have at least one row and column, got {spec.cols}x{spec.rows}",
                details={'cols': spec.cols, 'rows': spec.rows}
            )

        if spec.uses_physical_size:
            return (round_half_up(spec.target_width_in * spec.dpi),
                    round_half_up(spec.target_height_in * spec.dpi))

        scale = self.device_scale(spec)
        css_width = round_half_up(spec.cols * spec.base_size)
        css_height = round_half_up(spec.rows * spec.base_size)
        return (round_half_up(css_width * scale), round_half_up(css_height * scale))

    def create_canvas(self, canvas_size: Tuple[int, int], background=None) -> Image.Image:
        """Create a new canvas filled with the background colour."""
        color = parse_color(background or self.config.BACKGROUND)
        mode = 'RGBA' if len(color) == 4 else 'RGB'
        canvas = Image.new(mode, canvas_size, color)
        logger.debug(f"Created canvas: {canvas_size} with background {color}")
        return canvas

    def paint_cover(self, canvas: Image.Image, image: Image.Image,
                    dest: Tuple[int, int, int, int], offset: Offset = CENTERED,
                    shape: CellShape = CellShape.RECT) -> None:
        """Cover-fit `image` into `dest` on `canvas`, optionally clipped."""
        dx, dy, dw, dh = dest
        if dw <= 0 or dh <= 0:
            logger.warning(f"Skipping paint into empty rectangle {dest}")
            return

        sx, sy, sw, sh = cover_crop(image.width, image.height, dw, dh, offset)
        tile = image.resize((dw, dh), Image.Resampling.LANCZOS, box=(sx, sy, sx + sw, sy + sh))

        mask = shape_mask((dw, dh), shape)
        if tile.mode == 'RGBA':
            alpha = tile.getchannel('A')
            mask = alpha if mask is None else ImageChops.multiply(alpha, mask)

        if canvas.mode != tile.mode:
            tile = tile.convert(canvas.mode)
        canvas.paste(tile, (dx, dy), mask)

    async def render(self, spec: RenderSpec, cells: CellStateView,
                     members: Sequence[Member] = ()) -> Image.Image:
        """
        Render `spec` into a new image.

        Cells without an assigned or fallback image are skipped. A cell whose
        image fails to load aborts the whole render with ImageLoadError.
        """
        start = time.perf_counter()
        width, height = self.output_size(spec)
        scale = self.device_scale(spec)
        canvas = self.create_canvas((width, height), spec.background)

        cell_width = width / spec.cols
        cell_height = height / spec.rows
        unit_x = width / (spec.cols * spec.base_size)
        unit_y = height / (spec.rows * spec.base_size)
        gap = spec.desired_gap_px
        stats = {'painted': 0, 'skipped': 0}

        logger.info(f"Rendering {spec.cols}x{spec.rows} layout to {width}x{height}px "
                    f"(scale {scale:g}, gap {gap:g}px)")

        async with ImageLoader(timeout=self.config.REQUEST_TIMEOUT) as loader:

            async def resolve(key: str):
                state = cells.style_of(key, members)
                if state is None:
                    stats['skipped'] += 1
                    return None, None
                image = await loader.load(key, state.source_ref)
                return image, state.offset

            async def draw_key(key: str, r: float, c: float, rs: int = 1, cs: int = 1) -> None:
                image, offset = await resolve(key)
                if image is None:
                    return
                dest = cell_rect(r, c, rs, cs, cell_width, cell_height, gap, spec.cols, spec.rows)
                self.paint_cover(canvas, image, dest, offset)
                stats['painted'] += 1

            async def draw_key_at(key: str, x: float, y: float, w: float, h: float,
                                  shape: CellShape = CellShape.RECT) -> None:
                image, offset = await resolve(key)
                if image is None:
                    return
                dest = (round_half_up(x), round_half_up(y), round_half_up(w), round_half_up(h))
                self.paint_cover(canvas, image, dest, offset, shape)
                stats['painted'] += 1

            helpers = DrawHelpers(draw_key, draw_key_at, canvas, width, height)

            if spec.draw is not None:
                result = spec.draw(helpers)
                if inspect.isawaitable(result):
                    await result
            else:
                for slot in spec.slots:
                    if isinstance(slot, GridSlot):
                        await draw_key(slot.key, slot.row, slot.col, slot.row_span, slot.col_span)
                    elif isinstance(slot, RingSlot):
                        diameter = slot.diameter * min(unit_x, unit_y)
                        await draw_key_at(
                            slot.key,
                            slot.cx * unit_x - diameter / 2,
                            slot.cy * unit_y - diameter / 2,
                            diameter,
                            diameter,
                            slot.shape,
                        )
                    else:
                        raise RenderError(f"Unsupported slot type: {type(slot).__name__}")

        elapsed = time.perf_counter() - start
        logger.info(f"Rendered {stats['painted']} cells ({stats['skipped']} empty) "
                    f"in {elapsed:.2f}s")
        return canvas


def create_canvas_composer(config: AppConfig = None) -> CanvasComposer:
    """Factory function to create a CanvasComposer instance."""
    return CanvasComposer(config)
