"""
Export trigger: render -> PNG encode -> lossless optimize -> file.

The file only appears once every step succeeded. Bytes are written to a
temporary sibling first and renamed into place, so a failed export never
leaves a partial image behind.
"""

import asyncio
import io
import os
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

import aiofiles
from PIL import Image
from loguru import logger

from .composer import CanvasComposer
from .config import AppConfig, get_config
from .errors import CollageError, ExportError, ImageLoadError
from .models import Member, RenderSpec
from .optimizer import LosslessOptimizer, OptimizationResult
from .store import CellStateView


@dataclass
class ExportResult:
    path: str
    data: bytes
    width: int
    height: int
    optimization: OptimizationResult

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def encode_png(image: Image.Image, dpi: Optional[int] = None) -> bytes:
    """Encode a rendered canvas as PNG, tagging the physical DPI when given."""
    save_kwargs = {'format': 'PNG', 'compress_level': 6}
    if dpi:
        save_kwargs['dpi'] = (dpi, dpi)
    buffer = io.BytesIO()
    image.save(buffer, **save_kwargs)
    return buffer.getvalue()


def resolve_output_path(filename: str, output_folder: str) -> str:
    """Place bare file names in the output folder and force a .png suffix."""
    if not filename or not filename.strip():
        raise ExportError(str(filename), "empty file name")
    filename = filename.strip()
    if not filename.lower().endswith('.png'):
        filename += '.png'
    if os.path.dirname(filename):
        return filename
    return os.path.join(output_folder, filename)


async def write_atomic(path: str, data: bytes) -> None:
    """Write `data` to `path` through a temp file and a rename."""
    directory = os.path.dirname(path) or '.'
    os.makedirs(directory, exist_ok=True)
    tmp_path = os.path.join(directory, f".{os.path.basename(path)}.{uuid.uuid4().hex}.tmp")
    try:
        async with aiofiles.open(tmp_path, 'wb') as f:
            await f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


async def export_image(filename: str,
                       spec: RenderSpec,
                       store_view: CellStateView,
                       members: Sequence[Member] = (),
                       config: AppConfig = None,
                       composer: Optional[CanvasComposer] = None,
                       optimizer: Optional[LosslessOptimizer] = None) -> ExportResult:
    """
    Render `spec` and write it as a PNG.

    Raises:
        ExportError: rendering, encoding or writing failed. When a photo
            could not be decoded, `cell_key` names its cell.
    """
    config = config or get_config()
    composer = composer or CanvasComposer(config)
    path = resolve_output_path(filename, config.OUTPUT_FOLDER)
    start = time.perf_counter()

    logger.info(f"Exporting {path}")

    try:
        image = await composer.render(spec, store_view, members)

        loop = asyncio.get_running_loop()
        dpi = spec.dpi if spec.uses_physical_size else None
        data = await loop.run_in_executor(None, encode_png, image, dpi)

        if config.OPTIMIZE_ENABLED:
            optimizer = optimizer or LosslessOptimizer(compress_level=config.OPTIMIZE_COMPRESS_LEVEL)
            optimization = await optimizer.optimize_async(data)
        else:
            optimization = OptimizationResult(data, len(data), len(data), False, "disabled")

        await write_atomic(path, optimization.data)

    except ImageLoadError as e:
        logger.error(f"Export failed on cell {e.key}: {e.message}")
        raise ExportError(path, e.message, cell_key=e.key) from e
    except CollageError as e:
        logger.error(f"Export failed: {e.message}")
        raise ExportError(path, e.message) from e
    except OSError as e:
        logger.error(f"Could not write {path}: {e}")
        raise ExportError(path, f"{type(e).__name__}: {e}") from e

    elapsed = time.perf_counter() - start
    logger.info(f"Exported {path}: {image.width}x{image.height}px, "
                f"{len(optimization.data):,} bytes in {elapsed:.2f}s")

    return ExportResult(
        path=path,
        data=optimization.data,
        width=image.width,
        height=image.height,
        optimization=optimization,
    )


def export_image_sync(filename: str, spec: RenderSpec, store_view: CellStateView,
                      members: Sequence[Member] = (), config: AppConfig = None,
                      **kwargs) -> ExportResult:
    """Blocking wrapper around export_image for scripts and the CLI."""
    return asyncio.run(export_image(filename, spec, store_view, members, config, **kwargs))
