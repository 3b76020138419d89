"""
Best-effort lossless PNG optimization.

Re-encodes an exported PNG with Pillow's optimizer at the highest
compression level and keeps the result only when it is strictly smaller
and decodes to exactly the same pixels. Any failure keeps the original
bytes; nothing here is allowed to fail an export.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from PIL import Image
from loguru import logger

from .errors import OptimizationError


Recompressor = Callable[[bytes], bytes]


@dataclass
class OptimizationResult:
    data: bytes
    original_size: int
    optimized_size: int
    applied: bool
    reason: str = ""

    @property
    def saved_percent(self) -> float:
        if self.original_size <= 0:
            return 0.0
        return (self.original_size - self.optimized_size) / self.original_size * 100


def pillow_recompress(data: bytes, compress_level: int = 9) -> bytes:
    """Re-encode PNG bytes with Pillow's optimizer."""
    with Image.open(io.BytesIO(data)) as img:
        if img.format != 'PNG':
            raise OptimizationError(f"Expected PNG input, got {img.format}")
        img.load()
        params = {'optimize': True, 'compress_level': compress_level}
        if 'dpi' in img.info:
            params['dpi'] = img.info['dpi']
        buffer = io.BytesIO()
        img.save(buffer, format='PNG', **params)
        return buffer.getvalue()


def same_pixels(a: bytes, b: bytes) -> bool:
    """True when two encoded images decode to identical pixels."""
    with Image.open(io.BytesIO(a)) as img_a, Image.open(io.BytesIO(b)) as img_b:
        if img_a.size != img_b.size:
            return False
        mode = 'RGBA' if 'A' in img_a.getbands() or 'A' in img_b.getbands() else 'RGB'
        return np.array_equal(np.asarray(img_a.convert(mode)), np.asarray(img_b.convert(mode)))


class LosslessOptimizer:
    """Shrinks PNG exports without changing a single pixel."""

    def __init__(self, recompress: Optional[Recompressor] = None,
                 compress_level: int = 9, verify: bool = True):
        self.compress_level = compress_level
        self.recompress = recompress or (lambda data: pillow_recompress(data, self.compress_level))
        self.verify = verify

    def optimize(self, data: bytes) -> OptimizationResult:
        original_size = len(data)
        logger.info("Attempting lossless PNG optimization...")

        try:
            candidate = self.recompress(data)
            if not candidate:
                return self._keep(data, "optimizer returned empty output")
            if len(candidate) >= original_size:
                return self._keep(data, "no savings achieved")
            if self.verify and not same_pixels(data, candidate):
                return self._keep(data, "optimized image differs from original")
        except Exception as e:
            return self._keep(data, f"optimization skipped due to error: {type(e).__name__}: {e}")

        result = OptimizationResult(candidate, original_size, len(candidate), True)
        logger.info(f"Optimized PNG: {original_size / 1024:.1f}KB -> "
                    f"{result.optimized_size / 1024:.1f}KB ({result.saved_percent:.1f}% saved)")
        return result

    async def optimize_async(self, data: bytes) -> OptimizationResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.optimize, data)

    def _keep(self, data: bytes, reason: str) -> OptimizationResult:
        logger.info(f"Keeping original PNG: {reason}")
        return OptimizationResult(data, len(data), len(data), False, reason)
