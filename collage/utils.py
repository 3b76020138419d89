"""
Utility functions for the collage engine
"""

import math
import numbers
from typing import Tuple, Union
from PIL import ImageColor
from loguru import logger


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching browser canvas maths"""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]"""
    return max(low, min(high, value))


def clamp_percent(value: float) -> float:
    """Clamp a percentage offset into [0, 100]"""
    if value != value:  # NaN
        return 50.0
    return clamp(float(value), 0.0, 100.0)


def parse_color(color: Union[str, Tuple[int, ...]]) -> Tuple[int, ...]:
    """Parse a CSS-style colour into an RGB or RGBA tuple"""
    if isinstance(color, tuple):
        return color
    try:
        return ImageColor.getrgb(color)
    except ValueError:
        logger.warning(f"Unrecognised background colour '{color}', using white")
        return (255, 255, 255)


def coerce_member_count(value) -> int:
    """Interpret a member count; anything non-positive or non-integral is 0"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, numbers.Integral):
        value = int(value)
    elif isinstance(value, numbers.Real):
        if not math.isfinite(value) or not float(value).is_integer():
            return 0
        value = int(value)
    else:
        return 0
    return value if value > 0 else 0
