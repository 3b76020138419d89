"""
Geometry helpers for collage templates.

Pure functions only: ring radii and angles for the hexagonal and circular
templates, the square-spiral lattice walk, and the outline shapes used to
clip ring cells. Nothing here touches images or state.
"""

import math
from typing import Iterator, List, Tuple


# Spiral directions as (d_row, d_col): right, down, left, up
SPIRAL_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (0, 1),
    (1, 0),
    (0, -1),
    (-1, 0),
)


def ring_radius(ring: int, unit_spacing: float) -> float:
    """Distance of ring `ring` from the centre."""
    return ring * unit_spacing


def clear_ring_spacing(minimum: float,
                       center_diameter: float,
                       cell_diameter: float,
                       margin: float) -> float:
    """Ring spacing at least `minimum` that keeps ring 1 off the centre cell.

    Ring 1 sits one spacing out, so its cells clear the centre once the
    spacing covers both radii plus the margin.
    """
    return max(minimum, (center_diameter + cell_diameter) / 2 + margin)


def ring_angle(index: int, count: int) -> float:
    """Angle in radians of slot `index` when `count` slots share a ring."""
    if count <= 0:
        return 0.0
    return 2 * math.pi * index / count


def ring_point(ring: int,
               index: int,
               count: int,
               unit_spacing: float,
               center: Tuple[float, float] = (0.0, 0.0)) -> Tuple[float, float]:
    """(x, y) of slot `index` of `count` on ring `ring`."""
    cx, cy = center
    if ring == 0:
        return (cx, cy)
    radius = ring_radius(ring, unit_spacing)
    angle = ring_angle(index, count)
    return (cx + radius * math.cos(angle), cy + radius * math.sin(angle))


def hex_ring_capacity(ring: int) -> int:
    """Slots on a hexagonal ring: 1 at the centre, 6r after that."""
    if ring <= 0:
        return 1
    return 6 * ring


def circle_ring_capacity(radius: float, cell_diameter: float, margin: float) -> int:
    """How many cells of `cell_diameter` fit around a circle of `radius`.

    Always at least one for a positive radius so that ring filling keeps
    making progress even with oversized cells.
    """
    if radius <= 0:
        return 1
    pitch = cell_diameter + margin
    if pitch <= 0:
        raise ValueError("cell_diameter + margin must be positive")
    return max(1, int(math.floor(2 * math.pi * radius / pitch)))


def spiral_walk(start: Tuple[int, int] = (0, 0)) -> Iterator[Tuple[int, int]]:
    """Yield lattice (row, col) coordinates along a square spiral.

    The walk starts at `start`, then moves right 1, down 1, left 2, up 2,
    right 3, ... The step length grows after every down and every up move,
    so every lattice point is visited exactly once and the Chebyshev
    distance from `start` never decreases.
    """
    row, col = start
    yield (row, col)

    steps = 1
    direction = 0
    while True:
        d_row, d_col = SPIRAL_DIRECTIONS[direction]
        for _ in range(steps):
            row += d_row
            col += d_col
            yield (row, col)
        direction = (direction + 1) % 4
        if direction % 2 == 0:
            steps += 1


def chebyshev_ring(row: int, col: int, origin: Tuple[int, int] = (0, 0)) -> int:
    """Square-ring index of a lattice point around `origin`."""
    return max(abs(row - origin[0]), abs(col - origin[1]))


def hexagon_vertices(cx: float, cy: float, diameter: float) -> List[Tuple[float, float]]:
    """Six vertices of a flat-topped hexagon inscribed in `diameter`."""
    r = diameter / 2
    return [
        (cx + r * math.cos(i * math.pi / 3), cy + r * math.sin(i * math.pi / 3))
        for i in range(6)
    ]


def circle_bbox(cx: float, cy: float, diameter: float) -> Tuple[float, float, float, float]:
    """(left, top, right, bottom) box of a circle."""
    r = diameter / 2
    return (cx - r, cy - r, cx + r, cy + r)
