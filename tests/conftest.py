"""
Pytest configuration and fixtures for the collage engine tests.

Provides generated sample photos, members, a temp-dir backed configuration
and small helpers shared across the suite.
"""

import base64
import io
import shutil
import tempfile
from pathlib import Path
from typing import List, Tuple

import pytest
from PIL import Image, ImageDraw

from collage.config import AppConfig, reset_config
from collage.models import Member


PALETTE = [
    (220, 60, 60), (60, 160, 60), (60, 90, 220), (230, 200, 40),
    (160, 60, 200), (40, 190, 200), (240, 130, 30), (120, 120, 120),
    (250, 110, 180), (30, 30, 30),
]


def make_image_bytes(size: Tuple[int, int] = (40, 30),
                     color=(200, 50, 50),
                     fmt: str = 'PNG') -> bytes:
    """Encode a solid-colour image."""
    img = Image.new('RGB', size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_split_image_bytes(size: Tuple[int, int], left=(255, 0, 0), right=(0, 0, 255)) -> bytes:
    """Left half one colour, right half another; shows which part a crop kept."""
    img = Image.new('RGB', size, color=left)
    draw = ImageDraw.Draw(img)
    draw.rectangle([size[0] // 2, 0, size[0], size[1]], fill=right)
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def to_data_url(data: bytes, mime: str = 'image/png') -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def make_members(count: int) -> List[Member]:
    return [
        Member(
            id=f"m{i}",
            name=f"Member {i}",
            photo_ref=to_data_url(make_image_bytes((40, 30), PALETTE[i % len(PALETTE)])),
        )
        for i in range(count)
    ]


@pytest.fixture
def temp_work_dir():
    """Create a temporary work directory for test processing."""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def test_config(temp_work_dir):
    """Configuration writing into the temp directory."""
    return AppConfig(
        ENV='testing',
        DEBUG=True,
        LOG_LEVEL='DEBUG',
        LOG_FILE=str(temp_work_dir / 'logs' / 'test.log'),
        OUTPUT_FOLDER=str(temp_work_dir / 'exports'),
        BASE_CELL_PX=20,
        DESIRED_GAP_PX=4,
        DEVICE_PIXEL_RATIO=1.0,
        REQUEST_TIMEOUT=5,
    )


@pytest.fixture(autouse=True)
def _fresh_global_config():
    """Keep the cached global config from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def red_png():
    return make_image_bytes((40, 30), (255, 0, 0))


@pytest.fixture
def sample_members():
    return make_members(9)


@pytest.fixture
def sample_photo_files(temp_work_dir):
    """A few JPEG photos on disk."""
    photos_dir = temp_work_dir / 'photos'
    photos_dir.mkdir()
    paths = []
    for i, color in enumerate(PALETTE[:4]):
        path = photos_dir / f"photo_{i}.jpg"
        Image.new('RGB', (60, 80), color=color).save(path, 'JPEG', quality=90)
        paths.append(path)
    return paths
