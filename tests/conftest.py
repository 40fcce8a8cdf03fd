"""Shared fixtures. pygame runs headless."""

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

from pathlib import Path  # noqa: E402

import numpy as np  # noqa: E402
import pygame  # noqa: E402
import pytest  # noqa: E402

from tmx_arena.errors import ResourceLoadError  # noqa: E402
from tmx_arena.map.tileset import TileSet  # noqa: E402
from tmx_arena.map.tmx import TileLayer  # noqa: E402

TRANSPARENT = (0, 0, 0, 0)


def color_for(index):
    """Distinct opaque colour for each atlas tile."""
    return (index % 256, 100, 200, 255)


def atlas_surface(columns, rows, tile_width=16, tile_height=None):
    tile_height = tile_height or tile_width
    surface = pygame.Surface((columns * tile_width, rows * tile_height), pygame.SRCALPHA)
    for index in range(columns * rows):
        col, row = index % columns, index // columns
        surface.fill(color_for(index),
                     pygame.Rect(col * tile_width, row * tile_height, tile_width, tile_height))
    return surface


class RecordingImageLoader:
    """Serves generated atlases by file name and records requested paths."""

    def __init__(self):
        self.images = {}
        self.requested = []

    def add(self, name, surface):
        self.images[name] = surface

    def __call__(self, path: Path):
        self.requested.append(path)
        try:
            return self.images[path.name]
        except KeyError:
            raise ResourceLoadError(f"Could not load image at {path}") from None


@pytest.fixture
def tile_color():
    return color_for


@pytest.fixture
def make_atlas():
    return atlas_surface


@pytest.fixture
def image_loader():
    loader = RecordingImageLoader()
    loader.add("terrain.png", atlas_surface(8, 2))
    return loader


@pytest.fixture
def write_file(tmp_path):
    def _write(name, text):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def make_tile_set():
    def _make(surface, first_gid=1, tile_width=16, tile_height=None, name="tiles"):
        tile_height = tile_height or tile_width
        return TileSet(
            image=surface,
            tile_width=tile_width,
            tile_height=tile_height,
            columns=surface.get_width() // tile_width,
            rows=surface.get_height() // tile_height,
            flipped_image=pygame.transform.flip(surface, True, False),
            first_gid=first_gid,
            name=name,
        )
    return _make


@pytest.fixture
def make_layer():
    def _make(width, height, cells=None, rotations=None, name="layer"):
        """cells / rotations: {(col, row): value}"""
        tile_ids = np.zeros(width * height, dtype=np.uint32)
        tile_rotations = np.zeros(width * height, dtype=np.uint8)
        for (col, row), gid in (cells or {}).items():
            tile_ids[row * width + col] = gid
        for (col, row), flags in (rotations or {}).items():
            tile_rotations[row * width + col] = flags
        return TileLayer(name=name, width=width, height=height,
                         tile_ids=tile_ids, tile_rotations=tile_rotations)
    return _make
