"""
Pre-rendering of static tile layers

=============================================================================
BACKGROUND / FOREGROUND SPLIT
=============================================================================

Tile layers never change while a level is running, so they are painted
once into two map-sized surfaces. A frame then costs two blits plus the
dynamic sprites, instead of one blit per visible tile:

    layers (document order)        surface
    -----------------------        ----------
    Ground        (tiles)    →     background
    Decoration    (tiles)    →     background
    Spawns        (objects)  ──    switch: everything below is foreground
    Treetops      (tiles)    →     foreground
    Roofs         (tiles)    →     foreground

The first object layer marks where sprites are drawn. The switch is one
way: later tile layers stay in the foreground even after more objects.

    frame = background + sprites + foreground

=============================================================================
FLIP FLAGS
=============================================================================

Each cell carries 4 flag bits (see tmx.py):

    bit 0 (1): diagonal flip   (swap x and y axes)
    bit 1 (2): vertical flip
    bit 2 (4): horizontal flip

The diagonal flip is applied first, then horizontal, then vertical.
Horizontal-only tiles come straight from the sheet's pre-mirrored copy.

=============================================================================
"""

import logging
from enum import IntFlag
from typing import Tuple

import numpy as np
import pygame

from .tileset import TileSource, resolve_gid
from .tmx import ObjectLayer, TileLayer, TMXMap

logger = logging.getLogger(__name__)


class TileRot(IntFlag):
    NONE = 0
    DIAGONAL = 1
    VERTICAL = 2
    HORIZONTAL = 4


def transform_tile(tile: pygame.Surface, flags: int) -> pygame.Surface:
    """Apply a cell's flip flags to a single tile surface."""
    if flags & TileRot.DIAGONAL:
        # Transpose: rotate 90° counter-clockwise, then flip vertically
        tile = pygame.transform.flip(pygame.transform.rotate(tile, 90), False, True)
    if flags & TileRot.HORIZONTAL:
        tile = pygame.transform.flip(tile, True, False)
    if flags & TileRot.VERTICAL:
        tile = pygame.transform.flip(tile, False, True)
    return tile


class LayerCompositor:
    """
    Paints a map's tile layers into a background and a foreground surface.

    Both surfaces are built in the constructor and are not modified
    afterwards. Build a new compositor when the level is reloaded.

    Usage:
    ------
    ```python
    compositor = LayerCompositor(tmx_map)

    # every frame
    compositor.draw_background(screen)
    draw_sprites(screen)
    compositor.draw_foreground(screen)
    ```
    """

    def __init__(self, tmx_map: TMXMap):
        self.map = tmx_map
        self.width = tmx_map.pixel_width
        self.height = tmx_map.pixel_height

        self.background = pygame.Surface((self.width, self.height), pygame.SRCALPHA)
        self.foreground = pygame.Surface((self.width, self.height), pygame.SRCALPHA)

        # Number of cells painted (both surfaces)
        self.tiles_drawn = 0

        self._build()

    def _build(self):
        is_background = True

        for layer in self.map.layers:
            if isinstance(layer, ObjectLayer):
                is_background = False
            elif isinstance(layer, TileLayer):
                target = self.background if is_background else self.foreground
                self.draw_layer_into(layer, target)

        logger.info("Composited %d tiles into %dx%d background/foreground",
                    self.tiles_drawn, self.width, self.height)

    def draw_layer_into(self, layer: TileLayer, surface: pygame.Surface):
        """Draw every non-empty cell of a tile layer onto a surface."""
        tile_width = self.map.tile_width
        tile_height = self.map.tile_height

        # Empty cells (GID 0) are fully transparent: skip them
        for offset in np.flatnonzero(layer.tile_ids):
            row, col = divmod(int(offset), layer.width)
            self.draw_tile(
                surface,
                int(layer.tile_ids[offset]),
                int(layer.tile_rotations[offset]),
                col * tile_width,
                row * tile_height,
            )

    def draw_tile(self, surface: pygame.Surface, gid: int, flags: int, x: int, y: int):
        source = resolve_gid(self.map.tile_sets, gid)
        sheet = source.sheet

        if flags & (TileRot.DIAGONAL | TileRot.VERTICAL) or (
                flags & TileRot.HORIZONTAL and sheet.flipped_image is None):
            surface.blit(transform_tile(self._cut_tile(source), flags), (x, y))
        elif flags & TileRot.HORIZONTAL:
            surface.blit(sheet.flipped_image, (x, y),
                         sheet.tile_rect(source.local_index, mirrored=True))
        else:
            surface.blit(sheet.image, (x, y), source.rect)

        self.tiles_drawn += 1

    @staticmethod
    def _cut_tile(source: TileSource) -> pygame.Surface:
        tile = pygame.Surface((source.width, source.height), pygame.SRCALPHA)
        tile.blit(source.sheet.image, (0, 0), source.rect)
        return tile

    # =========================================================================
    # PER-FRAME DRAWING
    # =========================================================================

    def draw_background(self, target: pygame.Surface, offset: Tuple[int, int] = (0, 0)):
        target.blit(self.background, offset)

    def draw_foreground(self, target: pygame.Surface, offset: Tuple[int, int] = (0, 0)):
        target.blit(self.foreground, offset)
