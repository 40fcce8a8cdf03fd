"""
Sprite sheets, tile sets and GID resolution

=============================================================================
SPRITE SHEETS
=============================================================================

A sprite sheet is one image cut into a uniform grid of tiles. Tiles are
numbered row by row, starting at 0 in the top-left corner:

    +---+---+---+---+
    | 0 | 1 | 2 | 3 |     columns = image_width // tile_width
    +---+---+---+---+     rows    = image_height // tile_height
    | 4 | 5 | 6 | 7 |
    +---+---+---+---+     column = index % columns
                          row    = index // columns

Every sheet also keeps a horizontally mirrored copy of its image, made once
at load time. Mirrored sprites (a character facing left) then cost one blit
from the mirrored copy instead of a flip per frame.

=============================================================================
TILE SETS AND GIDs
=============================================================================

A tile set is a sprite sheet that owns a contiguous range of Global tile
IDs starting at its firstgid:

    Tileset A (firstgid=1):   GIDs 1..64
    Tileset B (firstgid=65):  GIDs 65..

A GID belongs to the tile set with the greatest firstgid <= GID, and its
local index within that set is GID - firstgid.

=============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import pygame

from ..errors import DecodeError, ResourceLoadError, TileLookupError

logger = logging.getLogger(__name__)

ImageLoader = Callable[[Path], pygame.Surface]


def pygame_image_loader(path: Path) -> pygame.Surface:
    """Load an image from disk with pygame, wrapping failures."""
    try:
        return pygame.image.load(str(path))
    except (pygame.error, FileNotFoundError) as e:
        raise ResourceLoadError(f"Could not load image at {path}: {e}") from e


# =============================================================================
# SPRITE SHEET
# =============================================================================

@dataclass(frozen=True)
class SpriteSheet:
    """
    An image sliced into equally sized tiles.

    Shared read-only data: animations and tile sets reference a sheet,
    they never modify it.
    """
    image: pygame.Surface                    # Source image
    tile_width: int                          # Tile width in pixels
    tile_height: int                         # Tile height in pixels
    columns: int                             # Tiles per row
    rows: int                                # Tile rows
    flipped_image: Optional[pygame.Surface] = None   # Horizontal mirror of image
    margin: int = 0                          # Pixels around the edge
    spacing: int = 0                         # Pixels between tiles

    @property
    def tile_count(self) -> int:
        return self.columns * self.rows

    def tile_rect(self, index: int, mirrored: bool = False) -> pygame.Rect:
        """
        Source rectangle of a tile.

        Parameters:
        -----------
        index : int
            Tile index within the sheet (0-based, row-major)
        mirrored : bool
            Return the rectangle inside flipped_image instead of image.
            Mirroring the whole sheet also mirrors tile positions, so the
            x coordinate is measured from the right edge.
        """
        col = index % self.columns
        row = index // self.columns
        x = self.margin + col * (self.tile_width + self.spacing)
        y = self.margin + row * (self.tile_height + self.spacing)
        if mirrored:
            x = self.image.get_width() - x - self.tile_width
        return pygame.Rect(x, y, self.tile_width, self.tile_height)

    def draw(self, target: pygame.Surface, index: int, x: int, y: int,
             mirrored: bool = False):
        """Blit one tile at integer position (x, y), optionally mirrored."""
        if not mirrored:
            target.blit(self.image, (x, y), self.tile_rect(index))
        elif self.flipped_image is not None:
            target.blit(self.flipped_image, (x, y), self.tile_rect(index, mirrored=True))
        else:
            tile = pygame.Surface((self.tile_width, self.tile_height), pygame.SRCALPHA)
            tile.blit(self.image, (0, 0), self.tile_rect(index))
            target.blit(pygame.transform.flip(tile, True, False), (x, y))


def sheet_geometry(image: pygame.Surface, tile_width: int, tile_height: int,
                   margin: int = 0, spacing: int = 0):
    """Return (columns, rows) of the tile grid that fits in an image."""
    width, height = image.get_size()
    columns = (width - 2 * margin + spacing) // (tile_width + spacing)
    rows = (height - 2 * margin + spacing) // (tile_height + spacing)
    return max(columns, 0), max(rows, 0)


def load_sprite_sheet(path: Union[str, Path], tile_width: int,
                      tile_height: Optional[int] = None,
                      image_loader: Optional[ImageLoader] = None) -> SpriteSheet:
    """
    Load an image and describe it as a sprite sheet.

    Parameters:
    -----------
    path : str or Path
        Image file
    tile_width, tile_height : int
        Tile size in pixels. tile_height defaults to tile_width.
    image_loader : callable, optional
        Function Path -> Surface. Defaults to pygame.image.load.

    Raises:
    -------
    ResourceLoadError : the image could not be read
    DecodeError : the image does not hold a single whole tile
    """
    loader = image_loader or pygame_image_loader
    tile_height = tile_height or tile_width
    image = loader(Path(path))
    columns, rows = sheet_geometry(image, tile_width, tile_height)
    if not columns or not rows:
        raise DecodeError(
            f"sprite sheet {Path(path).name} is smaller than one {tile_width}x{tile_height} tile"
        )
    return SpriteSheet(
        image=image,
        tile_width=tile_width,
        tile_height=tile_height,
        columns=columns,
        rows=rows,
        flipped_image=pygame.transform.flip(image, True, False),
    )


# =============================================================================
# TILE SET
# =============================================================================

@dataclass(frozen=True)
class TileSet(SpriteSheet):
    """
    Sprite sheet owning a range of GIDs.

    Created once when the map loads and immutable afterwards. The tile sets
    of a map are kept sorted by ascending first_gid.
    """
    first_gid: int = 1                       # Smallest GID in this set
    name: str = ""                           # Tileset name
    source: str = ""                         # Image path (for diagnostics)


@dataclass(frozen=True)
class TileSource:
    """Where a GID's pixels live: a sheet and a rectangle inside it."""
    sheet: SpriteSheet
    x: int
    y: int
    width: int
    height: int
    local_index: int

    @property
    def rect(self) -> pygame.Rect:
        return pygame.Rect(self.x, self.y, self.width, self.height)


def owning_tile_set(tile_sets: Sequence[TileSet], gid: int) -> TileSet:
    """
    Find the tile set that owns a GID.

    Scans from the last (highest firstgid) tile set backwards and stops at
    the first one whose firstgid <= gid. A GID below every firstgid falls
    back to the first tile set.
    """
    if not tile_sets:
        raise TileLookupError(f"GID {gid} cannot be resolved: map has no tile sets")

    index = len(tile_sets) - 1
    while index > 0:
        if gid >= tile_sets[index].first_gid:
            break
        index -= 1
    return tile_sets[index]


def resolve_gid(tile_sets: Sequence[TileSet], gid: int) -> TileSource:
    """
    Resolve a GID to its source rectangle.

    Parameters:
    -----------
    tile_sets : sequence of TileSet
        The map's tile sets, ascending by first_gid
    gid : int
        Global tile ID, flags already stripped. Must be > 0.

    Returns:
    --------
    TileSource : owning sheet, pixel rectangle and local index

    Raises:
    -------
    ValueError : gid is 0 or negative (empty cells are never resolved)
    TileLookupError : the GID lies outside its owning tile set (below the
        first tile set's firstgid, or past the end of its tile set)
    """
    if gid <= 0:
        raise ValueError(f"GID must be positive, got {gid}")

    tile_set = owning_tile_set(tile_sets, gid)
    local_index = gid - tile_set.first_gid

    if not 0 <= local_index < tile_set.tile_count:
        raise TileLookupError(
            f"GID {gid} is outside tile set '{tile_set.name}' "
            f"(firstgid={tile_set.first_gid}, {tile_set.tile_count} tiles)"
        )

    rect = tile_set.tile_rect(local_index)
    return TileSource(
        sheet=tile_set,
        x=rect.x,
        y=rect.y,
        width=rect.width,
        height=rect.height,
        local_index=local_index,
    )
