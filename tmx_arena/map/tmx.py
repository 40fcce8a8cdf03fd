"""
TMX level decoding (Tiled Map Format, orthogonal maps)

=============================================================================
DOCUMENT STRUCTURE
=============================================================================

    <map width="10" height="10" tilewidth="16" tileheight="16">

        <tileset firstgid="1" name="terrain" tilewidth="16" tileheight="16">
            <image source="terrain.png"/>
        </tileset>
        <tileset firstgid="65" source="props.tsx"/>

        <layer id="1" name="Ground" width="10" height="10">
            <properties>
                <property name="solid" value="false"/>
            </properties>
            <data encoding="csv">1,2,3,...</data>
        </layer>

        <objectgroup id="2" name="Spawns">
            <object id="1" x="32" y="48"/>
        </objectgroup>
    </map>

Layer order is paint order: the compositor relies on the layers list
matching the document's child order exactly.

=============================================================================
CELL DATA
=============================================================================

Every cell is a 32-bit unsigned value:

    bit 31    28 27                                         0
       +--------+--------------------------------------------+
       | flags  |                  GID                        |
       +--------+--------------------------------------------+

    flags = value >> 28          (4 bits: diagonal, vertical, horizontal, -)
    gid   = value & 0x1FFFFFFF   (low 29 bits, 0 = empty cell)

Note that bit 28 is reported both as flag bit 0 and as the top bit of the
GID. Real maps never have GIDs that large, so this only matters for hand
crafted data.

Two encodings are supported:
- base64: little-endian uint32 words
- csv:    one decimal integer per cell, comma-separated

Compressed data (zlib, gzip, zstd, any compressionlevel > 0) is rejected.

=============================================================================
"""

import base64
import binascii
import logging
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pygame

from ..errors import (
    DecodeError, MissingLayerDataError, MissingTileImageError,
    ResourceLoadError, UnsupportedEncodingError,
)
from .tileset import ImageLoader, TileSet, TileSource, pygame_image_loader, resolve_gid, sheet_geometry

logger = logging.getLogger(__name__)

FLAG_SHIFT = 28
GID_MASK = 0x1FFFFFFF


# =============================================================================
# ATTRIBUTE HELPERS
# =============================================================================

def string_attr(elem: ET.Element, name: str, default: str = "") -> str:
    return elem.get(name, default)


def int_attr(elem: ET.Element, name: str, default: int = 0) -> int:
    """Integer attribute; missing or empty attributes give the default."""
    value = elem.get(name, "")
    if not value:
        return default
    try:
        return int(value, 10)
    except ValueError:
        raise DecodeError(
            f"<{elem.tag}> attribute {name}={value!r} is not an integer"
        ) from None


def parse_properties(elem: ET.Element) -> Dict[str, str]:
    """
    Read a nested <properties> block into a plain string mapping.

    XML format:
        <properties>
            <property name="solid" value="true"/>
        </properties>

    Values stay strings; typed interpretation is up to the game code.
    """
    properties = {}
    props_elem = elem.find('properties')
    if props_elem is not None:
        for prop_elem in props_elem.findall('property'):
            properties[string_attr(prop_elem, 'name')] = string_attr(prop_elem, 'value')
    return properties


def parse_document(path: Path) -> ET.Element:
    """Parse an XML document and return its root element."""
    try:
        return ET.parse(path).getroot()
    except OSError as e:
        raise ResourceLoadError(f"Could not read document {path}: {e}") from e
    except ET.ParseError as e:
        raise DecodeError(f"Malformed XML in {path}: {e}") from e


# =============================================================================
# CELL DATA
# =============================================================================

def split_cell_value(value):
    """
    Split raw 32-bit cell values into (flags, gid).

    Works on a single int or elementwise on a uint32 array.
    """
    return (value >> FLAG_SHIFT) & 0xF, value & GID_MASK


def decode_cell_data(data_elem: ET.Element) -> Tuple[np.ndarray, np.ndarray]:
    """
    Decode a <data> element into tile ids and rotation flags.

    Parameters:
    -----------
    data_elem : ET.Element
        The <data> element of a tile layer

    Returns:
    --------
    (tile_ids, tile_rotations) : uint32 and uint8 arrays of equal length,
    row-major, in document order
    """
    encoding = string_attr(data_elem, 'encoding')
    compression = string_attr(data_elem, 'compression')

    if compression or int_attr(data_elem, 'compressionlevel') > 0:
        raise UnsupportedEncodingError(
            f"compressed layer data is not supported ({compression or 'compressionlevel'})"
        )

    text = (data_elem.text or '').strip()

    if encoding == 'base64':
        # -----------------------------------------------------------------
        # BASE64: raw little-endian uint32 stream
        # -----------------------------------------------------------------
        try:
            raw_data = base64.b64decode(text)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"invalid base64 layer data: {e}") from e

        if len(raw_data) % 4:
            raise DecodeError(
                f"base64 layer data is {len(raw_data)} bytes, not a multiple of 4"
            )
        values = np.frombuffer(raw_data, dtype='<u4').astype(np.uint32)

    elif encoding == 'csv':
        # -----------------------------------------------------------------
        # CSV: "1,2,3,\n4,5,6"
        # -----------------------------------------------------------------
        # Empty tokens come from trailing commas and are skipped
        cells = []
        for token in text.split(','):
            token = token.strip()
            if not token:
                continue
            try:
                value = int(token, 10)
            except ValueError:
                raise DecodeError(f"invalid csv cell value {token!r}") from None
            if not 0 <= value <= 0xFFFFFFFF:
                raise DecodeError(f"csv cell value {value} does not fit in 32 bits")
            cells.append(value)
        values = np.array(cells, dtype=np.uint32)

    else:
        raise UnsupportedEncodingError(f"unknown layer data encoding: {encoding!r}")

    # Split the meta bits off the GIDs into a separate array
    flags, gids = split_cell_value(values)
    return gids.astype(np.uint32), flags.astype(np.uint8)


# =============================================================================
# LAYERS
# =============================================================================

@dataclass
class TileLayer:
    """
    Grid of tile references.

    tile_ids[row * width + col] is the GID of a cell (0 = empty), and
    tile_rotations holds that cell's flip flags.
    """
    name: str
    width: int
    height: int
    id: int = 0
    properties: Dict[str, str] = field(default_factory=dict)
    tile_ids: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint32))
    tile_rotations: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8))

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'TileLayer':
        """Parse a <layer> element."""
        layer = cls(
            name=string_attr(elem, 'name'),
            width=int_attr(elem, 'width'),
            height=int_attr(elem, 'height'),
            id=int_attr(elem, 'id'),
        )

        if int_attr(elem, 'compressionlevel') > 0:
            raise UnsupportedEncodingError(
                f"layer '{layer.name}': compressed layer data is not supported"
            )

        layer.properties = parse_properties(elem)

        data_elem = elem.find('data')
        if data_elem is None:
            raise MissingLayerDataError(f"layer '{layer.name}' has no data")

        try:
            layer.tile_ids, layer.tile_rotations = decode_cell_data(data_elem)
        except DecodeError as e:
            # Re-raise the same error type with the layer name attached
            raise type(e)(f"layer '{layer.name}': {e}") from e

        expected = layer.width * layer.height
        if layer.tile_ids.size != expected:
            raise DecodeError(
                f"layer '{layer.name}' has {layer.tile_ids.size} cells, "
                f"expected {layer.width}x{layer.height}={expected}"
            )
        return layer

    def tile_at(self, col: int, row: int) -> int:
        """GID at (col, row); -1 outside the layer."""
        if 0 <= col < self.width and 0 <= row < self.height:
            return int(self.tile_ids[row * self.width + col])
        return -1

    def rotation_at(self, col: int, row: int) -> int:
        if 0 <= col < self.width and 0 <= row < self.height:
            return int(self.tile_rotations[row * self.width + col])
        return 0


@dataclass
class ObjectLayer:
    """
    Object layer. The objects are kept as raw attribute dicts; only the
    layer's position in the paint order matters to the compositor.
    """
    name: str
    id: int = 0
    properties: Dict[str, str] = field(default_factory=dict)
    objects: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_xml(cls, elem: ET.Element) -> 'ObjectLayer':
        group = cls(
            name=string_attr(elem, 'name'),
            id=int_attr(elem, 'id'),
            properties=parse_properties(elem),
        )
        for obj_elem in elem.findall('object'):
            group.objects.append(dict(obj_elem.attrib))
        return group


Layer = Union[TileLayer, ObjectLayer]


# =============================================================================
# MAP
# =============================================================================

@dataclass
class TMXMap:
    """
    A decoded level.

    layers keeps document order (paint order); tile_sets is sorted by
    ascending first_gid. Neither is modified after loading.
    """
    width: int = 0                                   # Map width in tiles
    height: int = 0                                  # Map height in tiles
    tile_width: int = 0                              # Tile width in pixels
    tile_height: int = 0                             # Tile height in pixels
    tile_sets: List[TileSet] = field(default_factory=list)
    layers: List[Layer] = field(default_factory=list)
    path: Optional[Path] = None

    @property
    def pixel_width(self) -> int:
        return self.width * self.tile_width

    @property
    def pixel_height(self) -> int:
        return self.height * self.tile_height

    def resolve(self, gid: int) -> TileSource:
        return resolve_gid(self.tile_sets, gid)

    def tile_layers(self) -> List[TileLayer]:
        return [layer for layer in self.layers if isinstance(layer, TileLayer)]

    def get_layer_by_name(self, name: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None


# =============================================================================
# DECODER
# =============================================================================

class TileMapDecoder:
    """
    Loads TMX documents into TMXMap objects.

    Tile sets are decoded on a thread pool (each one may need to read a TSX
    document and an image), while the layers are decoded on the calling
    thread. The map is returned only once every tile set has loaded; the
    first failure aborts the whole load.

    Usage:
    ------
    ```python
    decoder = TileMapDecoder()
    level = decoder.load("maps/arena.tmx")
    ```
    """

    def __init__(self, image_loader: Optional[ImageLoader] = None,
                 max_workers: Optional[int] = None):
        """
        Parameters:
        -----------
        image_loader : callable, optional
            Function Path -> pygame.Surface used for tile set images.
            Defaults to pygame.image.load.
        max_workers : int, optional
            Thread count for tile set loading (None = executor default)
        """
        self.image_loader = image_loader or pygame_image_loader
        self.max_workers = max_workers

    def load(self, path: Union[str, Path]) -> TMXMap:
        path = Path(path)
        root = parse_document(path)

        if root.tag != 'map':
            raise DecodeError(f"{path}: expected <map> root element, found <{root.tag}>")

        tmx_map = TMXMap(
            width=int_attr(root, 'width'),
            height=int_attr(root, 'height'),
            tile_width=int_attr(root, 'tilewidth'),
            tile_height=int_attr(root, 'tileheight'),
            path=path,
        )
        logger.info("Loading TMX map %s (%dx%d tiles of %dx%d px)", path.name,
                    tmx_map.width, tmx_map.height, tmx_map.tile_width, tmx_map.tile_height)

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="tileset") as pool:
            futures = [pool.submit(self._load_tile_set, elem, path)
                       for elem in root.findall('tileset')]

            # Layers are decoded while the tile sets load; child order is paint order
            for elem in root:
                if elem.tag == 'layer':
                    tmx_map.layers.append(TileLayer.from_xml(elem))
                elif elem.tag == 'objectgroup':
                    tmx_map.layers.append(ObjectLayer.from_xml(elem))

            tile_sets = [future.result() for future in futures]

        tmx_map.tile_sets = sorted(tile_sets, key=lambda tile_set: tile_set.first_gid)

        logger.info("Loaded %d tile sets and %d layers from %s",
                    len(tmx_map.tile_sets), len(tmx_map.layers), path.name)
        return tmx_map

    def _load_tile_set(self, elem: ET.Element, owner_path: Path) -> TileSet:
        """
        Load one tile set, following an external TSX reference if present.

        The firstgid always comes from the map's <tileset> element. Image
        paths are relative to the document declaring the <image>.
        """
        first_gid = int_attr(elem, 'firstgid')

        source = string_attr(elem, 'source')
        if source:
            owner_path = owner_path.parent / source
            elem = parse_document(owner_path)

        name = string_attr(elem, 'name')
        tile_width = int_attr(elem, 'tilewidth')
        tile_height = int_attr(elem, 'tileheight') or tile_width
        if tile_width <= 0 or tile_height <= 0:
            raise DecodeError(f"tile set '{name}' in {owner_path.name} has no tile size")

        children = list(elem)
        image_elem = children[0] if children else None
        if image_elem is None or image_elem.tag != 'image':
            raise MissingTileImageError(
                f"expected image as first child of tile set '{name}' in {owner_path.name}"
            )

        image_source = string_attr(image_elem, 'source')
        if not image_source:
            raise MissingTileImageError(f"image of tile set '{name}' has no source")

        image = self.image_loader(owner_path.parent / image_source)

        margin = int_attr(elem, 'margin')
        spacing = int_attr(elem, 'spacing')
        columns, rows = sheet_geometry(image, tile_width, tile_height, margin, spacing)
        if not columns or not rows:
            raise DecodeError(
                f"image {image_source} of tile set '{name}' is smaller than one "
                f"{tile_width}x{tile_height} tile"
            )

        logger.debug("Loaded tile set '%s' (firstgid=%d, %dx%d tiles) from %s",
                     name, first_gid, columns, rows, image_source)

        return TileSet(
            image=image,
            tile_width=tile_width,
            tile_height=tile_height,
            columns=columns,
            rows=rows,
            flipped_image=pygame.transform.flip(image, True, False),
            margin=margin,
            spacing=spacing,
            first_gid=first_gid,
            name=name,
            source=image_source,
        )


def load_tmx_map(path: Union[str, Path], image_loader: Optional[ImageLoader] = None,
                 max_workers: Optional[int] = None) -> TMXMap:
    """Decode the TMX document at path. See TileMapDecoder."""
    return TileMapDecoder(image_loader, max_workers).load(path)
