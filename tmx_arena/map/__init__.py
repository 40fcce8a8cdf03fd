"""Level decoding and tile layer compositing"""

from .tmx import TMXMap, TileLayer, ObjectLayer, TileMapDecoder, load_tmx_map
from .tileset import SpriteSheet, TileSet, TileSource, resolve_gid, load_sprite_sheet
from .compositor import LayerCompositor, TileRot

__all__ = [
    "TMXMap",
    "TileLayer",
    "ObjectLayer",
    "TileMapDecoder",
    "load_tmx_map",
    "SpriteSheet",
    "TileSet",
    "TileSource",
    "resolve_gid",
    "load_sprite_sheet",
    "LayerCompositor",
    "TileRot",
]
