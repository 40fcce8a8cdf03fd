"""
TMX Arena - runtime core for tile-based 2D games

Requirements:
    pip install pygame numpy
"""

from .config import GameConfig
from .errors import (
    TMXError, DecodeError, UnsupportedEncodingError, MissingTileImageError,
    MissingLayerDataError, ResourceLoadError, TileLookupError,
)
from .map import (
    TMXMap, TileLayer, ObjectLayer, TileMapDecoder, load_tmx_map,
    SpriteSheet, TileSet, TileSource, resolve_gid, load_sprite_sheet,
    LayerCompositor, TileRot,
)
from .entities import Frame, Animation, AnimationState, Animator
from .input import ButtonState, ButtonStateTracker, InputHandler, Key, StdButton
from .session import Session, Position

__version__ = "1.0.0"
__all__ = [
    "GameConfig",
    "TMXError",
    "DecodeError",
    "UnsupportedEncodingError",
    "MissingTileImageError",
    "MissingLayerDataError",
    "ResourceLoadError",
    "TileLookupError",
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
    "Frame",
    "Animation",
    "AnimationState",
    "Animator",
    "ButtonState",
    "ButtonStateTracker",
    "InputHandler",
    "Key",
    "StdButton",
    "Session",
    "Position",
]
