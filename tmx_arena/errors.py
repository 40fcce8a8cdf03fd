"""
Exceptions raised while loading and resolving levels

=============================================================================
ERROR TAXONOMY
=============================================================================

    TMXError
    ├── DecodeError                  malformed or unsupported document
    │   ├── UnsupportedEncodingError   compressed data, unknown encoding
    │   ├── MissingTileImageError      tileset without leading <image>
    │   └── MissingLayerDataError      <layer> without <data>
    ├── ResourceLoadError            document or image could not be read
    └── TileLookupError              GID with no owning tile (corrupt data)

Decode and resource errors abort the whole map load. Nothing is retried.
Once a map is loaded, the only error left is TileLookupError, which means
the in-memory map is inconsistent and should never be caught and ignored.

=============================================================================
"""


class TMXError(Exception):
    """Base class for every error raised by tmx_arena."""


class DecodeError(TMXError):
    """The level document is malformed or uses an unsupported feature."""


class UnsupportedEncodingError(DecodeError):
    """Layer data is compressed or uses an encoding other than base64/csv."""


class MissingTileImageError(DecodeError):
    """A tileset does not declare an <image> as its first child."""


class MissingLayerDataError(DecodeError):
    """A tile layer has no <data> block."""


class ResourceLoadError(TMXError):
    """An underlying document or image could not be read."""


class TileLookupError(TMXError, LookupError):
    """A GID does not map to any tile of the loaded tile sets."""
