#!/usr/bin/env python3

"""
TMX Arena - tile map runtime

Usage:
    python -m tmx_arena <map.tmx> [spritesheet.png]

Controls:
    WASD/Arrows - Directions
    ESC/Q       - Quit
"""

import logging
import sys
from pathlib import Path

from .config import GameConfig
from .errors import TMXError


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    map_path = sys.argv[1]
    sprite_path = sys.argv[2] if len(sys.argv) >= 3 else None

    if not Path(map_path).exists():
        print(f"Error: File '{map_path}' not found")
        sys.exit(1)

    config = GameConfig()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    try:
        from .app import ArenaApp
        app = ArenaApp(map_path, config, sprite_path=sprite_path)
        app.run()
    except TMXError as e:
        logging.getLogger(__name__).error("Could not load level: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
