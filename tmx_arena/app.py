"""
TMX Arena - pygame window and frame loop
"""

import logging
from pathlib import Path
from typing import Optional

import pygame

from .config import GameConfig
from .entities.animation import Animation
from .map.tileset import load_sprite_sheet
from .session import Position, Session

logger = logging.getLogger(__name__)

# Frame rate while the window is unfocused (events are still pumped)
IDLE_FPS = 10


class ArenaApp:
    """Opens a window, loads a level and runs the frame loop."""

    def __init__(self, map_path: str, config: Optional[GameConfig] = None,
                 sprite_path: Optional[str] = None):
        self.config = config or GameConfig()
        self.map_path = Path(map_path)

        pygame.init()
        self.screen = pygame.display.set_mode(self.config.screen_size, pygame.RESIZABLE)
        pygame.display.set_caption(f"TMX Arena - {self.map_path.name}")

        # A failed load raises here, before any frame runs
        try:
            self.session = Session.load(self.map_path, self.config)

            level = self.session.map
            logger.info("Map size: %dx%d, tile size: %dx%d",
                        level.width, level.height, level.tile_width, level.tile_height)

            if sprite_path:
                self._add_sprite(sprite_path)
        except Exception:
            pygame.quit()
            raise

        self.clock = pygame.time.Clock()
        self.running = True

    def _add_sprite(self, sprite_path: str):
        """Place an animated sprite (first sheet row) in the middle of the map."""
        level = self.session.map
        sheet = load_sprite_sheet(sprite_path, level.tile_width, level.tile_height)
        animation = Animation.from_tiles(sheet, range(sheet.columns), duration=150)
        self.session.add_entity(
            "sprite",
            position=Position(level.pixel_width / 2, level.pixel_height / 2),
            animation=animation,
        )
        logger.info("Loaded spritesheet: %s (%d frames)", Path(sprite_path).name, sheet.columns)

    def handle_events(self):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN and event.key in self.config.keys_quit:
                self.running = False
            else:
                self.session.input.handle_event(event)

    def run(self):
        try:
            while self.running:
                self.handle_events()

                if not self.session.active:
                    self.clock.tick(IDLE_FPS)
                    continue

                self.screen.fill(self.config.background_color)
                self.session.frame(self.screen)
                pygame.display.flip()
                self.clock.tick(self.config.fps)
        finally:
            pygame.quit()
