"""
Runtime configuration
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import pygame

DARK_GRAY = (64, 64, 64)


@dataclass
class GameConfig:
    """
    Settings shared by the session and the window loop.

    All values have defaults; override by keyword:

        config = GameConfig(screen_width=640, screen_height=480, fps=30)
    """
    # -------------------------------------------------------------------------
    # DISPLAY
    # -------------------------------------------------------------------------
    screen_width: int = 1280
    screen_height: int = 720
    fps: int = 60                                    # Frame rate cap
    background_color: Tuple[int, int, int] = DARK_GRAY

    # -------------------------------------------------------------------------
    # LOADING
    # -------------------------------------------------------------------------
    tileset_workers: Optional[int] = None            # None = executor default

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # KEY BINDINGS (arrows + WASD)
    # -------------------------------------------------------------------------
    keys_left: Tuple[int, ...] = field(default=(pygame.K_LEFT, pygame.K_a))
    keys_right: Tuple[int, ...] = field(default=(pygame.K_RIGHT, pygame.K_d))
    keys_up: Tuple[int, ...] = field(default=(pygame.K_UP, pygame.K_w))
    keys_down: Tuple[int, ...] = field(default=(pygame.K_DOWN, pygame.K_s))
    keys_quit: Tuple[int, ...] = field(default=(pygame.K_ESCAPE, pygame.K_q))

    @property
    def screen_size(self) -> Tuple[int, int]:
        return self.screen_width, self.screen_height
