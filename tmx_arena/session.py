"""
Game session: the loaded level, its entities and the per-frame tick

=============================================================================
ENTITIES AS CAPABILITY TABLES
=============================================================================

There is no Entity class hierarchy. An entity is a name, and each
capability is a separate table keyed by that name:

    positions  name → Position        where to draw it
    actors     name → callable        per-frame update logic
    animator   name → AnimationState  what it looks like

Each system only walks the table it needs: actors run every actor,
the animator advances every animation, and drawing needs an entity that
is both positioned and animated. An entity can have any combination.

=============================================================================
FRAME ORDER
=============================================================================

    1. actors (game logic; reads input edges)
    2. animations advance
    3. draw: background, sprites, foreground
    4. input per-frame counters cleared

=============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

import pygame

from .config import GameConfig
from .entities.animation import Animation, AnimationState, Animator, CycleHook
from .input.handler import InputHandler
from .map.compositor import LayerCompositor
from .map.tileset import ImageLoader
from .map.tmx import TMXMap, load_tmx_map

logger = logging.getLogger(__name__)


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0
    mirrored: bool = False       # Draw facing left


Actor = Callable[['Session', float], None]
Clock = Callable[[], float]


class Session:
    """
    Everything that lives for the duration of one level.

    Systems receive the session explicitly instead of reaching for module
    globals, so each one can be tested with a session of its own.
    """

    def __init__(self, tmx_map: TMXMap, input_handler: Optional[InputHandler] = None,
                 config: Optional[GameConfig] = None, clock: Optional[Clock] = None):
        """
        Parameters:
        -----------
        tmx_map : TMXMap
            A fully decoded level
        input_handler : InputHandler, optional
            Created from config if not given
        config : GameConfig, optional
        clock : callable, optional
            Returns the current time in ms. Defaults to pygame.time.get_ticks.
        """
        self.config = config or GameConfig()
        self.clock = clock or pygame.time.get_ticks

        self.map = tmx_map
        self.compositor = LayerCompositor(tmx_map)

        self.input = input_handler or InputHandler(self.config)
        self.input.on_active_change = self.set_active

        self.animator = Animator()
        self.positions: Dict[str, Position] = {}
        self.actors: Dict[str, Actor] = {}

        self.frame_count = 0

    @classmethod
    def load(cls, path: Union[str, Path], config: Optional[GameConfig] = None,
             image_loader: Optional[ImageLoader] = None, **kwargs) -> 'Session':
        """
        Decode a level and start a session on it.

        Any decode or resource error propagates: no session exists for a
        level that failed to load.
        """
        config = config or GameConfig()
        tmx_map = load_tmx_map(path, image_loader=image_loader,
                               max_workers=config.tileset_workers)
        return cls(tmx_map, config=config, **kwargs)

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def add_entity(self, name: str, position: Optional[Position] = None,
                   actor: Optional[Actor] = None, animation: Optional[Animation] = None,
                   on_cycle: Optional[CycleHook] = None, now: Optional[float] = None):
        """Register an entity's capabilities. Missing ones are left out."""
        if position is not None:
            self.positions[name] = position
        if actor is not None:
            self.actors[name] = actor
        if animation is not None:
            self.play(name, animation, now, on_cycle)
        logger.debug("Entity '%s' added", name)

    def remove_entity(self, name: str):
        self.positions.pop(name, None)
        self.actors.pop(name, None)
        self.animator.stop(name)

    def play(self, name: str, animation: Animation, now: Optional[float] = None,
             on_cycle: Optional[CycleHook] = None) -> AnimationState:
        """Start (or restart) an entity's animation."""
        return self.animator.play(name, animation, self._now(now), on_cycle)

    # =========================================================================
    # FRAME
    # =========================================================================

    def frame(self, target: pygame.Surface, now: Optional[float] = None,
              offset: Tuple[int, int] = (0, 0)):
        """Run one tick and draw it onto target."""
        now = self._now(now)

        for actor in list(self.actors.values()):
            actor(self, now)

        self.animator.update(now)

        self.compositor.draw_background(target, offset)
        self.draw_sprites(target, offset)
        self.compositor.draw_foreground(target, offset)

        self.input.reset_per_frame_data()
        self.frame_count += 1

    def draw_sprites(self, target: pygame.Surface, offset: Tuple[int, int] = (0, 0)):
        ox, oy = offset
        for name, state in self.animator.states.items():
            position = self.positions.get(name)
            if position is not None:
                state.draw(target, position.x + ox, position.y + oy, position.mirrored)

    def set_active(self, active: bool, now: Optional[float] = None):
        """Pause animations while the window is unfocused."""
        now = self._now(now)
        if active:
            self.animator.resume(now)
        else:
            self.animator.suspend(now)

    @property
    def active(self) -> bool:
        return self.input.active

    def _now(self, now: Optional[float]) -> float:
        return self.clock() if now is None else now
