"""
Keyboard and gamepad input from pygame events

=============================================================================
EVENT FLOW
=============================================================================

    pygame event queue
          │
          ▼
    InputHandler.handle_event()
          ├── KEYDOWN / KEYUP             → keyboard tracker (key code)
          ├── JOYBUTTONDOWN / JOYBUTTONUP → gamepad tracker (button index)
          ├── JOYHATMOTION                → gamepad tracker (d-pad buttons)
          ├── JOYDEVICEADDED / REMOVED    → pick / drop the gamepad
          └── WINDOWFOCUSLOST / GAINED    → active flag + callback

The game logic then reads levels and edges from the trackers, or the
direction shortcuts (left/right/up/down) that combine the bound keys with
the d-pad.

=============================================================================
D-PAD AS HAT SWITCH
=============================================================================

Most controllers report the d-pad as a hat: one (x, y) value instead of
four buttons.

    x: -1 = left,  1 = right
    y:  1 = up,   -1 = down

Each hat event is turned into edges on the four StdButton.DP_* buttons, so
the d-pad behaves exactly like the other buttons.

=============================================================================
"""

import logging
import time
from enum import IntEnum
from typing import Callable, Dict, Optional, Tuple

import pygame

from ..config import GameConfig
from .buttons import ButtonStateTracker

logger = logging.getLogger(__name__)


class Key(IntEnum):
    """Keyboard codes used by the game (pygame key constants)."""
    NONE = 0

    UP = pygame.K_UP
    DOWN = pygame.K_DOWN
    LEFT = pygame.K_LEFT
    RIGHT = pygame.K_RIGHT

    BACKSPACE = pygame.K_BACKSPACE
    TAB = pygame.K_TAB
    RETURN = pygame.K_RETURN
    ESC = pygame.K_ESCAPE
    SPACE = pygame.K_SPACE

    PAGEUP = pygame.K_PAGEUP
    PAGEDOWN = pygame.K_PAGEDOWN
    HOME = pygame.K_HOME
    END = pygame.K_END
    DELETE = pygame.K_DELETE

    A = pygame.K_a
    D = pygame.K_d
    Q = pygame.K_q
    S = pygame.K_s
    W = pygame.K_w
    X = pygame.K_x
    Z = pygame.K_z


class StdButton(IntEnum):
    """
    Standard gamepad layout.

                 [L1]                  [R1]
                 [L2]                  [R2]
                                    (FACE_UP)
        [DP_UP]                 (FACE_LEFT) (FACE_RIGHT)
    [DP_LEFT] [DP_RIGHT]           (FACE_DOWN)
       [DP_DOWN]    [META] [HOME] [OPTIONS]
    """
    FACE_DOWN = 0
    FACE_RIGHT = 1
    FACE_LEFT = 2
    FACE_UP = 3

    L1 = 4
    R1 = 5
    L2 = 6
    R2 = 7

    META = 8
    OPTIONS = 9

    L3 = 10
    R3 = 11

    DP_UP = 12
    DP_DOWN = 13
    DP_LEFT = 14
    DP_RIGHT = 15

    HOME = 16
    EXTRA = 17


ActiveCallback = Callable[[bool], None]


def event_time() -> float:
    """Monotonic timestamp in ms for events that carry none."""
    return time.perf_counter() * 1000.0


class InputHandler:
    """
    Owns the keyboard and gamepad trackers and feeds them from pygame.

    Only one gamepad is tracked: the first one connected.
    """

    def __init__(self, config: Optional[GameConfig] = None):
        config = config or GameConfig()

        self.keyboard = ButtonStateTracker()
        self.gamepad = ButtonStateTracker()

        self.bindings: Dict[str, Tuple[int, ...]] = {
            'left': tuple(config.keys_left),
            'right': tuple(config.keys_right),
            'up': tuple(config.keys_up),
            'down': tuple(config.keys_down),
        }

        # Gamepad in use (pygame instance id) and its Joystick object.
        # pygame only delivers events for joysticks that are kept open.
        self.joystick_id: Optional[int] = None
        self._joystick = None

        self.active = True
        self.on_active_change: Optional[ActiveCallback] = None

    # =========================================================================
    # EVENTS
    # =========================================================================

    def handle_event(self, event: pygame.event.Event, now: Optional[float] = None) -> bool:
        """
        Route one pygame event.

        Parameters:
        -----------
        event : pygame.event.Event
        now : float, optional
            Event timestamp in ms. Defaults to a monotonic clock read.

        Returns:
        --------
        bool : True if the event was an input event handled here
        """
        if now is None:
            now = event_time()

        if event.type == pygame.KEYDOWN:
            self.keyboard.edge(event.key, True, now)
        elif event.type == pygame.KEYUP:
            self.keyboard.edge(event.key, False, now)

        elif event.type in (pygame.JOYBUTTONDOWN, pygame.JOYBUTTONUP):
            if not self._from_gamepad(event):
                return False
            self.gamepad.edge(event.button, event.type == pygame.JOYBUTTONDOWN, now)

        elif event.type == pygame.JOYHATMOTION:
            if not self._from_gamepad(event) or event.hat != 0:
                return False
            self._hat_to_dpad(event.value, now)

        elif event.type == pygame.JOYDEVICEADDED:
            self._connect(event.device_index)
        elif event.type == pygame.JOYDEVICEREMOVED:
            if event.instance_id == self.joystick_id:
                logger.info("Gamepad disconnected")
                self.joystick_id = None
                self._joystick = None
                self.gamepad.reset()

        elif event.type == pygame.WINDOWFOCUSLOST:
            self.set_active(False)
        elif event.type == pygame.WINDOWFOCUSGAINED:
            self.set_active(True)

        else:
            return False
        return True

    def _from_gamepad(self, event: pygame.event.Event) -> bool:
        # Until a device is announced, accept any joystick
        return self.joystick_id is None or event.instance_id == self.joystick_id

    def _hat_to_dpad(self, value: Tuple[int, int], now: float):
        x, y = value
        self.gamepad.edge(StdButton.DP_LEFT, x < 0, now)
        self.gamepad.edge(StdButton.DP_RIGHT, x > 0, now)
        self.gamepad.edge(StdButton.DP_UP, y > 0, now)
        self.gamepad.edge(StdButton.DP_DOWN, y < 0, now)

    def _connect(self, device_index: int):
        if self.joystick_id is not None:
            return
        joystick = pygame.joystick.Joystick(device_index)
        self._joystick = joystick
        self.joystick_id = joystick.get_instance_id()
        logger.info("Gamepad found: %s (ID: %d)", joystick.get_name(), self.joystick_id)

    # =========================================================================
    # FOCUS
    # =========================================================================

    def set_active(self, active: bool):
        """
        Record window focus. Regaining focus clears all button state, since
        releases that happened while unfocused were never delivered.
        """
        if active == self.active:
            return
        self.active = active
        if active:
            self.reset()
        logger.debug("Input %s", "active" if active else "inactive")
        if self.on_active_change is not None:
            self.on_active_change(active)

    # =========================================================================
    # DIRECTIONS
    # =========================================================================

    def _direction(self, name: str, button: StdButton) -> bool:
        if any(self.keyboard.down(key) for key in self.bindings[name]):
            return True
        return self.gamepad.down(button)

    @property
    def left(self) -> bool:
        return self._direction('left', StdButton.DP_LEFT)

    @property
    def right(self) -> bool:
        return self._direction('right', StdButton.DP_RIGHT)

    @property
    def up(self) -> bool:
        return self._direction('up', StdButton.DP_UP)

    @property
    def down(self) -> bool:
        return self._direction('down', StdButton.DP_DOWN)

    def movement(self) -> Tuple[int, int]:
        """(dx, dy) in -1..1 from the direction inputs."""
        dx = int(self.right) - int(self.left)
        dy = int(self.down) - int(self.up)
        return dx, dy

    # =========================================================================
    # RESETS
    # =========================================================================

    def reset_per_frame_data(self):
        self.keyboard.reset_per_frame_data()
        self.gamepad.reset_per_frame_data()

    def reset(self):
        self.keyboard.reset()
        self.gamepad.reset()
