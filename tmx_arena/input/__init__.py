"""Keyboard and gamepad state"""

from .buttons import ButtonState, ButtonStateTracker
from .handler import InputHandler, Key, StdButton

__all__ = ["ButtonState", "ButtonStateTracker", "InputHandler", "Key", "StdButton"]
