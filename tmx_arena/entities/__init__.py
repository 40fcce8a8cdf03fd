"""
Sprite animation for entities
"""

from .animation import Frame, Animation, AnimationState, Animator

__all__ = [
    "Frame",
    "Animation",
    "AnimationState",
    "Animator",
]
