"""
Sprite animation playback

=============================================================================
ANIMATION OVERVIEW
=============================================================================

An Animation is shared, read-only data: a sprite sheet, a drawing offset
and a list of frames, each showing one sheet tile for a number of
milliseconds.

    walk = Animation(sheet, frames=[Frame(4, 100), Frame(5, 100), Frame(6, 100)])

Every entity playing an animation owns an AnimationState: which frame is
showing and since when. One Animation can be played by any number of
entities at different points in the sequence.

=============================================================================
ANIMATION TIMING
=============================================================================

Playback is driven by wall-clock time in milliseconds, not by frame count:

    while now - frame_start > current_frame.duration:
        frame_start += current_frame.duration
        frame_index  = (frame_index + 1) % frame_count

frame_start is moved forward by the frame's duration instead of being set
to now, so no time is lost when a frame runs a little long. The loop
catches up through several frames after a long gap (a slow frame, a
debugger pause) instead of moving a single step.

=============================================================================
CYCLE HOOK
=============================================================================

Each time frame_index wraps back to 0 the state's on_cycle hook is called,
synchronously, before advance() returns. Game code uses it to chain
animations, e.g. return to idle when an attack finishes:

    def back_to_idle(state):
        state.switch(idle, state.frame_start)

During the hook, frame_start is the moment the cycle completed, so
switching at that time keeps the timeline exact.

A single-frame animation wraps every time its frame's duration elapses,
so its hook fires once per elapsed duration.

=============================================================================
SUSPEND / RESUME
=============================================================================

When the window loses focus the Animator stops advancing. On resume every
state's frame_start is shifted forward by the time spent suspended, so the
animations continue where they stopped instead of skipping all the frames
that would have played in the meantime.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterator, Optional, Sequence, Tuple

import pygame

from ..map.tileset import SpriteSheet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    tile_index: int          # Tile within the sprite sheet
    duration: float          # Milliseconds


@dataclass(frozen=True)
class Animation:
    """
    Shared frame sequence.

    Raises ValueError when there are no frames or a frame has a
    non-positive duration (which would never let playback advance).
    """
    sheet: SpriteSheet
    frames: Tuple[Frame, ...]
    offset_x: int = 0
    offset_y: int = 0

    def __post_init__(self):
        frames = tuple(self.frames)
        if not frames:
            raise ValueError("animation needs at least one frame")
        for frame in frames:
            if not frame.duration > 0:
                raise ValueError(f"frame duration must be positive, got {frame.duration}")
        # Frozen dataclass: bypass __setattr__ to store the normalized tuple
        object.__setattr__(self, 'frames', frames)

    @classmethod
    def from_tiles(cls, sheet: SpriteSheet, tile_indices: Sequence[int], duration: float,
                   offset_x: int = 0, offset_y: int = 0) -> 'Animation':
        """Animation with the same duration for every frame."""
        return cls(
            sheet=sheet,
            frames=tuple(Frame(index, duration) for index in tile_indices),
            offset_x=offset_x,
            offset_y=offset_y,
        )

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def total_duration(self) -> float:
        return sum(frame.duration for frame in self.frames)


CycleHook = Callable[['AnimationState'], None]


class AnimationState:
    """
    Playback state of one entity.

    Attributes:
    -----------
    animation : Animation
        What is playing
    frame_index : int
        Current frame (0 <= frame_index < animation.frame_count)
    frame_start : float
        Time (ms) at which the current frame started
    on_cycle : callable, optional
        Called with this state every time playback wraps to frame 0
    """

    def __init__(self, animation: Animation, now: float,
                 on_cycle: Optional[CycleHook] = None):
        self.animation = animation
        self.frame_index = 0
        self.frame_start = now
        self.on_cycle = on_cycle

    @property
    def current_frame(self) -> Frame:
        return self.animation.frames[self.frame_index]

    @property
    def tile_index(self) -> int:
        return self.current_frame.tile_index

    def advance(self, now: float) -> int:
        """
        Move playback up to time now.

        Returns:
        --------
        int : number of frame steps taken (0 when the frame is still showing)
        """
        steps = 0
        frame = self.current_frame

        while now - self.frame_start > frame.duration:
            self.frame_start += frame.duration
            self.frame_index = (self.frame_index + 1) % self.animation.frame_count
            steps += 1

            if self.frame_index == 0 and self.on_cycle is not None:
                # The hook may switch to another animation
                self.on_cycle(self)

            frame = self.current_frame

        return steps

    def switch(self, animation: Animation, now: float):
        """
        Start playing an animation from its first frame.

        Always restarts, also when animation is the one already playing.
        """
        self.animation = animation
        self.frame_index = 0
        self.frame_start = now

    def shift(self, delta: float):
        """Move the timeline forward by delta ms (used after a pause)."""
        self.frame_start += delta

    def draw(self, target: pygame.Surface, x: float, y: float, mirrored: bool = False):
        """Draw the current frame with the animation's offset applied."""
        animation = self.animation
        animation.sheet.draw(
            target,
            self.tile_index,
            int(x) + animation.offset_x,
            int(y) + animation.offset_y,
            mirrored,
        )

    def __repr__(self):
        return (f"AnimationState(frame_index={self.frame_index}, "
                f"frame_start={self.frame_start}, frames={self.animation.frame_count})")


# =============================================================================
# ANIMATOR
# =============================================================================

class Animator:
    """
    Owns the animation state of every animated entity.

    Entities are identified by any hashable id (the session uses names).
    update() advances them all once per frame.

    Usage:
    ------
    ```python
    animator = Animator()
    animator.play("player", idle, now)

    # every frame
    animator.update(now)

    # window focus lost / regained
    animator.suspend(now)
    animator.resume(now)
    ```
    """

    def __init__(self):
        self.states: Dict[Hashable, AnimationState] = {}
        self.suspended_at: Optional[float] = None

    @property
    def suspended(self) -> bool:
        return self.suspended_at is not None

    def play(self, entity_id: Hashable, animation: Animation, now: float,
             on_cycle: Optional[CycleHook] = None) -> AnimationState:
        """
        Start an animation for an entity, restarting it if already playing.

        An existing on_cycle hook is kept unless a new one is given.
        """
        state = self.states.get(entity_id)
        if state is None:
            state = AnimationState(animation, now, on_cycle)
            self.states[entity_id] = state
        else:
            state.switch(animation, now)
            if on_cycle is not None:
                state.on_cycle = on_cycle
        return state

    def stop(self, entity_id: Hashable):
        self.states.pop(entity_id, None)

    def state(self, entity_id: Hashable) -> Optional[AnimationState]:
        return self.states.get(entity_id)

    def update(self, now: float):
        """Advance every state; does nothing while suspended."""
        if self.suspended:
            return
        # Hooks may start or stop animations, iterate over a snapshot
        for state in list(self.states.values()):
            state.advance(now)

    def suspend(self, now: float):
        if self.suspended_at is None:
            self.suspended_at = now
            logger.debug("Animations suspended at %.0f ms", now)

    def resume(self, now: float):
        if self.suspended_at is None:
            return
        paused = now - self.suspended_at
        for state in self.states.values():
            state.shift(paused)
        self.suspended_at = None
        logger.debug("Animations resumed after %.0f ms", paused)

    def __contains__(self, entity_id: Hashable) -> bool:
        return entity_id in self.states

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.states)
