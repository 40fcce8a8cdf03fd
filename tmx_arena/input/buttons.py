"""
Button state tracking with half-transition counting

=============================================================================
WHY COUNT HALF-TRANSITIONS?
=============================================================================

Device events arrive between frames, but game logic only looks at input
once per frame. Comparing "down now" with "down last frame" misses a key
that is pressed and released between two frames:

    frame N        events               frame N+1
    down=False     down, up             down=False    → looks untouched!

Every level change (up→down or down→up) is a half-transition. Counting
them keeps the information:

    half_transition_count  down   meaning this frame
    ---------------------  -----  -------------------------------
    0                      any    nothing happened
    1                      True   pressed
    1                      False  released
    2                      False  pressed and released again
    2                      True   released and pressed again

The counters are cleared once per frame, after the game logic has read
them (reset_per_frame_data). The levels are kept.

=============================================================================
EVENT ORDERING
=============================================================================

Key repeat sends extra "down" events while a key is held. Very rarely the
last repeated "down" carries the same timestamp as the "up" that ends the
press but is delivered after it, which would leave the key stuck down.
So a down edge only counts if its timestamp is strictly newer than the
last event seen for that key. Up edges always apply: a release is never
thrown away.

=============================================================================
"""

from dataclasses import dataclass, replace
from typing import Dict, Hashable, Iterator


@dataclass
class ButtonState:
    """
    State of one key or button.

    down:                  current level
    half_transition_count: level changes since the last per-frame reset
    last_event:            timestamp (ms) of the newest accepted event
    """
    down: bool = False
    half_transition_count: int = 0
    last_event: float = float('-inf')


class ButtonStateTracker:
    """
    Tracks any number of keys/buttons, addressed by a stable code.

    Usage:
    ------
    ```python
    keys = ButtonStateTracker()

    # from the event handler
    keys.edge(pygame.K_SPACE, True, timestamp)

    # in the frame logic
    if keys.pressed(pygame.K_SPACE):
        player.jump()

    # end of frame
    keys.reset_per_frame_data()
    ```
    """

    def __init__(self):
        self._buttons: Dict[Hashable, ButtonState] = {}

    # =========================================================================
    # EVENTS
    # =========================================================================

    def edge(self, key: Hashable, pressed: bool, timestamp: float) -> bool:
        """
        Record a raw down/up event.

        Parameters:
        -----------
        key : hashable
            Key code or button index
        pressed : bool
            True for a down event, False for an up event
        timestamp : float
            Event time in ms from a monotonic clock

        Returns:
        --------
        bool : True if the level changed
        """
        state = self._buttons.get(key)
        if state is None:
            state = self._buttons[key] = ButtonState()

        if pressed and timestamp <= state.last_event:
            # Stale down delivered after a newer event
            return False

        state.last_event = max(state.last_event, timestamp)

        if state.down == pressed:
            # Key repeat, or a release of a key that is already up
            return False

        state.down = pressed
        state.half_transition_count += 1
        return True

    # =========================================================================
    # QUERIES
    # =========================================================================

    def key_state(self, key: Hashable) -> ButtonState:
        """Snapshot of a key's state (a copy, safe to keep)."""
        state = self._buttons.get(key)
        return replace(state) if state is not None else ButtonState()

    def down(self, key: Hashable) -> bool:
        state = self._buttons.get(key)
        return state is not None and state.down

    def half_transitions(self, key: Hashable) -> int:
        state = self._buttons.get(key)
        return state.half_transition_count if state is not None else 0

    def pressed(self, key: Hashable) -> bool:
        """True if the key went down at least once since the last reset."""
        state = self._buttons.get(key)
        if state is None or state.half_transition_count == 0:
            return False
        return state.down or state.half_transition_count >= 2

    def released(self, key: Hashable) -> bool:
        """True if the key went up at least once since the last reset."""
        state = self._buttons.get(key)
        if state is None or state.half_transition_count == 0:
            return False
        return not state.down or state.half_transition_count >= 2

    # =========================================================================
    # RESETS
    # =========================================================================

    def reset_per_frame_data(self):
        """Clear the transition counters. Call once per frame, after the logic."""
        for state in self._buttons.values():
            state.half_transition_count = 0

    def reset(self):
        """Forget everything (levels included), e.g. when focus is regained."""
        self._buttons.clear()

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._buttons)
