"""
Host side of the motion pipeline.

Incoming deltas are untrusted. Each one is validated and clamped at the
boundary, low-pass filtered against the previous event of the same burst,
added to the live cursor position and applied only when the move is at
least a pixel.

Smoothing runs as a two-state machine keyed on the gap since the last
update:

    RESET      gap > reset_gap_ms (or no previous event); the clamped
               delta is stored as-is
    SMOOTHING  gap <= reset_gap_ms; smoothed = new * (1 - a) + prev * a
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import InvalidInput
from .input_handler import CursorControl, check_button

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    """Default clock: monotonic milliseconds."""
    return time.monotonic() * 1000.0


def clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


def _is_number(value: Any) -> bool:
    # JSON true/false arrive as bool, which is an int subclass
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_delta(delta_x: Any, delta_y: Any) -> Tuple[float, float]:
    """
    Check that both deltas are finite numbers.
    
    Raises:
        InvalidInput: for missing, non-numeric, NaN or infinite values
    """
    for value in (delta_x, delta_y):
        if not _is_number(value) or not math.isfinite(value):
            raise InvalidInput("Invalid mouse movement data")
    return float(delta_x), float(delta_y)


def clamp_delta(delta_x: float, delta_y: float, max_delta: float) -> Tuple[float, float]:
    """Clamp each axis independently to [-max_delta, max_delta]."""
    return (
        clamp(delta_x, -max_delta, max_delta),
        clamp(delta_y, -max_delta, max_delta),
    )


def round_half_up(value: float) -> int:
    """Round to the nearest pixel, halves away from negative infinity."""
    return math.floor(value + 0.5)


class SmoothingPhase(str, Enum):
    RESET = "reset"
    SMOOTHING = "smoothing"


@dataclass(frozen=True)
class SmoothingState:
    """Most recent smoothed delta and when it was produced."""
    timestamp_ms: float
    x: float
    y: float


class SmoothingFilter:
    """
    Exponential smoothing over a single shared state.
    
    ``update`` is the only writer and holds the lock for the whole
    read-modify-write, so concurrent callers always observe some serial
    order of updates.
    """
    
    def __init__(
        self,
        smoothing: float = 0.3,
        reset_gap_ms: float = 100,
        clock: Optional[Clock] = None
    ):
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        if reset_gap_ms < 0:
            raise ValueError(f"reset_gap_ms must be >= 0, got {reset_gap_ms}")
        
        self.smoothing = smoothing
        self.reset_gap_ms = reset_gap_ms
        self._clock = clock or monotonic_ms
        self._state: Optional[SmoothingState] = None
        self._lock = threading.Lock()
    
    @property
    def state(self) -> Optional[SmoothingState]:
        """Snapshot of the current state (None before the first event)."""
        with self._lock:
            return self._state
    
    def phase_for(self, previous: Optional[SmoothingState], now_ms: float) -> SmoothingPhase:
        """Transition taken by an event arriving at ``now_ms``."""
        if previous is None:
            return SmoothingPhase.RESET
        # A clock that stepped backwards counts as no gap at all
        elapsed = max(0.0, now_ms - previous.timestamp_ms)
        if elapsed > self.reset_gap_ms:
            return SmoothingPhase.RESET
        return SmoothingPhase.SMOOTHING
    
    def update(
        self,
        delta_x: float,
        delta_y: float,
        apply: Optional[Callable[[float, float], None]] = None
    ) -> Tuple[float, float, SmoothingPhase]:
        """
        Feed one clamped delta through the filter.
        
        ``apply`` receives the smoothed delta before it is stored. If it
        raises, the state is left as it was and the error propagates.
        
        Returns:
            (smoothed_x, smoothed_y, phase)
        """
        with self._lock:
            now = self._clock()
            previous = self._state
            phase = self.phase_for(previous, now)
            
            if phase is SmoothingPhase.RESET:
                x, y = delta_x, delta_y
            else:
                a = self.smoothing
                x = delta_x * (1 - a) + previous.x * a
                y = delta_y * (1 - a) + previous.y * a
            
            if apply is not None:
                apply(x, y)
            
            if previous is not None:
                now = max(now, previous.timestamp_ms)
            self._state = SmoothingState(timestamp_ms=now, x=x, y=y)
            return x, y, phase


@dataclass(frozen=True)
class MotionResult:
    position: Tuple[int, int]
    delta: Tuple[float, float]
    moved: bool
    phase: SmoothingPhase
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": {"x": self.position[0], "y": self.position[1]},
            "delta": {"x": self.delta[0], "y": self.delta[1]},
            "moved": self.moved,
        }


class MotionIntegrator:
    """
    Turns untrusted relative deltas into absolute cursor moves.
    
    Cursor calls are serialized by ``_cursor_lock``: the position read,
    the smoothing update and the move for one event happen together, so
    two requests never issue overlapping moves against the same base.
    """
    
    def __init__(
        self,
        cursor: CursorControl,
        max_delta: float = 100,
        smoothing: float = 0.3,
        min_move: float = 1,
        reset_gap_ms: float = 100,
        clock: Optional[Clock] = None,
        smoothing_filter: Optional[SmoothingFilter] = None
    ):
        if max_delta <= 0:
            raise ValueError(f"max_delta must be > 0, got {max_delta}")
        if min_move < 0:
            raise ValueError(f"min_move must be >= 0, got {min_move}")
        
        self.cursor = cursor
        self.max_delta = max_delta
        self.min_move = min_move
        self.filter = smoothing_filter or SmoothingFilter(smoothing, reset_gap_ms, clock)
        self._cursor_lock = threading.Lock()
    
    @classmethod
    def from_config(cls, config, cursor: CursorControl) -> "MotionIntegrator":
        """Build an integrator from a ``Config``."""
        return cls(
            cursor,
            max_delta=config.max_delta,
            smoothing=config.smoothing,
            min_move=config.min_move,
            reset_gap_ms=config.reset_gap_ms,
        )
    
    def handle_motion(self, delta_x: Any, delta_y: Any) -> MotionResult:
        """
        Apply one motion event.
        
        Raises:
            InvalidInput: if either delta is not a finite number
            CapabilityUnavailable: if the cursor cannot be read or moved
        """
        dx, dy = validate_delta(delta_x, delta_y)
        dx, dy = clamp_delta(dx, dy, self.max_delta)
        
        with self._cursor_lock:
            current_x, current_y = self.cursor.get_position()
            applied = {"position": (current_x, current_y), "moved": False}
            
            def apply(smooth_x: float, smooth_y: float) -> None:
                if abs(smooth_x) > self.min_move or abs(smooth_y) > self.min_move:
                    new_x = round_half_up(current_x + smooth_x)
                    new_y = round_half_up(current_y + smooth_y)
                    self.cursor.move_to(new_x, new_y)
                    applied["position"] = (new_x, new_y)
                    applied["moved"] = True
            
            # The filter only commits once the move went through
            smooth_x, smooth_y, phase = self.filter.update(dx, dy, apply)
        
        moved = applied["moved"]
        
        logger.debug(
            "motion %s: in=(%.2f, %.2f) out=(%.2f, %.2f) moved=%s",
            phase.value, dx, dy, smooth_x, smooth_y, moved
        )
        return MotionResult(applied["position"], (smooth_x, smooth_y), moved, phase)
    
    def handle_click(self, button: Any) -> str:
        """
        Click ``"left"`` or ``"right"``.
        
        Returns:
            Confirmation message
        """
        button = check_button(button)
        with self._cursor_lock:
            self.cursor.click(button)
        return f"Performed {button} click"
    
    def query_position(self) -> Tuple[int, int]:
        """Read-only: current cursor position."""
        with self._cursor_lock:
            return self.cursor.get_position()
    
    def query_status(self) -> Dict[str, Any]:
        """Read-only connectivity probe."""
        x, y = self.query_position()
        return {
            "position": {"x": x, "y": y},
            "backend": self.cursor.name,
        }
