"""
Controller side of the motion pipeline.

Converts a stream of touch positions into velocity-weighted deltas:

    delta = raw_delta * sensitivity * clamp(speed * speed_scale, lo, hi)

where speed is distance / elapsed milliseconds since the previous sample.
"""

import inspect
import logging
import math
from dataclasses import dataclass
from typing import Optional

from .integrator import clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TouchSample:
    x: float
    y: float
    timestamp_ms: float


@dataclass(frozen=True)
class MotionDelta:
    delta_x: float = 0.0
    delta_y: float = 0.0
    
    @property
    def is_zero(self) -> bool:
        return self.delta_x == 0 and self.delta_y == 0
    
    def to_dict(self) -> dict:
        """Request body for ``POST /mouse``."""
        return {"deltaX": self.delta_x, "deltaY": self.delta_y}


ZERO_DELTA = MotionDelta()


class MotionSampler:
    """
    Single-gesture touch tracker with adjustable sensitivity.
    
    Callbacks are expected from one UI thread, one at a time.
    """
    
    def __init__(
        self,
        base_sensitivity: float = 1.5,
        min_sensitivity: float = 0.5,
        max_sensitivity: float = 5.0,
        sensitivity_step: float = 1.2,
        min_speed_multiplier: float = 0.5,
        max_speed_multiplier: float = 2.0,
        speed_scale: float = 10,
        dead_zone: float = 0.1
    ):
        if min_sensitivity > max_sensitivity:
            raise ValueError("min_sensitivity must not exceed max_sensitivity")
        if min_speed_multiplier > max_speed_multiplier:
            raise ValueError("min_speed_multiplier must not exceed max_speed_multiplier")
        if sensitivity_step <= 1:
            raise ValueError(f"sensitivity_step must be > 1, got {sensitivity_step}")
        
        self.min_sensitivity = min_sensitivity
        self.max_sensitivity = max_sensitivity
        self.sensitivity_step = sensitivity_step
        self.min_speed_multiplier = min_speed_multiplier
        self.max_speed_multiplier = max_speed_multiplier
        self.speed_scale = speed_scale
        self.dead_zone = dead_zone
        
        self._sensitivity = clamp(base_sensitivity, min_sensitivity, max_sensitivity)
        self._start: Optional[TouchSample] = None
        self._last: Optional[TouchSample] = None
        self._baseline_pending = False
    
    @classmethod
    def from_config(cls, config) -> "MotionSampler":
        """Build a sampler from the ``sampler`` section of a ``Config``."""
        accepted = inspect.signature(cls.__init__).parameters
        settings = config.sampler
        unknown = sorted(k for k in settings if k not in accepted or k == "self")
        if unknown:
            logger.warning("Ignoring unknown sampler settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in settings.items() if k not in unknown})
    
    @property
    def sensitivity(self) -> float:
        return self._sensitivity
    
    @property
    def is_tracking(self) -> bool:
        return self._start is not None
    
    @property
    def last_sample(self) -> Optional[TouchSample]:
        return self._last
    
    def on_touch_start(self, x: float, y: float, timestamp_ms: float) -> None:
        """Begin a gesture; the touch point is both start and last reference."""
        sample = TouchSample(x, y, timestamp_ms)
        self._start = sample
        self._last = sample
        self._baseline_pending = True
    
    def on_touch_move(self, x: float, y: float, timestamp_ms: float) -> MotionDelta:
        """
        Compute the delta for a new touch position.
        
        The first move of a gesture only sets the baseline, and a sample
        with no elapsed time is ignored; both yield a zero delta. The
        reference sample is always advanced.
        """
        current = TouchSample(x, y, timestamp_ms)
        previous = self._last
        self._last = current
        
        if previous is None or self._baseline_pending:
            self._baseline_pending = False
            return ZERO_DELTA
        
        raw_x = current.x - previous.x
        raw_y = current.y - previous.y
        elapsed = current.timestamp_ms - previous.timestamp_ms
        
        if elapsed == 0:
            return ZERO_DELTA
        
        # Out-of-order timestamps still give a positive speed
        speed = math.hypot(raw_x, raw_y) / abs(elapsed)
        multiplier = self.speed_multiplier(speed)
        gain = self._sensitivity * multiplier
        
        return MotionDelta(raw_x * gain, raw_y * gain)
    
    def on_touch_end(self) -> None:
        """Forget the gesture so the next one starts with no residual velocity."""
        self._start = None
        self._last = None
        self._baseline_pending = False
    
    def speed_multiplier(self, speed: float) -> float:
        """Map px/ms to a gain: fast flicks travel further, slow drags are damped."""
        return clamp(
            speed * self.speed_scale,
            self.min_speed_multiplier,
            self.max_speed_multiplier
        )
    
    def adjust_sensitivity(self, increase: bool) -> float:
        """Step the sensitivity up or down and return the new value."""
        if increase:
            value = self._sensitivity * self.sensitivity_step
        else:
            value = self._sensitivity / self.sensitivity_step
        self._sensitivity = clamp(value, self.min_sensitivity, self.max_sensitivity)
        return self._sensitivity
    
    def should_send(self, delta: MotionDelta) -> bool:
        """Dead-zone filter applied before a delta goes on the wire."""
        return abs(delta.delta_x) > self.dead_zone or abs(delta.delta_y) > self.dead_zone
