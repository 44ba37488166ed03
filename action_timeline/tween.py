"""
Tween engine for timeline animation sets.
Interpolates numeric properties of a target towards a style over time.
"""

import logging
import math
from collections.abc import MutableMapping
from typing import Any, Callable, Dict, Optional

from .config import get_settings
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


# Easing functions, t in [0, 1]
def _ease_linear(t: float) -> float:
    return t


def _ease_in_quad(t: float) -> float:
    return t * t


def _ease_out_quad(t: float) -> float:
    return t * (2 - t)


def _ease_in_out_quad(t: float) -> float:
    return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t


def _ease_in_out_sine(t: float) -> float:
    return 0.5 * (1 - math.cos(math.pi * t))


EASING_FUNCTIONS = {
    "linear": _ease_linear,
    "ease_in": _ease_in_quad,
    "ease_out": _ease_out_quad,
    "ease_in_out": _ease_in_out_quad,
    "sine": _ease_in_out_sine,
}


def get_easing(name: Optional[str]) -> Callable[[float], float]:
    """Look up an easing function, falling back to linear."""
    return EASING_FUNCTIONS.get(name or "linear", _ease_linear)


def _read(target: Any, key: str) -> Any:
    if isinstance(target, MutableMapping):
        return target.get(key, 0)
    return getattr(target, key, 0)


def _write(target: Any, key: str, value: float):
    if isinstance(target, MutableMapping):
        target[key] = value
    else:
        setattr(target, key, value)


class Tween:
    """
    A single running interpolation.

    Start values are captured when the tween is created, so styles are
    relative to wherever the target is at that moment.
    """

    def __init__(self, target: Any, style: Dict[str, float], duration_ms: float, easing: str):
        self.target = target
        self.duration_ms = max(0.0, duration_ms)
        self.easing = easing
        self._easing_fn = get_easing(easing)
        self._start: Dict[str, float] = {}
        self._end: Dict[str, float] = {}
        for key, end in style.items():
            start = _read(target, key)
            if not isinstance(start, (int, float)) or not isinstance(end, (int, float)):
                raise TypeError(f"Cannot tween non-numeric property {key!r}")
            self._start[key] = start
            self._end[key] = end

    def apply(self, elapsed_ms: float) -> float:
        """Write interpolated values for the elapsed time and return raw progress."""
        if self.duration_ms <= 0:
            raw = 1.0
        else:
            raw = min(1.0, max(0.0, elapsed_ms / self.duration_ms))
        t = self._easing_fn(raw)
        for key, start in self._start.items():
            end = self._end[key]
            value = end if raw >= 1.0 else start + (end - start) * t
            _write(self.target, key, value)
        return raw


class TweenEngine:
    """
    Default animation engine for timelines.

    start() begins a tween and calls on_complete exactly once when the
    target has reached its end values. Delays are handled by the timeline,
    so any "delay" option is ignored here.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        frame_ms: Optional[float] = None,
        default_duration_ms: Optional[float] = None,
        default_easing: Optional[str] = None,
    ):
        settings = get_settings()
        self.scheduler = scheduler
        self.frame_ms = max(1.0, frame_ms if frame_ms is not None else settings.tween_frame_ms)
        self.default_duration_ms = (
            default_duration_ms if default_duration_ms is not None else settings.default_duration_ms
        )
        self.default_easing = default_easing or settings.default_easing
        self.active = 0

    def start(
        self,
        target: Any,
        style: Dict[str, float],
        options: Optional[Dict[str, Any]],
        on_complete: Callable[[], None],
    ):
        options = options or {}
        duration = options.get("duration", self.default_duration_ms)
        easing = options.get("easing", self.default_easing)
        if easing not in EASING_FUNCTIONS:
            logger.warning(f"Unknown easing {easing!r}, using linear")

        tween = Tween(target, style, duration, easing)
        started_at = self.scheduler.now_ms
        self.active += 1
        logger.debug(f"Tween start: {style} over {tween.duration_ms}ms ({easing})")

        def step():
            if tween.apply(self.scheduler.now_ms - started_at) >= 1.0:
                self.active -= 1
                on_complete()
            else:
                self.scheduler.call_later(self.frame_ms, step)

        if tween.duration_ms <= 0:
            self.scheduler.yield_to(step)
        else:
            self.scheduler.call_later(self.frame_ms, step)
