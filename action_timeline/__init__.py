"""
Action Timeline - cooperative action sequencer.
Queues sleeps, calls, parallel animations, launched and awaited operations,
and plays them one step at a time on a scheduler.
"""

from .actions import (
    Animation,
    AnimationSet,
    Call,
    CallbackOperation,
    CoroutineOperation,
    Launch,
    Sleep,
    Wait,
    as_operation,
)
from .scheduler import AsyncioScheduler, FrameScheduler
from .timeline import Timeline, TimelineInvariantError, TimelineState
from .tween import EASING_FUNCTIONS, TweenEngine

__all__ = [
    'Timeline',
    'TimelineState',
    'TimelineInvariantError',
    'Animation',
    'AnimationSet',
    'Call',
    'Launch',
    'Sleep',
    'Wait',
    'CallbackOperation',
    'CoroutineOperation',
    'as_operation',
    'AsyncioScheduler',
    'FrameScheduler',
    'TweenEngine',
    'EASING_FUNCTIONS',
]
