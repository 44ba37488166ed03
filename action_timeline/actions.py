"""
Action records for the timeline queue.
Each queued step is exactly one of Sleep, Call, AnimationSet, Launch or Wait.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set, Tuple, Union

logger = logging.getLogger(__name__)


CompletionCallback = Callable[[], None]


class Operation(Protocol):
    """Anything a timeline can launch or wait on."""

    def start(self, on_complete: CompletionCallback) -> None:
        ...


class CallbackOperation:
    """
    Adapts a plain function taking a single completion callback.

    The function is responsible for calling it exactly once when its
    work is done.
    """

    def __init__(self, fn: Callable[[CompletionCallback], Any]):
        self.fn = fn

    def start(self, on_complete: CompletionCallback) -> None:
        self.fn(on_complete)

    def __repr__(self) -> str:
        return f"CallbackOperation({getattr(self.fn, '__name__', self.fn)!r})"


class CoroutineOperation:
    """
    Adapts an ``async def`` function (no arguments).

    The coroutine runs as a task on the running event loop; completion is
    reported when the task ends, whether it returned, raised or was cancelled.
    """

    def __init__(self, fn: Callable[[], Awaitable[Any]]):
        self.fn = fn
        self._tasks: Set[asyncio.Task] = set()

    def start(self, on_complete: CompletionCallback) -> None:
        task = asyncio.get_running_loop().create_task(self.fn())
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._task_done(t, on_complete))

    def _task_done(self, task: asyncio.Task, on_complete: CompletionCallback):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Operation {self!r} was cancelled")
        elif task.exception() is not None:
            logger.error(f"Operation {self!r} failed: {task.exception()!r}")
        on_complete()

    def __repr__(self) -> str:
        return f"CoroutineOperation({getattr(self.fn, '__name__', self.fn)!r})"


def as_operation(obj: Any) -> Operation:
    """Wrap ``obj`` so it exposes ``start(on_complete)``."""
    if callable(getattr(obj, "start", None)):
        return obj
    if inspect.iscoroutinefunction(obj):
        return CoroutineOperation(obj)
    if callable(obj):
        return CallbackOperation(obj)
    raise TypeError(f"Cannot launch or wait on {obj!r}")


@dataclass(frozen=True)
class Animation:
    """One effect inside an animation set."""
    target: Any
    style: Dict[str, Any]
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def delay(self) -> float:
        """Start delay in ms, applied by the timeline before the engine sees it."""
        return (self.options or {}).get("delay") or 0

    @classmethod
    def coerce(cls, value: Union["Animation", Tuple]) -> "Animation":
        if isinstance(value, Animation):
            return value
        target, style, *rest = value
        options = rest[0] if rest else None
        return cls(target=target, style=style, options=options or {})


@dataclass(frozen=True)
class Sleep:
    duration_ms: float


@dataclass(frozen=True)
class Call:
    fn: Callable[[], Any]


@dataclass(frozen=True)
class AnimationSet:
    animations: Tuple[Animation, ...] = ()


@dataclass(frozen=True)
class Launch:
    operation: Operation


@dataclass(frozen=True)
class Wait:
    operation: Operation


Action = Union[Sleep, Call, AnimationSet, Launch, Wait]
ACTION_TYPES = (Sleep, Call, AnimationSet, Launch, Wait)


def action_kind(action: Action) -> Optional[str]:
    """Short lowercase name of an action's variant, or None for non-actions."""
    if isinstance(action, ACTION_TYPES):
        return type(action).__name__.lower()
    return None
