"""
Timeline for sequenced action playback.
Handles queue building, playback state, and stop/rewind control.

Actions run one at a time. Every step hands control back to the scheduler,
which re-enters the timeline when the step is done:

    Sleep         -> re-enter after the sleep
    Call          -> run the function, re-enter on the next tick
    AnimationSet  -> start all animations, re-enter when the last one ends
    Launch        -> start the operation detached, re-enter on the next tick
    Wait          -> start the operation, re-enter when it completes

Launched operations keep running across stop(); the timeline only returns
to READY (or fires its completion callbacks) once all of them have reported.
"""

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from .actions import (
    Action,
    Animation,
    AnimationSet,
    Call,
    CompletionCallback,
    Launch,
    Sleep,
    Wait,
    action_kind,
    as_operation,
)
from .scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)


class TimelineState(Enum):
    READY = "ready"
    PLAYING = "playing"
    WAITING = "waiting"
    STOPPING = "stopping"


class TimelineInvariantError(RuntimeError):
    """A completion callback fired more often than the work it reports."""


class _AnimationJoin:
    """Counts down the animations of one AnimationSet dispatch."""

    def __init__(self, count: int, on_done: Callable[[], None]):
        self.pending = count
        self._on_done = on_done

    def callback(self) -> CompletionCallback:
        """A completion callback for a single animation; valid exactly once."""
        fired = False

        def done():
            nonlocal fired
            if fired:
                raise TimelineInvariantError("Animation completion callback invoked twice")
            fired = True
            if self.pending <= 0:
                raise TimelineInvariantError("Animation set has no pending animations")
            self.pending -= 1
            if not self.pending:
                self._on_done()

        return done


class Timeline:
    """
    Cooperative action sequencer.

    Build the queue with the chainable methods (sleep, call, animate, launch,
    wait, after), then play(). A Timeline can itself be launched or waited on
    by another timeline.
    """

    READY = TimelineState.READY
    PLAYING = TimelineState.PLAYING
    WAITING = TimelineState.WAITING
    STOPPING = TimelineState.STOPPING

    def __init__(
        self,
        name: Optional[str] = None,
        scheduler: Optional[Scheduler] = None,
        animator: Optional[Any] = None,
    ):
        self.name = name
        self.queue: List[Action] = []
        self.state: TimelineState = TimelineState.READY

        # Playback cursor
        self.position: int = 0
        self._run_queue: Tuple[Action, ...] = ()
        self._run_id: int = 0

        # Detached work
        self.pending_launches: int = 0
        self._finish_deferred: bool = False

        # (callback, one_shot) in registration order
        self._afters: List[Tuple[Callable[["Timeline"], Any], bool]] = []

        self._scheduler = scheduler
        self._animator = animator

        # Callbacks
        self._on_state_change: Optional[Callable[[TimelineState], None]] = None
        self._on_action: Optional[Callable[[Action], None]] = None

    def __repr__(self) -> str:
        return f"Timeline({self.name!r}, state={self.state.value}, position={self.position}/{len(self.queue)})"

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = AsyncioScheduler()
        return self._scheduler

    @property
    def animator(self):
        if self._animator is None:
            from .tween import TweenEngine
            self._animator = TweenEngine(self.scheduler)
        return self._animator

    @property
    def queue_length(self) -> int:
        """Number of actions in the current (or last) run."""
        return len(self._run_queue)

    def set_callbacks(
        self,
        on_state_change: Optional[Callable[[TimelineState], None]] = None,
        on_action: Optional[Callable[[Action], None]] = None,
    ):
        """Set callback functions for timeline events."""
        self._on_state_change = on_state_change
        self._on_action = on_action

    # === Queue building ===

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> "Timeline":
        """Queue a function call. Extra arguments are bound to fn."""
        if args or kwargs:
            fn = partial(fn, *args, **kwargs)
        self.queue.append(Call(fn))
        return self

    def wait(self, operation: Any) -> "Timeline":
        """Queue an operation that blocks the queue until it completes."""
        self.queue.append(Wait(as_operation(operation)))
        return self

    def launch(self, operation: Any) -> "Timeline":
        """Queue an operation that runs detached from the queue."""
        self.queue.append(Launch(as_operation(operation)))
        return self

    def animate(self, animations: Iterable[Union[Animation, Tuple]]) -> "Timeline":
        """Queue a set of animations that run in parallel."""
        self.queue.append(AnimationSet(tuple(Animation.coerce(a) for a in animations)))
        return self

    def sleep(self, milliseconds: float) -> "Timeline":
        self.queue.append(Sleep(milliseconds))
        return self

    def after(self, fn: Callable[["Timeline"], Any]) -> "Timeline":
        """Register a callback fired with this timeline each time a run completes."""
        self._afters.append((fn, False))
        return self

    # === Playback control ===

    def play(self) -> bool:
        """Start or resume playback from the current position."""
        if self.state != TimelineState.READY:
            return False
        if not self.queue:
            return False

        # The first step is queued before any state changes, so a scheduler
        # that cannot run (no event loop) leaves the timeline READY.
        run_id = self._run_id + 1
        self.scheduler.yield_to(partial(self._step, run_id))

        self._run_queue = tuple(self.queue)
        self._run_id = run_id
        self._finish_deferred = False
        self._set_state(TimelineState.PLAYING)

        logger.info(f"Timeline {self.name!r} playing from {self.position}/{self.queue_length}")
        return True

    def stop(self) -> bool:
        """
        Request a stop. Nothing already started is cancelled; the timeline
        becomes READY once in-flight work has reported back.
        """
        if self.state not in (TimelineState.PLAYING, TimelineState.WAITING):
            return False

        self._set_state(TimelineState.STOPPING)
        return True

    def rewind(self):
        """Stop (if playing) and move the cursor back to the first action."""
        self.stop()
        self.position = 0

    def start(self, on_complete: CompletionCallback) -> None:
        """
        Operation interface: play and call on_complete once the run finishes.

        If the timeline is already running, on_complete fires when that run
        finishes. A STOPPING timeline cannot be restarted, so on_complete
        waits for its next completed run. An empty timeline completes on the
        next tick.
        """
        if not self.queue and self.state == TimelineState.READY:
            self.scheduler.yield_to(on_complete)
            return
        entry = (lambda _timeline: on_complete(), True)
        self._afters.append(entry)
        try:
            self.play()
        except Exception:
            self._afters.remove(entry)
            raise

    async def run(self) -> None:
        """Play and wait until the run has finished."""
        done = asyncio.get_running_loop().create_future()

        def complete():
            if not done.done():
                done.set_result(None)

        self.start(complete)
        await done

    def get_status(self) -> Dict[str, Any]:
        """Get current timeline status."""
        return {
            "name": self.name,
            "state": self.state.value,
            "position": self.position,
            "length": self.queue_length if self.state != TimelineState.READY else len(self.queue),
            "pending_launches": self.pending_launches,
            "next_action": self._get_next_action_kind(),
        }

    # === Private Methods ===

    def _schedule_step(self, delay_ms: float):
        step = partial(self._step, self._run_id)
        if delay_ms:
            self.scheduler.call_later(delay_ms, step)
        else:
            self.scheduler.yield_to(step)

    def _is_stale(self, run_id: int) -> bool:
        if run_id != self._run_id or self.state == TimelineState.READY:
            logger.debug(f"Timeline {self.name!r} dropping callback from a finished run")
            return True
        return False

    def _step(self, run_id: int):
        """Execute the action at the current position."""
        if self._is_stale(run_id):
            return

        if self.state == TimelineState.STOPPING:
            self._settle()
            return

        if self.position >= self.queue_length:
            if self.pending_launches:
                self._finish_deferred = True
                logger.debug(f"Timeline {self.name!r} waiting on {self.pending_launches} launches")
            else:
                self._finished()
            return

        action = self._run_queue[self.position]
        logger.debug(f"Timeline {self.name!r} [{self.position}] {action_kind(action) or action!r}")
        if self._on_action:
            self._on_action(action)

        if isinstance(action, Sleep):
            self.position += 1
            self._schedule_step(action.duration_ms)

        elif isinstance(action, Call):
            self.position += 1
            try:
                action.fn()
            except Exception:
                logger.exception(f"Timeline {self.name!r}: call step failed")
            self._schedule_step(0)

        elif isinstance(action, AnimationSet):
            self._start_animations(action, run_id)

        elif isinstance(action, Launch):
            self.pending_launches += 1
            self._start_operation(action.operation, self._launch_callback())
            self.position += 1
            self._schedule_step(0)

        elif isinstance(action, Wait):
            self._set_state(TimelineState.WAITING)
            self.position += 1
            self._start_operation(action.operation, self._wait_callback(run_id))

        else:
            raise TypeError(f"Not a timeline action: {action!r}")

    def _start_animations(self, action: AnimationSet, run_id: int):
        if not action.animations:
            self.position += 1
            self._schedule_step(0)
            return

        join = _AnimationJoin(len(action.animations), partial(self._animations_done, run_id))
        for animation in action.animations:
            done = join.callback()
            if animation.delay:
                self.scheduler.call_later(
                    animation.delay, partial(self._start_animation, animation, done)
                )
            else:
                self._start_animation(animation, done)

    def _start_animation(self, animation: Animation, on_complete: CompletionCallback):
        try:
            self.animator.start(animation.target, animation.style, animation.options, on_complete)
        except Exception:
            logger.exception(f"Timeline {self.name!r}: failed to animate {animation.target!r}")
            on_complete()

    def _start_operation(self, operation, on_complete: CompletionCallback):
        try:
            operation.start(on_complete)
        except Exception:
            logger.exception(f"Timeline {self.name!r}: failed to start {operation!r}")
            on_complete()

    def _once(self, callback: Callable[[], None], what: str) -> CompletionCallback:
        fired = False

        def done():
            nonlocal fired
            if fired:
                raise TimelineInvariantError(f"{what} completion callback invoked twice")
            fired = True
            callback()

        return done

    def _launch_callback(self) -> CompletionCallback:
        return self._once(self._notify_launch, "Launch")

    def _wait_callback(self, run_id: int) -> CompletionCallback:
        return self._once(partial(self._notify_wait, run_id), "Wait")

    def _animations_done(self, run_id: int):
        """All animations of the current set have finished."""
        if self._is_stale(run_id):
            return

        if self.state == TimelineState.STOPPING:
            self._settle()
        else:
            self.position += 1
            self._schedule_step(0)

    def _notify_launch(self):
        if self.pending_launches <= 0:
            raise TimelineInvariantError("Launch completed with no pending launches")

        self.pending_launches -= 1
        if self.pending_launches:
            return

        if self.state == TimelineState.STOPPING:
            self._ready()
        elif self._finish_deferred:
            self._finished()

    def _notify_wait(self, run_id: int):
        if self._is_stale(run_id):
            return

        if self.state != TimelineState.STOPPING:
            self._set_state(TimelineState.PLAYING)
            self._schedule_step(0)
        else:
            self._settle()

    def _settle(self):
        """Return to READY once no launches are outstanding."""
        if not self.pending_launches:
            self._ready()

    def _ready(self):
        self._set_state(TimelineState.READY)

    def _finished(self):
        """Called when every action has run and all launches have reported."""
        self._finish_deferred = False
        logger.info(f"Timeline {self.name!r} finished")

        callbacks = self._afters
        self._afters = [entry for entry in callbacks if not entry[1]]
        for fn, _one_shot in callbacks:
            try:
                fn(self)
            except Exception:
                logger.exception(f"Timeline {self.name!r}: completion callback failed")

        self.position = 0
        self._ready()

    def _set_state(self, state: TimelineState):
        if state == self.state:
            return
        self.state = state
        logger.debug(
            f"Timeline {self.name!r} -> {state.value}",
            extra={"timeline": self.name, "state": state.value, "position": self.position},
        )
        if self._on_state_change:
            self._on_state_change(state)

    def _get_next_action_kind(self) -> Optional[str]:
        queue = self._run_queue if self.state != TimelineState.READY else self.queue
        if self.position < len(queue):
            return action_kind(queue[self.position])
        return None
