"""Shared pytest fixtures for the action timeline test suite.

Timelines are driven by a FrameScheduler so every test controls the clock
explicitly; collaborators are small fakes that complete on demand.
"""

from __future__ import annotations

import pytest

from action_timeline.scheduler import FrameScheduler
from action_timeline.timeline import Timeline


class FakeAnimator:
    """Animation engine that records starts and completes on demand."""

    def __init__(self):
        self.started = []

    def start(self, target, style, options, on_complete):
        self.started.append((target, style, options, on_complete))

    def complete(self, index: int):
        self.started[index][3]()

    def complete_all(self):
        for entry in list(self.started):
            entry[3]()


class ManualOperation:
    """Operation that completes only when the test says so."""

    def __init__(self):
        self.callbacks = []

    @property
    def started(self) -> int:
        return len(self.callbacks)

    def start(self, on_complete):
        self.callbacks.append(on_complete)

    def complete(self, index: int = -1):
        self.callbacks[index]()


class DelayedOperation:
    """Operation that completes after a fixed delay on the scheduler."""

    def __init__(self, scheduler: FrameScheduler, delay_ms: float):
        self.scheduler = scheduler
        self.delay_ms = delay_ms
        self.completed = 0

    def start(self, on_complete):
        def done():
            self.completed += 1
            on_complete()

        self.scheduler.call_later(self.delay_ms, done)


class Recorder:
    """Completion callback that remembers each call."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)

    @property
    def count(self) -> int:
        return len(self.calls)


@pytest.fixture()
def scheduler() -> FrameScheduler:
    return FrameScheduler()


@pytest.fixture()
def animator() -> FakeAnimator:
    return FakeAnimator()


@pytest.fixture()
def make_timeline(scheduler, animator):
    """Factory for timelines sharing the test scheduler and animator."""

    def factory(name: str = "test") -> Timeline:
        return Timeline(name, scheduler=scheduler, animator=animator)

    return factory


@pytest.fixture()
def timeline(make_timeline) -> Timeline:
    return make_timeline()


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def manual_operation():
    """Factory for operations completed by hand."""
    return ManualOperation


@pytest.fixture()
def delayed_operation(scheduler):
    """Factory for operations that complete after delay_ms."""

    def factory(delay_ms: float) -> DelayedOperation:
        return DelayedOperation(scheduler, delay_ms)

    return factory
