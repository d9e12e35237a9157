"""A minimal listener registry for benchmark lifecycle notifications."""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("microbench.events")

Listener = Callable[..., Any]

EVENTS = ("task-start", "task-done", "progress", "done")
"""
Names of the lifecycle events emitted during a benchmark run:

* ``"task-start"``: a task starts its measurement window. Called with the task.
* ``"task-done"``: a task finished its measurement window. Called with the task and its result.
* ``"progress"``: periodic round-robin progress. Called with a tuple of active task snapshots.
* ``"done"``: the run finished. Called with the final result set.
"""


class EventEmitter:
    """
    Dispatches lifecycle events to registered listeners, in order of registration.

    Emitting an event without listeners is a no-op, so correctness of a benchmark run
    never depends on whether anyone is listening. Exceptions raised by listeners
    propagate to the emitting caller.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {e: [] for e in EVENTS}

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENTS:
            raise ValueError(
                f"unknown event {event!r}, expected one of {', '.join(map(repr, EVENTS))}"
            )

    def on(self, event: str, listener: Listener) -> None:
        self._check_event(event)
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """Remove a previously registered listener. Removing an unknown listener is a no-op."""
        self._check_event(event)
        try:
            self._listeners[event].remove(listener)
        except ValueError:
            logger.debug(f"listener {listener!r} is not registered for event {event!r}")

    def has_listeners(self, event: str) -> bool:
        return bool(self._listeners.get(event))

    def emit(self, event: str, *args: Any) -> None:
        self._check_event(event)
        for listener in tuple(self._listeners[event]):
            listener(*args)
