"""Single-flight memoization for async accessors.

A SingleFlight cell runs its factory at most once. The first ``get()`` starts
the factory as an asyncio Task; every caller, concurrent or later, awaits that
same task. Callers await through ``asyncio.shield`` so one cancelled caller
does not cancel the fetch other callers are waiting on.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FlightState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class SingleFlight(Generic[T]):
    def __init__(self, factory: Callable[[], Awaitable[T]], name: str = "single_flight"):
        self._factory = factory
        self._name = name
        self._task: asyncio.Task[T] | None = None

    @property
    def state(self) -> FlightState:
        if self._task is None:
            return FlightState.NOT_STARTED
        if not self._task.done():
            return FlightState.IN_PROGRESS
        return FlightState.DONE

    async def get(self) -> T:
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        if self._task.done():
            return self._task.result()
        return await asyncio.shield(self._task)

    def __repr__(self) -> str:
        return f"SingleFlight(name={self._name!r}, state={self.state.value})"


class SingleFlightMap(Generic[T]):
    """One SingleFlight per key, created on first request."""

    def __init__(self, factory: Callable[[str], Awaitable[T]]):
        self._factory = factory
        self._flights: dict[str, SingleFlight[T]] = {}

    def flight(self, key: str) -> SingleFlight[T]:
        if key not in self._flights:
            self._flights[key] = SingleFlight(lambda: self._factory(key), name=key)
        return self._flights[key]

    async def get(self, key: str) -> T:
        return await self.flight(key).get()

    def __contains__(self, key: str) -> bool:
        return key in self._flights
