"""Durable counters for the throttle engine."""

from .counters import (
    CounterSlot,
    CounterStore,
    InMemoryCounterStore,
    SharedMemoryCounterStore,
)

__all__ = [
    "CounterSlot",
    "CounterStore",
    "InMemoryCounterStore",
    "SharedMemoryCounterStore",
]
