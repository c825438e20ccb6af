"""Exception hierarchy for tickthrottle."""


class TickThrottleError(Exception):
    """Base class for all tickthrottle errors"""


class CounterStoreError(TickThrottleError):
    """A counter slot could not be opened, read, written or removed"""


class CounterOverflowError(CounterStoreError):
    """Value has more digits than the slot can hold"""

    def __init__(self, slot_id: int, value: int, size: int):
        super().__init__(
            f"Counter slot {slot_id} holds {size} byte(s), cannot store {value}"
        )
        self.slot_id = slot_id
        self.value = value
        self.size = size
