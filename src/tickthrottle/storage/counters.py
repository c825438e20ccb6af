"""
Persistent Counter Store

Small integer counters addressed by a numeric slot id. The production
backend keeps each counter in its own POSIX shared memory segment so the
values outlive the listener process; supervisord restarting the listener
does not lose the weekly execution count.

Values are stored as ASCII decimal digits, NUL-padded to the slot size.
A freshly created segment is all NUL bytes and therefore reads as 0.
"""

import logging
import sys
from abc import ABC, abstractmethod
from multiprocessing import resource_tracker, shared_memory
from typing import Dict, Optional

from tickthrottle.errors import CounterOverflowError, CounterStoreError

logger = logging.getLogger(__name__)


def _decode(raw: bytes) -> Optional[int]:
    """Parse stored digits. None means unset, unparsable content is also None."""
    text = raw.split(b'\x00', 1)[0].decode('ascii', errors='replace').strip()
    if not text:
        return None
    if not text.isdigit():
        logger.debug(f"Ignoring unparsable counter content: {text!r}")
        return None
    return int(text)


def _encode(slot_id: int, value: int, size: int) -> bytes:
    if value < 0:
        raise ValueError(f"Counter values must be non-negative, got {value}")
    digits = str(value).encode('ascii')
    if len(digits) > size:
        raise CounterOverflowError(slot_id, value, size)
    return digits.ljust(size, b'\x00')


class CounterSlot(ABC):
    """One open counter. Use as a context manager to close it on exit."""

    def __init__(self, slot_id: int, size: int):
        self.slot_id = slot_id
        self.size = size

    @abstractmethod
    def read(self) -> int:
        """Current value, 0 when the slot is unset"""

    @abstractmethod
    def write(self, value: int) -> None:
        """Store value, raising CounterOverflowError if it does not fit"""

    @abstractmethod
    def reset(self) -> None:
        """Delete the counter and close it. The next open() starts from 0."""

    @abstractmethod
    def close(self) -> None:
        """Detach without deleting"""

    def increment(self) -> int:
        """Add one and return the new value"""
        value = self.read() + 1
        self.write(value)
        return value

    def __enter__(self) -> "CounterSlot":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class CounterStore(ABC):
    """Capability to open counters; injected into the throttle engine"""

    @abstractmethod
    def open(self, slot_id: int, size: int) -> CounterSlot:
        """Open the counter, creating a zeroed one if it does not exist"""

    @abstractmethod
    def peek(self, slot_id: int, size: int) -> Optional[int]:
        """Read a counter without creating it. None if it does not exist."""


# =============================================================================
# SHARED MEMORY BACKEND
# =============================================================================

if sys.version_info >= (3, 13):
    def _segment(name: str, create: bool, size: int = 0) -> shared_memory.SharedMemory:
        return shared_memory.SharedMemory(name=name, create=create, size=size, track=False)

    def _unlink(shm: shared_memory.SharedMemory) -> None:
        shm.unlink()
else:
    def _segment(name: str, create: bool, size: int = 0) -> shared_memory.SharedMemory:
        shm = shared_memory.SharedMemory(name=name, create=create, size=size)
        # The resource tracker unlinks registered segments when this process
        # exits, which would wipe the counters on every listener restart.
        resource_tracker.unregister(shm._name, "shared_memory")
        return shm

    def _unlink(shm: shared_memory.SharedMemory) -> None:
        # unlink() unregisters the segment, so it has to be registered again first
        resource_tracker.register(shm._name, "shared_memory")
        try:
            shm.unlink()
        except OSError:
            resource_tracker.unregister(shm._name, "shared_memory")
            raise


class SharedMemoryCounterSlot(CounterSlot):
    """Counter backed by a named shared memory segment"""

    def __init__(self, slot_id: int, size: int, shm: shared_memory.SharedMemory):
        super().__init__(slot_id, size)
        self._shm: Optional[shared_memory.SharedMemory] = shm

    @property
    def name(self) -> str:
        return self._require().name

    def _require(self) -> shared_memory.SharedMemory:
        if self._shm is None:
            raise CounterStoreError(f"Counter slot {self.slot_id} is closed")
        return self._shm

    def read(self) -> int:
        value = _decode(bytes(self._require().buf[:self.size]))
        return 0 if value is None else value

    def write(self, value: int) -> None:
        self._require().buf[:self.size] = _encode(self.slot_id, value, self.size)

    def reset(self) -> None:
        shm = self._require()
        self._shm = None
        shm.close()
        try:
            _unlink(shm)
        except FileNotFoundError:
            logger.debug(f"Counter segment {shm.name} already removed")
        except OSError as e:
            raise CounterStoreError(
                f"Failed to remove counter segment {shm.name}: {e}"
            ) from e

    def close(self) -> None:
        if self._shm is not None:
            self._shm.close()
            self._shm = None


class SharedMemoryCounterStore(CounterStore):
    """
    Counters in POSIX shared memory, one segment per slot.

    Segment name is `<prefix>_<slot_id>`, e.g. /dev/shm/tickthrottle_3.
    """

    def __init__(self, prefix: str = "tickthrottle"):
        self.prefix = prefix

    def segment_name(self, slot_id: int) -> str:
        return f"{self.prefix}_{slot_id}"

    def open(self, slot_id: int, size: int) -> SharedMemoryCounterSlot:
        if size <= 0:
            raise ValueError(f"Counter size must be positive, got {size}")

        name = self.segment_name(slot_id)
        try:
            try:
                shm = _segment(name, create=True, size=size)
                logger.debug(f"Created counter segment {name} ({size} bytes)")
            except FileExistsError:
                shm = _segment(name, create=False)
                if shm.size < size:
                    # Left over from a config with smaller limits
                    logger.warning(
                        f"Counter segment {name} is {shm.size} bytes, need {size}; recreating"
                    )
                    shm.close()
                    _unlink(shm)
                    shm = _segment(name, create=True, size=size)
        except OSError as e:
            raise CounterStoreError(f"Failed to open counter segment {name}: {e}") from e

        return SharedMemoryCounterSlot(slot_id, size, shm)

    def peek(self, slot_id: int, size: int) -> Optional[int]:
        name = self.segment_name(slot_id)
        try:
            shm = _segment(name, create=False)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CounterStoreError(f"Failed to open counter segment {name}: {e}") from e

        try:
            value = _decode(bytes(shm.buf[:min(size, shm.size)]))
        finally:
            shm.close()
        return 0 if value is None else value


# =============================================================================
# IN-MEMORY BACKEND (tests, dry runs)
# =============================================================================

class InMemoryCounterSlot(CounterSlot):
    def __init__(self, slot_id: int, size: int, values: Dict[int, int]):
        super().__init__(slot_id, size)
        self._values = values

    def read(self) -> int:
        return self._values.get(self.slot_id, 0)

    def write(self, value: int) -> None:
        _encode(self.slot_id, value, self.size)
        self._values[self.slot_id] = value

    def reset(self) -> None:
        self._values.pop(self.slot_id, None)

    def close(self) -> None:
        pass


class InMemoryCounterStore(CounterStore):
    """Counters in a dict. Nothing survives the process."""

    def __init__(self):
        self.values: Dict[int, int] = {}

    def open(self, slot_id: int, size: int) -> InMemoryCounterSlot:
        if size <= 0:
            raise ValueError(f"Counter size must be positive, got {size}")
        self.values.setdefault(slot_id, 0)
        return InMemoryCounterSlot(slot_id, size, self.values)

    def peek(self, slot_id: int, size: int) -> Optional[int]:
        return self.values.get(slot_id)
