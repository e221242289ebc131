"""
Reference Steering - Thread-safe cell for the externally reported steering value.
"""

from dataclasses import dataclass
import threading


@dataclass
class GroundSteeringRequest:
    """Decoded ground steering request message."""
    ground_steering: float = 0.0

    # Message type identifier on the OD4 bus
    ID = 1090


class ReferenceSteeringCell:
    """
    Last-write-wins value guarded by a lock.

    The lock is held only for the assignment or the read, never across
    blocking operations.
    """

    def __init__(self, initial: float = 0.0):
        self._value = float(initial)
        self._lock = threading.Lock()

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def get(self) -> float:
        with self._lock:
            return self._value

    def reader(self) -> "ReferenceSteeringReader":
        """Read-only view for the telemetry path."""
        return ReferenceSteeringReader(self)


class ReferenceSteeringReader:
    """Read-only view on a ReferenceSteeringCell."""

    def __init__(self, cell: ReferenceSteeringCell):
        self._cell = cell

    def get(self) -> float:
        return self._cell.get()


class ReferenceValueListener:
    """
    Transport callback that stores ground steering requests in a cell.

    Invoked on the transport's receiver thread. It never touches the
    steering engine.
    """

    def __init__(self, cell: ReferenceSteeringCell):
        self.cell = cell

    def __call__(self, message: GroundSteeringRequest) -> None:
        self.cell.set(message.ground_steering)
