"""
Frame Sources - Shared memory and video capture frame acquisition.
"""

from multiprocessing import shared_memory
from typing import Callable, Optional, Union
import logging
import struct
import sys
import time

import numpy as np
import cv2

from cone_steering.core.cone import Frame
from cone_steering.errors import AttachError

logger = logging.getLogger(__name__)

# Shared memory layout: header (sequence number, odd while a frame is being
# written; timestamp in microseconds) followed by height x width x 4 BGRA pixels.
FRAME_HEADER = struct.Struct('<Qq')
CHANNELS = 4


def frame_region_size(width: int, height: int) -> int:
    """Bytes needed for one frame region including its header."""
    return FRAME_HEADER.size + width * height * CHANNELS


def _attach_kwargs() -> dict:
    # Attaching processes must not unlink the producer's region on exit
    if sys.version_info >= (3, 13):
        return {'track': False}
    return {}


class FrameSource:
    """
    Blocking frame producer interface.

    Usage:
        while source.wait():
            frame = source.acquire()
    """

    def wait(self) -> bool:
        """Block until a new frame is available. False when the source is done."""
        raise NotImplementedError

    def acquire(self) -> Frame:
        """Copy the current frame out of the source."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class SharedMemoryFrameSource(FrameSource):
    """
    Reads BGRA frames from a named shared memory region.

    The header sequence number works as a sequence lock: the writer makes it
    odd while pixels are being replaced and even once the frame is published.
    A copy is only returned when the sequence was even and unchanged across
    the whole copy, so the returned frame is consistent and owned by the
    caller.
    """

    def __init__(
        self,
        name: str,
        width: int,
        height: int,
        is_running: Optional[Callable[[], bool]] = None,
        poll_interval: float = 0.001,
    ):
        """
        Attach to a shared memory region.

        Args:
            name: Name of the shared memory region
            width: Frame width in pixels
            height: Frame height in pixels
            is_running: Predicate checked while waiting; waiting stops when False
            poll_interval: Seconds between sequence number polls
        """
        self.name = name
        self.width = width
        self.height = height
        self.is_running = is_running or (lambda: True)
        self.poll_interval = poll_interval

        try:
            self._shm = shared_memory.SharedMemory(name=name, **_attach_kwargs())
        except (FileNotFoundError, ValueError, OSError) as e:
            raise AttachError(f"Cannot attach to shared memory '{name}': {e}") from e

        required = frame_region_size(width, height)
        if self._shm.size < required:
            size = self._shm.size
            self._shm.close()
            raise AttachError(
                f"Shared memory '{name}' holds {size} bytes, "
                f"{required} needed for {width}x{height} frames"
            )

        self._last_sequence, _ = self._read_header()

    @property
    def size(self) -> int:
        return self._shm.size

    def _read_header(self):
        return FRAME_HEADER.unpack_from(self._shm.buf, 0)

    def _copy_pixels(self) -> np.ndarray:
        wrapped = np.ndarray(
            (self.height, self.width, CHANNELS),
            dtype=np.uint8,
            buffer=self._shm.buf,
            offset=FRAME_HEADER.size,
        )
        pixels = wrapped.copy()
        del wrapped
        return pixels

    def wait(self) -> bool:
        while self.is_running():
            sequence, _ = self._read_header()
            if sequence != self._last_sequence and not sequence & 1:
                return True
            time.sleep(self.poll_interval)
        return False

    def acquire(self) -> Frame:
        while True:
            sequence, timestamp_us = self._read_header()
            if sequence & 1:
                time.sleep(self.poll_interval)
                continue

            pixels = self._copy_pixels()

            if self._read_header()[0] == sequence:
                break
            logger.debug("Frame %d was rewritten during copy, retrying", sequence)

        self._last_sequence = sequence
        return Frame(pixels=pixels, timestamp_us=timestamp_us)

    def close(self) -> None:
        self._shm.close()


class SharedMemoryFrameWriter:
    """
    Producer side of a shared memory frame region.

    Each frame advances the sequence number by two: to an odd value before
    the pixels are replaced and to the next even value when the frame is
    published together with its timestamp.
    """

    def __init__(
        self,
        name: str,
        width: int,
        height: int,
        create: bool = True,
    ):
        self.name = name
        self.width = width
        self.height = height
        self._shm = shared_memory.SharedMemory(
            name=name,
            create=create,
            size=frame_region_size(width, height) if create else 0,
        )
        if create:
            FRAME_HEADER.pack_into(self._shm.buf, 0, 0, 0)
        sequence, self._timestamp_us = FRAME_HEADER.unpack_from(self._shm.buf, 0)
        # An odd sequence left by an interrupted writer is published on the next frame
        self._sequence = sequence & ~1

    def _begin(self) -> None:
        FRAME_HEADER.pack_into(self._shm.buf, 0, self._sequence + 1, self._timestamp_us)

    def _publish(self, timestamp_us: int) -> None:
        self._sequence += 2
        self._timestamp_us = int(timestamp_us)
        FRAME_HEADER.pack_into(self._shm.buf, 0, self._sequence, self._timestamp_us)

    def write(self, pixels: np.ndarray, timestamp_us: int) -> None:
        """Publish one BGRA frame. Readers skip the region while it is being written."""
        if pixels.shape != (self.height, self.width, CHANNELS):
            raise ValueError(
                f"Expected frame of shape {(self.height, self.width, CHANNELS)}, got {pixels.shape}"
            )

        self._begin()
        target = np.ndarray(pixels.shape, dtype=np.uint8, buffer=self._shm.buf, offset=FRAME_HEADER.size)
        target[:] = pixels
        del target
        self._publish(timestamp_us)

    def close(self, unlink: bool = True) -> None:
        self._shm.close()
        if unlink:
            self._shm.unlink()


class VideoFrameSource(FrameSource):
    """
    Replays a video file or camera through the frame source interface.
    """

    def __init__(
        self,
        source: Union[str, int],
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        """
        Open a video source.

        Args:
            source: Video path or camera index
            width: Resize frames to this width (optional)
            height: Resize frames to this height (optional)
        """
        self.source = source
        self.width = width
        self.height = height

        self._cap = cv2.VideoCapture(source)
        if not self._cap.isOpened():
            raise AttachError(f"Cannot open video: {source}")

        self._pending: Optional[np.ndarray] = None
        self._timestamp_us = 0

    def wait(self) -> bool:
        ret, frame = self._cap.read()
        if not ret:
            return False

        position_ms = self._cap.get(cv2.CAP_PROP_POS_MSEC)
        if position_ms > 0:
            self._timestamp_us = int(position_ms * 1000)
        else:
            self._timestamp_us = int(time.time() * 1e6)

        self._pending = frame
        return True

    def acquire(self) -> Frame:
        if self._pending is None:
            raise RuntimeError("acquire() called before wait()")

        frame = self._pending
        self._pending = None

        if self.width and self.height and (frame.shape[1], frame.shape[0]) != (self.width, self.height):
            frame = cv2.resize(frame, (self.width, self.height))

        pixels = cv2.cvtColor(frame, cv2.COLOR_BGR2BGRA)
        return Frame(pixels=pixels, timestamp_us=self._timestamp_us)

    def close(self) -> None:
        self._cap.release()
