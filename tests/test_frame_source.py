"""
Unit tests for frame sources.
"""

import threading

import pytest
import numpy as np
from unittest.mock import Mock

from cone_steering.errors import AttachError
from cone_steering.io.frame_source import (
    FRAME_HEADER,
    SharedMemoryFrameSource,
    SharedMemoryFrameWriter,
    VideoFrameSource,
    frame_region_size,
)


WIDTH, HEIGHT = 64, 48


class TestSharedMemoryFrameSource:
    """Tests for the shared memory producer/consumer pair."""

    @pytest.fixture
    def writer(self, shm_name):
        writer = SharedMemoryFrameWriter(shm_name, WIDTH, HEIGHT)
        yield writer
        writer.close()

    def test_region_size(self):
        assert frame_region_size(WIDTH, HEIGHT) == FRAME_HEADER.size + WIDTH * HEIGHT * 4

    def test_missing_region(self, shm_name):
        """Attaching to an unknown region fails before any frame."""
        with pytest.raises(AttachError):
            SharedMemoryFrameSource(shm_name, WIDTH, HEIGHT)

    def test_region_too_small(self, writer):
        """A region smaller than the declared frame is rejected."""
        with pytest.raises(AttachError):
            SharedMemoryFrameSource(writer.name, WIDTH * 2, HEIGHT * 2)

    def test_acquire_copies_frame(self, writer):
        """Acquired frames are private copies with their timestamp."""
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT)
        pixels = np.full((HEIGHT, WIDTH, 4), 17, dtype=np.uint8)

        writer.write(pixels, timestamp_us=1234567)
        assert source.wait()
        frame = source.acquire()

        assert frame.timestamp_us == 1234567
        assert np.array_equal(frame.pixels, pixels)

        writer.write(np.zeros_like(pixels), timestamp_us=1234600)
        assert frame.pixels[0, 0, 0] == 17

        source.close()

    def test_wait_sees_only_new_frames(self, writer):
        """After acquiring, wait blocks until the next write."""
        calls = iter([True, True, False])
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT, is_running=lambda: next(calls))

        writer.write(np.zeros((HEIGHT, WIDTH, 4), dtype=np.uint8), timestamp_us=1)
        source.acquire()

        assert not source.wait()
        source.close()

    def test_wait_stops_when_not_running(self, writer):
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT, is_running=lambda: False)

        assert not source.wait()
        source.close()

    def test_wait_ignores_frame_being_written(self, writer):
        """A frame whose header is not yet published is not reported."""
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT, is_running=Mock(side_effect=[True, False]))

        writer._begin()

        assert not source.wait()

        writer._publish(timestamp_us=5)
        source.is_running = lambda: True
        assert source.wait()
        source.close()

    def test_acquire_waits_for_partial_write(self, writer):
        """Pixels written ahead of their header are returned with the new timestamp, once."""
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT)
        writer.write(np.full((HEIGHT, WIDTH, 4), 1, dtype=np.uint8), timestamp_us=100)
        assert source.wait()
        source.acquire()

        writer._begin()
        region = np.ndarray((HEIGHT, WIDTH, 4), dtype=np.uint8, buffer=writer._shm.buf, offset=FRAME_HEADER.size)
        region[:] = 2
        del region
        publisher = threading.Timer(0.05, writer._publish, args=(200,))
        publisher.start()

        frame = source.acquire()
        publisher.join()

        assert frame.timestamp_us == 200
        assert frame.pixels[0, 0, 0] == 2

        source.is_running = Mock(side_effect=[True, False])
        assert not source.wait()
        source.close()

    def test_acquire_retries_rewritten_frame(self, writer):
        """A frame replaced during the copy is copied again."""
        source = SharedMemoryFrameSource(writer.name, WIDTH, HEIGHT)
        writer.write(np.full((HEIGHT, WIDTH, 4), 1, dtype=np.uint8), timestamp_us=100)
        copy_pixels = source._copy_pixels

        def copy_then_overwrite():
            pixels = copy_pixels()
            if pixels[0, 0, 0] == 1:
                writer.write(np.full((HEIGHT, WIDTH, 4), 3, dtype=np.uint8), timestamp_us=300)
            return pixels

        source._copy_pixels = copy_then_overwrite
        frame = source.acquire()

        assert frame.timestamp_us == 300
        assert frame.pixels[0, 0, 0] == 3
        source.close()


    def test_writer_rejects_wrong_shape(self, writer):
        with pytest.raises(ValueError):
            writer.write(np.zeros((HEIGHT, WIDTH, 3), dtype=np.uint8), timestamp_us=0)


class TestVideoFrameSource:
    """Tests for VideoFrameSource class."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(AttachError):
            VideoFrameSource(str(tmp_path / "missing.avi"))
