"""
IO module - Frame sources and the OD4 transport.
"""

from cone_steering.io.frame_source import (
    FrameSource,
    SharedMemoryFrameSource,
    SharedMemoryFrameWriter,
    VideoFrameSource,
)
from cone_steering.io.od4 import OD4Session

__all__ = [
    "FrameSource",
    "SharedMemoryFrameSource",
    "SharedMemoryFrameWriter",
    "VideoFrameSource",
    "OD4Session",
]
