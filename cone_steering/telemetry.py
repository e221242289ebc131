"""
Telemetry Sink - Per-frame steering lines on standard output.
"""

import sys
from typing import Dict, Optional, TextIO

from cone_steering.core.reference import ReferenceSteeringReader


def format_angle(angle: float) -> str:
    """
    Format an angle like a default iostream float (6 significant digits).

    Angles accumulate in double precision, so steps that cancel out can leave
    a residue such as 6.93889e-18 instead of 0.
    """
    return f"{angle:g}"


def format_line(label: str, timestamp_us: int, angle: float) -> str:
    """Build one `<label>;<timestamp_us>;<angle>` telemetry line."""
    return f"{label};{int(timestamp_us)};{format_angle(angle)}"


class TelemetrySink:
    """
    Emits one telemetry line per frame and builds the debug overlay text.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        reference: Optional[ReferenceSteeringReader] = None,
        stream: Optional[TextIO] = None,
    ):
        """
        Initialize telemetry sink.

        Args:
            config: Telemetry configuration dictionary
            reference: Read-only view of the externally reported steering
            stream: Output stream (defaults to stdout at emit time)
        """
        self.config = config or {}
        self.label = self.config.get('label', 'group_16')
        self.reference = reference
        self.stream = stream

    def emit(self, timestamp_us: int, angle: float) -> str:
        """
        Print the telemetry line for one frame.

        Returns:
            The emitted line without trailing newline
        """
        line = format_line(self.label, timestamp_us, angle)
        print(line, file=self.stream or sys.stdout, flush=True)
        return line

    def reference_angle(self) -> float:
        """Latest externally reported steering, 0.0 without a feed."""
        if self.reference is None:
            return 0.0
        return self.reference.get()

    def overlay_text(self, timestamp_us: int, angle: float) -> str:
        """Single-line summary drawn onto the debug window."""
        return (
            f"Calculated Ground Steering: {format_angle(angle)}"
            f" Actual Ground Steering: {format_angle(self.reference_angle())}"
            f" Time Stamp: {int(timestamp_us)}"
        )
