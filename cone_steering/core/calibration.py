"""
Direction Calibrator - Infers the direction of travel from the first frames.
"""

from typing import Dict, Iterable, Optional
import logging

from cone_steering.core.cone import Contour, Direction

logger = logging.getLogger(__name__)


class DirectionCalibrator:
    """
    Decides clockwise or counterclockwise travel from yellow cones on the right.

    Yellow cones seen in the right region during the calibration window mean
    the vehicle travels clockwise. Without any sighting the direction stays at
    its initial counterclockwise value.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        detection_threshold: float = 60.0,
    ):
        """
        Initialize direction calibrator.

        Args:
            config: Calibration configuration dictionary
            detection_threshold: Minimum contour area (exclusive) for a cone
        """
        self.config = config or self._default_config()

        self.sample_size = int(self.config.get('sample_size', 5))
        self.detection_threshold = detection_threshold

        # State
        self._direction = Direction.COUNTER_CLOCKWISE
        self._yellow_seen = False

    def _default_config(self) -> Dict:
        """Default calibration configuration."""
        return {
            'sample_size': 5,
        }

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def yellow_seen(self) -> bool:
        """Whether any calibration frame contained a yellow cone."""
        return self._yellow_seen

    def in_window(self, frame_counter: int) -> bool:
        """Check if a frame counter value belongs to the calibration window."""
        return frame_counter < self.sample_size

    def observe(self, contours: Iterable[Contour]) -> bool:
        """
        Feed the yellow contours of the right region for one calibration frame.

        Args:
            contours: Contours extracted from the right region's yellow mask

        Returns:
            True if a yellow cone was seen in this frame
        """
        seen = False
        for contour in contours:
            if contour.is_significant(self.detection_threshold):
                seen = True
                self._yellow_seen = True
                self._direction = Direction.CLOCKWISE

        if seen:
            logger.debug("Yellow cone on the right, direction set to %s", self._direction.name)

        return seen
