"""
Cone Overlay Visualization.
"""

from typing import Dict, Optional, Tuple
import numpy as np
import cv2

from cone_steering.core.cone import ConeDetectionResult, RegionOfInterest


class ConeOverlay:
    """
    Debug windows for cone detection and steering.
    """

    # Color palette (BGR)
    COLORS = {
        'contour': (255, 255, 0),       # Cyan fill for cones
        'text': (154, 250, 0),          # Spring green
        'region': (255, 255, 255),      # White
    }

    WINDOWS = {
        'blue': "Blue Contours",
        'yellow': "Yellow Contours",
        'debug': "Debug",
    }

    def __init__(
        self,
        detection_threshold: float = 60.0,
        text_origin: Tuple[int, int] = (1, 50),
        font_scale: float = 0.35,
        show_regions: bool = False,
    ):
        """
        Initialize overlay visualizer.

        Args:
            detection_threshold: Area above which contours are drawn
            text_origin: Bottom-left corner of the status text
            font_scale: Status text scale
            show_regions: Outline the regions of interest on the debug frame
        """
        self.detection_threshold = detection_threshold
        self.text_origin = text_origin
        self.font_scale = font_scale
        self.show_regions = show_regions

    def draw_contours(self, detection: ConeDetectionResult) -> np.ndarray:
        """
        Render the significant contours of one detection on a black canvas.

        Args:
            detection: Detection result with its cleaned mask

        Returns:
            BGR image the size of the detection region
        """
        if detection.mask is not None:
            h, w = detection.mask.shape[:2]
        else:
            h, w = detection.region.height, detection.region.width

        canvas = np.zeros((h, w, 3), dtype=np.uint8)
        points = [
            c.points for c in detection.significant(self.detection_threshold)
            if c.points is not None
        ]
        if points:
            cv2.drawContours(canvas, points, -1, self.COLORS['contour'], -1, cv2.LINE_8)
        return canvas

    def draw_status(
        self,
        image: np.ndarray,
        text: str,
        regions: Optional[Dict[str, RegionOfInterest]] = None,
    ) -> np.ndarray:
        """
        Draw the status line (and optionally the regions) on a frame copy.
        """
        output = image.copy()

        if self.show_regions and regions:
            for region in regions.values():
                cv2.rectangle(output, region.top_left, region.bottom_right, self.COLORS['region'], 1)

        cv2.putText(
            output,
            text,
            self.text_origin,
            cv2.FONT_HERSHEY_DUPLEX,
            self.font_scale,
            self.COLORS['text'],
        )
        return output

    def show(self, window: str, image: np.ndarray) -> None:
        """Show an image in one of the named debug windows."""
        cv2.imshow(self.WINDOWS.get(window, window), image)
        cv2.waitKey(1)

    def close(self) -> None:
        cv2.destroyAllWindows()
