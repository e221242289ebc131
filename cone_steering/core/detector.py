"""
Cone Detector - HSV segmentation and contour extraction for colored cones.
"""

from typing import Dict, List, Optional
import numpy as np
import cv2

from cone_steering.core.cone import (
    ConeColor,
    ConeDetectionResult,
    Contour,
    HSVRange,
    RegionOfInterest,
    BLUE_RANGE,
    YELLOW_RANGE,
    RIGHT_REGION,
    CENTER_REGION,
)


class ConeDetector:
    """
    Color-threshold cone detector.

    Pipeline per region and color:
    - Crop the region of interest
    - Convert to HSV and threshold against the color range
    - Blur, dilate and erode to remove speckle and close small gaps
    - Extract closed contours with their areas
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
    ):
        """
        Initialize cone detector.

        Args:
            config: Detector configuration dictionary
        """
        self.config = config or self._default_config()

        self.detection_threshold = float(self.config.get('detection_threshold', 60))
        self.blur_kernel = tuple(self.config.get('blur_kernel', (5, 5)))
        self.morph_iterations = int(self.config.get('morph_iterations', 1))

        regions = self.config.get('regions', {})
        self.regions = {
            'right': RegionOfInterest.from_sequence(regions['right']) if 'right' in regions else RIGHT_REGION,
            'center': RegionOfInterest.from_sequence(regions['center']) if 'center' in regions else CENTER_REGION,
        }

        colors = self.config.get('colors', {})
        self.color_ranges = {
            ConeColor.BLUE: HSVRange.from_config(colors['blue']) if 'blue' in colors else BLUE_RANGE,
            ConeColor.YELLOW: HSVRange.from_config(colors['yellow']) if 'yellow' in colors else YELLOW_RANGE,
        }

    def _default_config(self) -> Dict:
        """Default detector configuration."""
        return {
            'detection_threshold': 60,
            'blur_kernel': (5, 5),
            'morph_iterations': 1,
        }

    @property
    def right_region(self) -> RegionOfInterest:
        return self.regions['right']

    @property
    def center_region(self) -> RegionOfInterest:
        return self.regions['center']

    def segment(
        self,
        region: np.ndarray,
        hsv_range: HSVRange,
    ) -> np.ndarray:
        """
        Threshold a BGR or BGRA region against an HSV range.

        Args:
            region: Cropped image region
            hsv_range: Inclusive HSV bounds

        Returns:
            Binary mask with the same height and width as the region
        """
        if region.ndim == 3 and region.shape[2] == 4:
            region = cv2.cvtColor(region, cv2.COLOR_BGRA2BGR)

        hsv = cv2.cvtColor(region, cv2.COLOR_BGR2HSV)
        lower, upper = hsv_range.as_arrays()
        return cv2.inRange(hsv, lower, upper)

    def clean(self, mask: np.ndarray) -> np.ndarray:
        """
        Remove speckle and close small holes in a binary mask.

        Gaussian blur followed by dilate and erode with the default
        3x3 structuring element.
        """
        cleaned = cv2.GaussianBlur(mask, self.blur_kernel, 0)
        cleaned = cv2.dilate(cleaned, None, iterations=self.morph_iterations)
        cleaned = cv2.erode(cleaned, None, iterations=self.morph_iterations)
        return cleaned

    def extract(self, mask: np.ndarray) -> List[Contour]:
        """
        Extract closed contours from a cleaned mask.

        Returns:
            Contours in extraction order, each with its area
        """
        contours, _ = cv2.findContours(mask, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)
        return [Contour(area=float(cv2.contourArea(c)), points=c) for c in contours]

    def detect(
        self,
        image: np.ndarray,
        region: RegionOfInterest,
        color: ConeColor,
    ) -> ConeDetectionResult:
        """
        Run the full pipeline for one region and one color.

        Args:
            image: Full BGRA frame
            region: Region of interest to search
            color: Cone color to segment

        Returns:
            ConeDetectionResult with contours and the cleaned mask
        """
        roi = region.crop(image)
        mask = self.clean(self.segment(roi, self.color_ranges[color]))
        return ConeDetectionResult(
            color=color,
            region=region,
            contours=self.extract(mask),
            mask=mask,
        )
