"""
Cone Data Structures - Frames, regions of interest, color ranges and contours.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import numpy as np


class ConeColor(Enum):
    """Track boundary marker color."""
    BLUE = "blue"
    YELLOW = "yellow"


class Direction(Enum):
    """
    Rotational direction of travel around the track.

    The numeric values match the sign convention used on the vehicle:
    counterclockwise (left) is negative.
    """
    CLOCKWISE = 1
    COUNTER_CLOCKWISE = -1


@dataclass(frozen=True)
class HSVRange:
    """
    Inclusive HSV bounds on the OpenCV scale (H 0-180, S and V 0-255).
    """
    lower: Tuple[int, int, int]
    upper: Tuple[int, int, int]

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Bounds as uint8 arrays for cv2.inRange."""
        return (
            np.array(self.lower, dtype=np.uint8),
            np.array(self.upper, dtype=np.uint8),
        )

    @classmethod
    def from_config(cls, config: dict) -> "HSVRange":
        """Create from a {'lower': [...], 'upper': [...]} mapping."""
        return cls(lower=tuple(config['lower']), upper=tuple(config['upper']))


# Default ranges for the two cone colors
BLUE_RANGE = HSVRange(lower=(102, 88, 43), upper=(150, 165, 222))
YELLOW_RANGE = HSVRange(lower=(0, 75, 170), upper=(42, 221, 255))


@dataclass(frozen=True)
class RegionOfInterest:
    """Axis-aligned rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def crop(self, image: np.ndarray) -> np.ndarray:
        """
        Crop the region out of an image.

        Returns a view into the image, not a copy. Regions that extend past
        the image border are truncated by numpy slicing.
        """
        return image[self.y:self.y + self.height, self.x:self.x + self.width]

    @property
    def top_left(self) -> Tuple[int, int]:
        return (self.x, self.y)

    @property
    def bottom_right(self) -> Tuple[int, int]:
        return (self.x + self.width, self.y + self.height)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "RegionOfInterest":
        """Create from [x, y, width, height]."""
        x, y, width, height = (int(v) for v in values)
        return cls(x=x, y=y, width=width, height=height)


# Right side region for direction calibration, center region for steering
RIGHT_REGION = RegionOfInterest(x=415, y=265, width=150, height=125)
CENTER_REGION = RegionOfInterest(x=200, y=245, width=230, height=115)


@dataclass
class Contour:
    """
    Closed region extracted from a segmented mask.
    """
    area: float
    points: Optional[np.ndarray] = None  # N x 1 x 2 int32, as returned by cv2.findContours

    def is_significant(self, threshold: float) -> bool:
        """A contour is a cone if its area strictly exceeds the threshold."""
        return self.area > threshold


@dataclass
class Frame:
    """
    Timestamped BGRA frame owned by the main loop for one iteration.
    """
    pixels: np.ndarray  # H x W x 4 uint8
    timestamp_us: int = 0

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]


@dataclass
class ConeDetectionResult:
    """
    Output of one detection pass over a region for a single color.
    """
    color: ConeColor
    region: RegionOfInterest
    contours: List[Contour] = field(default_factory=list)
    mask: Optional[np.ndarray] = None

    def significant(self, threshold: float) -> List[Contour]:
        """Contours that qualify as cones."""
        return [c for c in self.contours if c.is_significant(threshold)]
