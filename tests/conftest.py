"""
Test configuration for pytest.
"""

import uuid

import pytest
import numpy as np

from cone_steering.core.cone import Contour, RegionOfInterest


# BGR colors that fall inside the default HSV ranges
# blue:   H 120, S 128, V 150
# yellow: H 30,  S 162, V 220
BLUE_BGR = (150, 75, 75)
YELLOW_BGR = (80, 220, 220)


@pytest.fixture
def blank_frame():
    """Create a black 640x480 BGRA frame."""
    frame = np.zeros((480, 640, 4), dtype=np.uint8)
    frame[:, :, 3] = 255
    return frame


@pytest.fixture
def paint():
    """Paint a square patch of color inside a region of interest."""
    def _paint(
        frame: np.ndarray,
        region: RegionOfInterest,
        color,
        size: int = 30,
        offset=(40, 30),
    ) -> np.ndarray:
        x0 = region.x + offset[0]
        y0 = region.y + offset[1]
        frame[y0:y0 + size, x0:x0 + size, :3] = color
        return frame
    return _paint


@pytest.fixture
def cones():
    """Build contours with the given areas."""
    def _cones(*areas):
        return [Contour(area=float(a)) for a in areas]
    return _cones


@pytest.fixture
def shm_name():
    """Unique shared memory region name."""
    return f"cone_steering_test_{uuid.uuid4().hex[:12]}"


@pytest.fixture
def base_config():
    """Create base configuration for testing."""
    return {
        'detector': {
            'detection_threshold': 60,
            'blur_kernel': [5, 5],
            'morph_iterations': 1,
            'regions': {
                'right': [415, 265, 150, 125],
                'center': [200, 245, 230, 115],
            },
        },
        'calibration': {
            'sample_size': 5,
        },
        'steering': {
            'turn_right': 0.025,
            'turn_left': -0.025,
            'steering_min': -0.3,
            'steering_max': 0.3,
        },
        'telemetry': {
            'label': 'group_16',
        },
    }
