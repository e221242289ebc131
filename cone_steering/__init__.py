"""
Cone Steering - Direction Calibration and Reactive Steering between Cones
=========================================================================

Perception-to-steering loop for a small-scale vehicle on a closed track
bounded by blue and yellow cones.

This module provides:
- HSV color segmentation and contour extraction for cone detection
- Direction calibration (clockwise / counterclockwise) from the first frames
- A per-frame steering decision engine with fixed priority and fallback rules
- A thread-safe cell for the externally reported steering value
- Shared memory and video frame sources, and an OD4 multicast listener

Modules:
    - core: Core components (cone model, detector, calibration, steering, system)
    - io: Frame sources and the OD4 transport
    - visualization: Debug windows

Example Usage:
    >>> from cone_steering import ConeSteeringSystem
    >>>
    >>> system = ConeSteeringSystem()
    >>> result = system.process_frame(frame)
    >>> print(f"{result.direction.name} {result.angle:g}")
"""

__version__ = "1.0.0"
__author__ = "Cone Steering Team"

# Core components
from cone_steering.core import (
    ConeDetector,
    DirectionCalibrator,
    SteeringDecisionEngine,
    ConeSteeringSystem,
)
from cone_steering.core.cone import (
    ConeColor,
    Contour,
    Direction,
    Frame,
    HSVRange,
    RegionOfInterest,
)
from cone_steering.core.reference import ReferenceSteeringCell
from cone_steering.core.steering import SteeringDecision, SteeringOutput
from cone_steering.errors import AttachError, ConeSteeringError, ConfigurationError

__all__ = [
    # Version
    "__version__",
    # Core classes
    "ConeDetector",
    "DirectionCalibrator",
    "SteeringDecisionEngine",
    "ConeSteeringSystem",
    "ReferenceSteeringCell",
    # Data classes
    "ConeColor",
    "Contour",
    "Direction",
    "Frame",
    "HSVRange",
    "RegionOfInterest",
    "SteeringDecision",
    "SteeringOutput",
    # Errors
    "ConeSteeringError",
    "ConfigurationError",
    "AttachError",
]
