"""
Core module - Main cone steering system components.
"""

from cone_steering.core.detector import ConeDetector
from cone_steering.core.calibration import DirectionCalibrator
from cone_steering.core.steering import SteeringDecisionEngine
from cone_steering.core.system import ConeSteeringSystem

__all__ = [
    "ConeDetector",
    "DirectionCalibrator",
    "SteeringDecisionEngine",
    "ConeSteeringSystem",
]
