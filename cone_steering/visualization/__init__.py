"""
Visualization module - Debug windows.
"""

from cone_steering.visualization.overlay import ConeOverlay

__all__ = [
    "ConeOverlay",
]
