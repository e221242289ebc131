"""
Replay script - runs cone steering over a recorded video or a camera.
"""

import argparse
import logging
from typing import Optional

from cone_steering.config import load_config
from cone_steering.core.system import ConeSteeringSystem
from cone_steering.io.frame_source import VideoFrameSource
from cone_steering.visualization.overlay import ConeOverlay


def run_replay(
    system: ConeSteeringSystem,
    source: VideoFrameSource,
    overlay: Optional[ConeOverlay] = None,
    max_frames: Optional[int] = None,
) -> dict:
    """
    Run the steering loop over a video source.

    Args:
        system: Cone steering system
        source: Video frame source
        overlay: Debug windows (optional)
        max_frames: Stop after this many frames

    Returns:
        Dictionary with replay statistics
    """
    def is_running() -> bool:
        return max_frames is None or system.frame_count < max_frames

    frames = system.run(source, is_running, overlay=overlay)

    stats = {
        'total_frames': frames,
        'direction': system.direction.name,
        'final_angle': system.angle,
    }
    stats.update(system.get_timing_stats())
    return stats


def main():
    parser = argparse.ArgumentParser(description='Cone steering replay')
    parser.add_argument('--source', type=str, required=True, help='Video path or camera ID')
    parser.add_argument('--config', type=str, default=None, help='Path to config file')
    parser.add_argument('--width', type=int, default=640, help='Frame width')
    parser.add_argument('--height', type=int, default=480, help='Frame height')
    parser.add_argument('--max-frames', type=int, default=None, help='Stop after N frames')
    parser.add_argument('--verbose', action='store_true', help='Show debug windows')
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config) if args.config else None
    system = ConeSteeringSystem(config)

    source = int(args.source) if args.source.isdigit() else args.source
    overlay = ConeOverlay(detection_threshold=system.detector.detection_threshold) if args.verbose else None

    with VideoFrameSource(source, width=args.width, height=args.height) as frames:
        stats = run_replay(system, frames, overlay=overlay, max_frames=args.max_frames)

    if overlay is not None:
        overlay.close()

    logging.getLogger(__name__).info("Replay finished: %s", stats)


if __name__ == '__main__':
    main()
