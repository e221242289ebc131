"""
Cone Steering System - Main loop combining detection, calibration and steering.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import logging
import time
import numpy as np

from cone_steering.core.calibration import DirectionCalibrator
from cone_steering.core.cone import ConeColor, ConeDetectionResult, Direction, Frame
from cone_steering.core.detector import ConeDetector
from cone_steering.core.reference import ReferenceSteeringReader
from cone_steering.core.steering import SteeringDecisionEngine, SteeringOutput
from cone_steering.telemetry import TelemetrySink

logger = logging.getLogger(__name__)


@dataclass
class FrameResult:
    """Everything computed for one frame."""
    frame_index: int
    timestamp_us: int
    angle: float
    direction: Direction

    # Which window paths ran for this frame
    calibrated: bool = False
    steering: Optional[SteeringOutput] = None

    yellow_seen: bool = False
    detections: Dict[str, ConeDetectionResult] = field(default_factory=dict)
    processing_ms: float = 0.0

    @property
    def is_calibration(self) -> bool:
        return self.calibrated

    @property
    def is_steering(self) -> bool:
        return self.steering is not None


class ConeSteeringSystem:
    """
    Integrated cone steering system.

    Combines:
    - Cone detection (HSV segmentation and contours)
    - Direction calibration over the first frames
    - Reactive steering decisions afterwards
    - Telemetry output

    The frame counter is incremented before the window checks, so with a
    sample size of 5 frames 1-4 calibrate and frame 5 onwards steers.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        reference: Optional[ReferenceSteeringReader] = None,
    ):
        """
        Initialize cone steering system.

        Args:
            config: System configuration
            reference: Read-only view of the externally reported steering
        """
        self.config = config or self._default_config()

        # Initialize components
        self.detector = ConeDetector(
            config=self.config.get('detector', {}),
        )

        self.calibrator = DirectionCalibrator(
            config=self.config.get('calibration', {}),
            detection_threshold=self.detector.detection_threshold,
        )

        self.engine = SteeringDecisionEngine(
            config=self.config.get('steering', {}),
            detection_threshold=self.detector.detection_threshold,
        )

        self.telemetry = TelemetrySink(
            config=self.config.get('telemetry', {}),
            reference=reference,
        )

        # System state
        self.frame_count = 0

        # Performance tracking
        self.timing_history: List[float] = []
        self.max_timing_history = 100

        # Callbacks
        self.on_result: Optional[Callable[[FrameResult], None]] = None

    def _default_config(self) -> Dict:
        """Default system configuration."""
        return {
            'detector': {
                'detection_threshold': 60,
                'blur_kernel': (5, 5),
                'morph_iterations': 1,
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

    @property
    def direction(self) -> Direction:
        return self.calibrator.direction

    @property
    def angle(self) -> float:
        return self.engine.angle

    def process_frame(self, frame: Frame) -> FrameResult:
        """
        Process a single frame through calibration and/or steering.

        Args:
            frame: BGRA frame owned by the caller

        Returns:
            FrameResult with the current angle and direction
        """
        start_time = time.perf_counter()

        self.frame_count += 1
        result = FrameResult(
            frame_index=self.frame_count,
            timestamp_us=frame.timestamp_us,
            angle=self.engine.angle,
            direction=self.calibrator.direction,
        )

        if self.calibrator.in_window(self.frame_count):
            right = self.detector.detect(frame.pixels, self.detector.right_region, ConeColor.YELLOW)
            result.detections['right_yellow'] = right
            result.yellow_seen = self.calibrator.observe(right.contours)
            result.calibrated = True

        if self.frame_count >= self.calibrator.sample_size:
            center = self.detector.center_region
            blue = self.detector.detect(frame.pixels, center, ConeColor.BLUE)
            result.detections['center_blue'] = blue

            def yellow_contours():
                yellow = self.detector.detect(frame.pixels, center, ConeColor.YELLOW)
                result.detections['center_yellow'] = yellow
                return yellow.contours

            result.steering = self.engine.step(
                self.calibrator.direction,
                blue.contours,
                yellow_contours,
            )

        result.angle = self.engine.angle
        result.direction = self.calibrator.direction
        result.processing_ms = (time.perf_counter() - start_time) * 1000
        self._update_timing(result.processing_ms)

        if self.frame_count == self.calibrator.sample_size:
            logger.info("Calibration finished: direction %s", result.direction.name)

        if self.on_result is not None:
            self.on_result(result)

        return result

    def run(
        self,
        source,
        is_running: Callable[[], bool],
        overlay=None,
    ) -> int:
        """
        Main loop: acquire, process and emit telemetry until stopped.

        Args:
            source: FrameSource to read from
            is_running: Predicate checked before every iteration
            overlay: ConeOverlay for debug windows (optional)

        Returns:
            Number of frames processed
        """
        processed = 0

        while is_running():
            if not source.wait():
                break

            frame = source.acquire()
            result = self.process_frame(frame)
            self.telemetry.emit(result.timestamp_us, result.angle)

            if overlay is not None:
                self.render(overlay, frame, result)

            processed += 1

        return processed

    def render(self, overlay, frame: Frame, result: FrameResult) -> None:
        """Show the debug windows for one frame."""
        for key, window in (('center_blue', 'blue'), ('center_yellow', 'yellow')):
            if key in result.detections:
                overlay.show(window, overlay.draw_contours(result.detections[key]))

        text = self.telemetry.overlay_text(result.timestamp_us, result.angle)
        overlay.show('debug', overlay.draw_status(frame.pixels, text, self.detector.regions))

    def _update_timing(self, processing_ms: float) -> None:
        """Update timing history."""
        self.timing_history.append(processing_ms)
        if len(self.timing_history) > self.max_timing_history:
            self.timing_history.pop(0)

    def get_timing_stats(self) -> Dict:
        """Get timing statistics."""
        if not self.timing_history:
            return {}

        times = np.array(self.timing_history)
        return {
            'mean_ms': float(np.mean(times)),
            'p95_ms': float(np.percentile(times, 95)),
            'max_ms': float(np.max(times)),
        }

    def get_status(self) -> Dict:
        """Get system status."""
        return {
            'frame_count': self.frame_count,
            'direction': self.direction.name,
            'calibrating': self.calibrator.in_window(self.frame_count + 1),
            'angle': self.angle,
            'timing_stats': self.get_timing_stats(),
        }
