"""
Steering Decision Engine - Reactive steering angle from cone contours.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple, Union
import logging

from cone_steering.core.cone import ConeColor, Contour, Direction

logger = logging.getLogger(__name__)


class SteeringDecision(Enum):
    """Row of the per-frame decision table that produced the angle."""
    BLUE_IN_BOUNDS = "blue_in_bounds"
    BLUE_OUT_OF_BOUNDS = "blue_out_of_bounds"
    YELLOW_IN_BOUNDS = "yellow_in_bounds"
    YELLOW_OUT_OF_BOUNDS = "yellow_out_of_bounds"
    NONE = "none"


# Increment subtracted from the angle when a cone of the given color is seen.
# Blue and yellow swap sides between the two directions of travel.
CORRECTIVE_TURNS: Dict[Tuple[ConeColor, Direction], str] = {
    (ConeColor.BLUE, Direction.CLOCKWISE): 'turn_right',
    (ConeColor.BLUE, Direction.COUNTER_CLOCKWISE): 'turn_left',
    (ConeColor.YELLOW, Direction.CLOCKWISE): 'turn_left',
    (ConeColor.YELLOW, Direction.COUNTER_CLOCKWISE): 'turn_right',
}

_IN_BOUNDS = {
    ConeColor.BLUE: SteeringDecision.BLUE_IN_BOUNDS,
    ConeColor.YELLOW: SteeringDecision.YELLOW_IN_BOUNDS,
}

_OUT_OF_BOUNDS = {
    ConeColor.BLUE: SteeringDecision.BLUE_OUT_OF_BOUNDS,
    ConeColor.YELLOW: SteeringDecision.YELLOW_OUT_OF_BOUNDS,
}

ContourSource = Union[Sequence[Contour], Callable[[], Sequence[Contour]]]


@dataclass
class SteeringOutput:
    """
    Steering decision for one frame.

    Angle sign convention: positive steers left, negative steers right.
    """
    angle: float = 0.0
    previous_angle: float = 0.0
    decision: SteeringDecision = SteeringDecision.NONE
    direction: Direction = Direction.COUNTER_CLOCKWISE

    # Significant contour counts; None when the color was not evaluated
    blue_cones: int = 0
    yellow_cones: Optional[int] = None

    @property
    def yellow_evaluated(self) -> bool:
        return self.yellow_cones is not None


class SteeringDecisionEngine:
    """
    Turns per-frame cone contours into a single running steering angle.

    Priority per frame:
    1. Blue cones in the center region
    2. Yellow cones in the center region (only without a blue cone)
    3. No cones: steer straight

    Within bounds a cone applies one fixed corrective step per frame. At or
    beyond a bound the angle resets to straight ahead instead of clamping.
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        detection_threshold: float = 60.0,
        initial_angle: float = 0.0,
    ):
        """
        Initialize steering decision engine.

        Args:
            config: Steering configuration dictionary
            detection_threshold: Minimum contour area (exclusive) for a cone
            initial_angle: Steering angle before the first frame
        """
        self.config = config or self._default_config()

        # Turn increments
        self.turn_right = float(self.config.get('turn_right', 0.025))
        self.turn_left = float(self.config.get('turn_left', -0.025))

        # Open interval of angles that still allow a corrective step
        self.steering_min = float(self.config.get('steering_min', -0.3))
        self.steering_max = float(self.config.get('steering_max', 0.3))

        self.detection_threshold = detection_threshold

        # State
        self._initial_angle = float(initial_angle)
        self._angle = self._initial_angle

    def _default_config(self) -> Dict:
        """Default steering configuration."""
        return {
            'turn_right': 0.025,
            'turn_left': -0.025,
            'steering_min': -0.3,
            'steering_max': 0.3,
        }

    @property
    def angle(self) -> float:
        return self._angle

    def in_bounds(self, angle: float) -> bool:
        """Strict test against the open interval (min, max)."""
        return self.steering_min < angle < self.steering_max

    def increment_for(self, color: ConeColor, direction: Direction) -> float:
        """Corrective increment subtracted for a cone of this color."""
        return getattr(self, CORRECTIVE_TURNS[(color, direction)])

    def step(
        self,
        direction: Direction,
        blue_contours: Sequence[Contour],
        yellow_contours: ContourSource = (),
    ) -> SteeringOutput:
        """
        Compute the steering angle for one frame.

        Args:
            direction: Calibrated direction of travel
            blue_contours: Contours from the center region's blue mask
            yellow_contours: Contours from the center region's yellow mask,
                or a callable producing them. A callable is only invoked
                when no blue cone was found.

        Returns:
            SteeringOutput with the new angle and the decision row applied
        """
        output = SteeringOutput(previous_angle=self._angle, direction=direction)

        decision, output.blue_cones = self._react(ConeColor.BLUE, direction, blue_contours)

        if decision is None:
            if callable(yellow_contours):
                yellow_contours = yellow_contours()
            decision, output.yellow_cones = self._react(ConeColor.YELLOW, direction, yellow_contours)

        if decision is None:
            self._angle = 0.0
            decision = SteeringDecision.NONE

        output.angle = self._angle
        output.decision = decision

        logger.debug(
            "Steering %s: %.4f -> %.4f",
            decision.value, output.previous_angle, output.angle,
        )

        return output

    def _react(
        self,
        color: ConeColor,
        direction: Direction,
        contours: Sequence[Contour],
    ) -> Tuple[Optional[SteeringDecision], int]:
        """
        Apply the decision table to every significant contour of one color.

        Each significant contour re-tests the bounds against the current
        angle, but only the first in-bounds contour applies an increment.

        Returns:
            Tuple of (last decision applied or None, significant contour count)
        """
        decision = None
        adjusted = False
        count = 0

        for contour in contours:
            if not contour.is_significant(self.detection_threshold):
                continue
            count += 1

            if self.in_bounds(self._angle):
                if not adjusted:
                    adjusted = True
                    self._angle = self._angle - self.increment_for(color, direction)
                    decision = _IN_BOUNDS[color]
            else:
                self._angle = 0.0
                decision = _OUT_OF_BOUNDS[color]

        return decision, count

    def reset(self) -> None:
        """Reset the angle to its initial value."""
        self._angle = self._initial_angle
