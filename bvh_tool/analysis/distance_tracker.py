"""
Distance Tracker Module

Incrementally accumulates the ground-plane path length of a tracked joint
while the animation plays.

Per update (only while playing):
1. Project the joint onto the X/Z plane
2. Detect a loop/restart (animation time jumped backwards) and reset once
3. Measure the planar step from the last accepted point
4. Accept the step only if it exceeds MIN_MOVEMENT; small steps keep the
   reference point so slow drift still accumulates once it is large enough
5. Record speed = step / elapsed wall time and a slow/medium/fast colour
6. Drop a marker every MARKER_INTERVAL units of path length

Exposes total distance, current speed, colored path segments, and markers
for the renderer and the on-screen overlay.
"""

import time
from dataclasses import dataclass

import numpy as np

# ==============================================================================
# CONSTANTS
# ==============================================================================

# Planar steps at or below this length are treated as noise
MIN_MOVEMENT = 0.01

# Path length between distance markers
MARKER_INTERVAL = 10.0

# Animation time decreasing by more than this (seconds) means the clip looped
LOOP_TIME_THRESHOLD = 0.5

# Speed range mapped onto the colour gradient (units/second)
SPEED_COLOR_MIN = 0.0
SPEED_COLOR_MAX = 150.0

# Slow → medium → fast gradient stops (RGB, 0-1)
SPEED_COLOR_SLOW = (0.0, 0.4, 1.0)
SPEED_COLOR_MEDIUM = (1.0, 0.85, 0.0)
SPEED_COLOR_FAST = (1.0, 0.0, 0.0)

# DOM/overlay id of the distance HUD; one per viewer, replaced on remount
OVERLAY_ID = "distance-tracker-hud"


def speed_to_color(speed, speed_min=SPEED_COLOR_MIN, speed_max=SPEED_COLOR_MAX):
    """
    Map a speed to the three-stop slow/medium/fast gradient.

    Returns:
        tuple: (r, g, b) in 0-1
    """
    if speed_max <= speed_min:
        return SPEED_COLOR_FAST if speed > speed_min else SPEED_COLOR_SLOW

    t = (speed - speed_min) / (speed_max - speed_min)
    t = min(max(t, 0.0), 1.0)

    if t <= 0.5:
        low, high, local = SPEED_COLOR_SLOW, SPEED_COLOR_MEDIUM, t / 0.5
    else:
        low, high, local = SPEED_COLOR_MEDIUM, SPEED_COLOR_FAST, (t - 0.5) / 0.5

    return tuple(float(a + (b - a) * local) for a, b in zip(low, high))


@dataclass
class DistanceMarker:
    """Label placed where the path crosses a multiple of the marker interval."""

    position: np.ndarray  # (3,) on the ground plane
    distance: float

    @property
    def label(self):
        return f"{self.distance:.0f}"


class DistanceTracker:
    """
    Path-length accumulator for one tracked joint of one viewer.

    Args:
        min_movement: Minimum planar step counted toward the total
        marker_interval: Path length between markers
        loop_threshold: Backwards time jump (s) treated as a loop/restart
        speed_range: (min, max) speeds for the colour gradient
        clock: Wall-clock source used when update() gets no wall_time
    """

    def __init__(
        self,
        min_movement=MIN_MOVEMENT,
        marker_interval=MARKER_INTERVAL,
        loop_threshold=LOOP_TIME_THRESHOLD,
        speed_range=(SPEED_COLOR_MIN, SPEED_COLOR_MAX),
        clock=time.perf_counter,
    ):
        if marker_interval <= 0:
            raise ValueError("marker_interval must be positive")
        self.min_movement = min_movement
        self.marker_interval = marker_interval
        self.loop_threshold = loop_threshold
        self.speed_range = tuple(speed_range)
        self._clock = clock
        self.joint_name = None
        self.loop_count = 0
        self.reset()

    def reset(self):
        """Clear path history, totals, and sampling bookkeeping."""
        self.path_points = []
        self.speeds = []
        self.colors = []
        self.markers = []
        self.total_distance = 0.0
        self.current_speed = 0.0
        self.next_marker_distance = self.marker_interval
        self._last_point = None
        self._last_wall_time = None
        self._last_animation_time = None
        self._paused_wall_time = None

    def start(self, joint_name):
        """Begin tracking a (possibly different) joint from scratch."""
        self.joint_name = joint_name
        self.loop_count = 0
        self.reset()

    @property
    def is_tracking(self):
        return self.joint_name is not None

    def _is_loop(self, animation_time):
        if self._last_animation_time is None:
            return False
        if animation_time < self._last_animation_time - self.loop_threshold:
            return True
        return animation_time == 0.0 and self._last_animation_time > 0.0

    def notify_loop(self):
        """Explicit loop-boundary event from the animation collaborator."""
        self.loop_count += 1
        self.reset()

    def update(self, position, animation_time, playing=True, wall_time=None):
        """
        Feed one frame of the tracked joint.

        Args:
            position: (3,) world position of the tracked joint
            animation_time: Current animation clock time (s)
            playing: False while paused; paused frames only note the wall time
            wall_time: Wall-clock seconds (default: self._clock())

        Returns:
            bool: True if the frame extended the path
        """
        if not playing:
            self._paused_wall_time = self._clock() if wall_time is None else wall_time
            return False

        if position is None:
            return False

        position = np.asarray(position, dtype=float)
        if position.shape != (3,) or not np.all(np.isfinite(position)):
            return False

        if wall_time is None:
            wall_time = self._clock()

        if self._paused_wall_time is not None:
            # Time spent paused does not count toward the first step after resuming
            if self._last_wall_time is not None:
                self._last_wall_time = self._paused_wall_time
            self._paused_wall_time = None

        if self._is_loop(animation_time):
            self.notify_loop()

        self._last_animation_time = animation_time

        ground_point = np.array([position[0], 0.0, position[2]])

        if self._last_point is None:
            self._last_point = ground_point
            self._last_wall_time = wall_time
            self.path_points.append(ground_point)
            self.speeds.append(0.0)
            self.colors.append(speed_to_color(0.0, *self.speed_range))
            return True

        step = float(np.linalg.norm(ground_point[[0, 2]] - self._last_point[[0, 2]]))
        if step <= self.min_movement:
            return False

        elapsed = wall_time - self._last_wall_time
        speed = step / elapsed if elapsed > 0 else 0.0

        previous_point = self._last_point
        previous_total = self.total_distance
        self.total_distance += step
        self.current_speed = speed
        self._last_point = ground_point
        self._last_wall_time = wall_time

        self.path_points.append(ground_point)
        self.speeds.append(speed)
        self.colors.append(speed_to_color(speed, *self.speed_range))

        self._place_markers(previous_point, ground_point, previous_total, step)
        return True

    def _place_markers(self, start, end, start_distance, step):
        while self.next_marker_distance <= self.total_distance:
            fraction = (self.next_marker_distance - start_distance) / step
            marker_position = start + (end - start) * fraction
            self.markers.append(DistanceMarker(position=marker_position, distance=self.next_marker_distance))
            self.next_marker_distance += self.marker_interval

    def path_segments(self):
        """
        Colored segments between consecutive path points.

        Returns:
            list: [(start (3,), end (3,), (r, g, b)), ...] colored by the end point's speed
        """
        return [
            (self.path_points[i - 1], self.path_points[i], self.colors[i]) for i in range(1, len(self.path_points))
        ]

    def overlay_text(self):
        """Text for the distance HUD."""
        joint = self.joint_name or "-"
        return f"Joint: {joint}\nDistance: {self.total_distance:.2f} units\nSpeed: {self.current_speed:.2f} units/s"

    def snapshot(self):
        """Plain summary of the tracker state."""
        return {
            "joint_name": self.joint_name,
            "total_distance": self.total_distance,
            "current_speed": self.current_speed,
            "points": len(self.path_points),
            "markers": [marker.distance for marker in self.markers],
            "loop_count": self.loop_count,
        }
