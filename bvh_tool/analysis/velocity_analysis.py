"""
Velocity, Acceleration, and Jerk Analysis Module

Finite-difference kinematics for a single tracked joint, sampled at a fixed
rate (90 Hz by default):

- VELOCITY: central difference inside, one-sided at the two ends
    v_i = (x_{i+1} - x_{i-1}) / (2 dt)
- ACCELERATION: second central difference inside, zero at the ends
    a_i = (x_{i+1} - 2 x_i + x_{i-1}) / dt^2
- JERK: 5-point third-derivative stencil inside, one-sided cubic
  differences on the two samples at each end
    j_i = (x_{i+2} - 2 x_{i+1} + 2 x_{i-1} - x_{i-2}) / (2 dt^3)

Speed is reported both as the full 3D norm and as the planar (X/Z) norm,
which separates ground-plane travel from vertical bob.

Everything is recomputed from scratch per request; no incremental state.

Outputs:
- kinematics_temporal.csv: Frame-by-frame velocity, acceleration, jerk
"""

from dataclasses import dataclass

import numpy as np

from bvh_tool.analysis.kinematics_sampler import DEFAULT_SAMPLE_RATE
from bvh_tool.analysis.utils import as_points, write_dict_list_to_csv

# ==============================================================================
# CONSTANTS
# ==============================================================================

# Minimum samples for each stencil
MIN_SAMPLES_VELOCITY = 2
MIN_SAMPLES_ACCELERATION = 3
MIN_SAMPLES_JERK = 5

# Horizontal axes (Y is up)
PLANAR_AXES = (0, 2)

# Temporal metrics understood by KinematicSeries.as_chart_data()
TEMPORAL_METRICS = ("speed", "acceleration", "jerk")

# Spike detection threshold (number of standard deviations above the mean)
JERK_SPIKE_THRESHOLD_SIGMA = 2.5

# Minimum standard deviation to avoid false positives on constant data
SPIKE_DETECTION_MIN_STD = 1e-6

# Smoothness score scaling factor
# Formula: 1 / (1 + mean_jerk * SCALE)
SMOOTHNESS_SCALE = 0.1


# ==============================================================================
# DERIVATIVES
# ==============================================================================


def compute_velocity(positions, dt):
    """
    First derivative of position.

    Args:
        positions: np.array (n, 3)
        dt: Sample spacing in seconds

    Returns:
        np.array: (n, 3) velocity. A single sample has zero velocity.
    """
    x = as_points(positions)
    n = len(x)
    velocity = np.zeros_like(x)
    if n < MIN_SAMPLES_VELOCITY:
        return velocity

    velocity[1:-1] = (x[2:] - x[:-2]) / (2.0 * dt)
    velocity[0] = (x[1] - x[0]) / dt
    velocity[-1] = (x[-1] - x[-2]) / dt
    return velocity


def compute_acceleration(positions, dt):
    """
    Second derivative of position.

    Boundary samples are left at zero (no extrapolation).

    Returns:
        np.array: (n, 3) acceleration
    """
    x = as_points(positions)
    n = len(x)
    acceleration = np.zeros_like(x)
    if n < MIN_SAMPLES_ACCELERATION:
        return acceleration

    acceleration[1:-1] = (x[2:] - 2.0 * x[1:-1] + x[:-2]) / (dt**2)
    return acceleration


def compute_jerk(positions, dt):
    """
    Third derivative of position.

    Interior samples (two neighbours on each side) use the 5-point central
    stencil. Indices 0 and 1 use the forward cubic difference, the last two
    use the backward cubic difference. Fewer than 5 samples yields zeros.

    Returns:
        np.array: (n, 3) jerk
    """
    x = as_points(positions)
    n = len(x)
    jerk = np.zeros_like(x)
    if n < MIN_SAMPLES_JERK:
        return jerk

    dt3 = dt**3

    jerk[2:-2] = (x[4:] - 2.0 * x[3:-1] + 2.0 * x[1:-3] - x[:-4]) / (2.0 * dt3)

    for i in (0, 1):
        jerk[i] = (x[i + 3] - 3.0 * x[i + 2] + 3.0 * x[i + 1] - x[i]) / dt3

    for i in (n - 2, n - 1):
        jerk[i] = (x[i] - 3.0 * x[i - 1] + 3.0 * x[i - 2] - x[i - 3]) / dt3

    return jerk


def compute_derivatives(positions, frame_rate=DEFAULT_SAMPLE_RATE):
    """
    Compute velocity, acceleration, and jerk from position data.

    Args:
        positions: np.array of shape (n_frames, 3) - position over time
        frame_rate: float - samples per second

    Returns:
        tuple: (velocity, acceleration, jerk) arrays
    """
    dt = 1.0 / frame_rate
    return compute_velocity(positions, dt), compute_acceleration(positions, dt), compute_jerk(positions, dt)


def compute_magnitudes(vectors):
    """Compute magnitude for each vector in array."""
    vectors = as_points(vectors)
    if len(vectors) == 0:
        return np.zeros(0)
    return np.linalg.norm(vectors, axis=1)


def compute_planar_magnitudes(vectors):
    """Magnitude using only the horizontal (X, Z) components."""
    vectors = as_points(vectors)
    if len(vectors) == 0:
        return np.zeros(0)
    return np.linalg.norm(vectors[:, PLANAR_AXES], axis=1)


# ==============================================================================
# SERIES
# ==============================================================================


@dataclass
class KinematicSeries:
    """Parallel per-sample kinematics for one joint. Every array has length n."""

    joint_name: str
    sample_rate: float
    positions: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray
    jerk: np.ndarray
    speed_2d: np.ndarray
    speed_3d: np.ndarray
    acceleration_magnitude: np.ndarray
    jerk_magnitude: np.ndarray

    def __len__(self):
        return len(self.positions)

    @property
    def is_empty(self):
        return len(self.positions) == 0

    @property
    def times(self):
        return np.arange(len(self.positions)) / self.sample_rate

    def as_chart_data(self, metric):
        """
        Arrays feeding the chart for one temporal metric.

        Args:
            metric: 'speed', 'acceleration', or 'jerk'

        Returns:
            dict: {series_label: np.array}
        """
        if metric == "speed":
            return {"speed_2d": self.speed_2d, "speed_3d": self.speed_3d}
        if metric == "acceleration":
            return {
                "acceleration_x": self.acceleration[:, 0],
                "acceleration_y": self.acceleration[:, 1],
                "acceleration_z": self.acceleration[:, 2],
                "acceleration_norm": self.acceleration_magnitude,
            }
        if metric == "jerk":
            return {"jerk_magnitude": self.jerk_magnitude}
        raise ValueError(f"Unknown temporal metric: {metric!r} (expected one of {TEMPORAL_METRICS})")


def compute_kinematic_series(positions, sample_rate=DEFAULT_SAMPLE_RATE, joint_name=""):
    """
    Full kinematic series for a sampled joint trajectory.

    Args:
        positions: (n, 3) sampled world positions
        sample_rate: Sampling rate in Hz
        joint_name: Label carried along for charts/exports

    Returns:
        KinematicSeries
    """
    positions = as_points(positions)
    velocity, acceleration, jerk = compute_derivatives(positions, sample_rate)

    return KinematicSeries(
        joint_name=joint_name,
        sample_rate=sample_rate,
        positions=positions,
        velocity=velocity,
        acceleration=acceleration,
        jerk=jerk,
        speed_2d=compute_planar_magnitudes(velocity),
        speed_3d=compute_magnitudes(velocity),
        acceleration_magnitude=compute_magnitudes(acceleration),
        jerk_magnitude=compute_magnitudes(jerk),
    )


# ==============================================================================
# SUMMARY STATISTICS
# ==============================================================================


def detect_spikes(values, threshold_multiplier, min_std=SPIKE_DETECTION_MIN_STD):
    """
    Detect spikes using statistical outlier detection.

    Formula: spike if value > mean + (threshold_multiplier × std)

    Args:
        values: 1D array of scalar values
        threshold_multiplier: Number of standard deviations for outlier
        min_std: Minimum std to avoid false positives on constant data

    Returns:
        Array of frame indices where spikes occur
    """
    if len(values) == 0:
        return np.array([], dtype=int)

    mean = np.mean(values)
    std = np.std(values)

    if std < min_std:
        return np.array([], dtype=int)

    threshold = mean + (threshold_multiplier * std)
    return np.where(values > threshold)[0]


def compute_smoothness_score(jerk_magnitude, scale_factor=SMOOTHNESS_SCALE):
    """
    Smoothness score from jerk magnitude.

    Formula: 1 / (1 + mean_jerk × scale_factor)

    - jerk = 0 → smoothness = 1.0
    - jerk → ∞ → smoothness → 0.0

    Returns:
        float: Smoothness in [0, 1], higher = smoother
    """
    if len(jerk_magnitude) == 0:
        return 1.0

    mean_jerk = np.mean(jerk_magnitude)
    if mean_jerk == 0:
        return 1.0

    return 1.0 / (1.0 + mean_jerk * scale_factor)


def summarize_series(series):
    """
    Mean/peak statistics for a KinematicSeries.

    Returns:
        dict: Summary values (all zero for an empty series)
    """
    if series.is_empty:
        return {
            "joint_name": series.joint_name,
            "samples": 0,
            "duration": 0.0,
            "mean_speed_3d": 0.0,
            "max_speed_3d": 0.0,
            "mean_speed_2d": 0.0,
            "max_speed_2d": 0.0,
            "mean_acceleration": 0.0,
            "max_acceleration": 0.0,
            "mean_jerk": 0.0,
            "max_jerk": 0.0,
            "jerk_spike_count": 0,
            "smoothness_score": 1.0,
        }

    return {
        "joint_name": series.joint_name,
        "samples": len(series),
        "duration": (len(series) - 1) / series.sample_rate,
        "mean_speed_3d": float(np.mean(series.speed_3d)),
        "max_speed_3d": float(np.max(series.speed_3d)),
        "mean_speed_2d": float(np.mean(series.speed_2d)),
        "max_speed_2d": float(np.max(series.speed_2d)),
        "mean_acceleration": float(np.mean(series.acceleration_magnitude)),
        "max_acceleration": float(np.max(series.acceleration_magnitude)),
        "mean_jerk": float(np.mean(series.jerk_magnitude)),
        "max_jerk": float(np.max(series.jerk_magnitude)),
        "jerk_spike_count": int(len(detect_spikes(series.jerk_magnitude, JERK_SPIKE_THRESHOLD_SIGMA))),
        "smoothness_score": float(compute_smoothness_score(series.jerk_magnitude)),
    }


def export_kinematic_series_csv(series, filepath):
    """
    Write frame-by-frame kinematics to CSV.

    Args:
        series: KinematicSeries
        filepath: Output CSV path
    """
    if series.is_empty:
        print(f"⚠️  Warning: No kinematic data for {series.joint_name or 'joint'}, nothing exported")
        return

    rows = []
    times = series.times
    for i in range(len(series)):
        rows.append(
            {
                "frame": i,
                "time": float(times[i]),
                "position_x": float(series.positions[i, 0]),
                "position_y": float(series.positions[i, 1]),
                "position_z": float(series.positions[i, 2]),
                "velocity_x": float(series.velocity[i, 0]),
                "velocity_y": float(series.velocity[i, 1]),
                "velocity_z": float(series.velocity[i, 2]),
                "speed_2d": float(series.speed_2d[i]),
                "speed_3d": float(series.speed_3d[i]),
                "acceleration_x": float(series.acceleration[i, 0]),
                "acceleration_y": float(series.acceleration[i, 1]),
                "acceleration_z": float(series.acceleration[i, 2]),
                "acceleration_magnitude": float(series.acceleration_magnitude[i]),
                "jerk_magnitude": float(series.jerk_magnitude[i]),
            }
        )

    write_dict_list_to_csv(rows, filepath)
    print(f"✓ Kinematics exported: {filepath} ({len(rows)} frames)")
