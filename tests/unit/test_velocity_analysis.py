"""
Unit tests for velocity_analysis module

Tests cover:
- Velocity / acceleration / jerk finite differences
- Degenerate sample counts
- Planar vs 3D speed
- KinematicSeries chart data and summary
- Spike detection and smoothness score
"""

import csv

import numpy as np
import pytest

from bvh_tool.analysis.velocity_analysis import (
    compute_acceleration,
    compute_derivatives,
    compute_jerk,
    compute_kinematic_series,
    compute_magnitudes,
    compute_planar_magnitudes,
    compute_smoothness_score,
    compute_velocity,
    detect_spikes,
    export_kinematic_series_csv,
    summarize_series,
)


@pytest.mark.unit
class TestComputeVelocity:
    """Test first-derivative computation."""

    def test_interior_uses_central_difference(self):
        """Interior velocity must equal (x[i+1] - x[i-1]) / (2*dt)."""
        rng = np.random.default_rng(7)
        positions = rng.normal(size=(20, 3))
        dt = 1.0 / 90.0

        velocity = compute_velocity(positions, dt)

        expected = (positions[2:] - positions[:-2]) / (2.0 * dt)
        np.testing.assert_allclose(velocity[1:-1], expected)

    def test_boundaries_use_one_sided_difference(self):
        """First/last samples use forward/backward differences."""
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [4.0, 0.0, 0.0]])
        velocity = compute_velocity(positions, 1.0)

        np.testing.assert_allclose(velocity[0], [1.0, 0.0, 0.0])
        np.testing.assert_allclose(velocity[-1], [3.0, 0.0, 0.0])

    def test_linear_motion_has_constant_velocity(self):
        """Motion along X at 1 unit/frame gives constant velocity everywhere."""
        dt = 1.0 / 90.0
        positions = np.column_stack([np.arange(10.0), np.zeros(10), np.zeros(10)])

        velocity = compute_velocity(positions, dt)

        np.testing.assert_allclose(velocity[:, 0], np.full(10, 90.0))
        np.testing.assert_allclose(velocity[:, 1:], 0.0)

    def test_single_sample_has_zero_velocity(self):
        """One sample has no neighbour to difference against."""
        velocity = compute_velocity(np.array([[1.0, 2.0, 3.0]]), 0.1)

        assert velocity.shape == (1, 3)
        np.testing.assert_array_equal(velocity, 0.0)

    def test_empty_input_returns_empty_array(self):
        """No samples in, no samples out."""
        assert compute_velocity(np.zeros((0, 3)), 0.1).shape == (0, 3)


@pytest.mark.unit
class TestComputeAcceleration:
    """Test second-derivative computation."""

    def test_stationary_joint_has_zero_acceleration(self):
        """A joint that never moves has zero acceleration at every sample."""
        positions = np.tile([3.0, 100.0, -2.0], (15, 1))
        acceleration = compute_acceleration(positions, 1.0 / 90.0)

        np.testing.assert_allclose(acceleration, 0.0)

    def test_quadratic_motion_has_constant_interior_acceleration(self):
        """x = t² gives a = 2 at every interior sample."""
        dt = 0.1
        t = np.arange(12) * dt
        positions = np.column_stack([t**2, np.zeros_like(t), np.zeros_like(t)])

        acceleration = compute_acceleration(positions, dt)

        np.testing.assert_allclose(acceleration[1:-1, 0], 2.0, rtol=1e-9)

    def test_boundaries_are_zero(self):
        """Acceleration is not extrapolated at the ends."""
        dt = 0.1
        t = np.arange(8) * dt
        positions = np.column_stack([t**2, t**2, t**2])

        acceleration = compute_acceleration(positions, dt)

        np.testing.assert_array_equal(acceleration[0], 0.0)
        np.testing.assert_array_equal(acceleration[-1], 0.0)

    def test_fewer_than_three_samples_is_zero(self):
        """Two samples cannot support the three-point stencil."""
        positions = np.array([[0.0, 0.0, 0.0], [5.0, 0.0, 0.0]])
        np.testing.assert_array_equal(compute_acceleration(positions, 0.1), 0.0)


@pytest.mark.unit
class TestComputeJerk:
    """Test third-derivative computation."""

    def test_linear_motion_has_zero_jerk(self):
        """Constant-velocity motion has zero jerk everywhere, including boundaries."""
        positions = np.column_stack([np.arange(20.0), np.zeros(20), np.zeros(20)])
        jerk = compute_jerk(positions, 1.0)

        np.testing.assert_allclose(jerk, 0.0, atol=1e-9)

    def test_quadratic_motion_has_zero_jerk(self):
        """Constant acceleration means zero jerk."""
        dt = 0.1
        t = np.arange(10) * dt
        positions = np.column_stack([t**2, np.zeros_like(t), np.zeros_like(t)])

        jerk = compute_jerk(positions, dt)

        np.testing.assert_allclose(jerk, 0.0, atol=1e-6)

    def test_cubic_motion_has_constant_jerk(self):
        """x = t³ gives j = 6 for interior and boundary stencils alike."""
        dt = 0.1
        t = np.arange(10) * dt
        positions = np.column_stack([t**3, np.zeros_like(t), np.zeros_like(t)])

        jerk = compute_jerk(positions, dt)

        np.testing.assert_allclose(jerk[:, 0], 6.0, rtol=1e-6)

    def test_interior_uses_five_point_stencil(self):
        """Interior jerk matches the 5-point central formula."""
        rng = np.random.default_rng(3)
        positions = rng.normal(size=(12, 3))
        dt = 0.5

        jerk = compute_jerk(positions, dt)

        x = positions
        expected = (x[4:] - 2 * x[3:-1] + 2 * x[1:-3] - x[:-4]) / (2 * dt**3)
        np.testing.assert_allclose(jerk[2:-2], expected)

    @pytest.mark.parametrize("n", [0, 1, 2, 3, 4])
    def test_fewer_than_five_samples_is_zero(self, n):
        """Short tracks yield all-zero jerk of matching length."""
        positions = np.arange(n * 3, dtype=float).reshape(n, 3) ** 2
        jerk = compute_jerk(positions, 0.1)

        assert jerk.shape == (n, 3)
        assert np.all(jerk == 0.0)


@pytest.mark.unit
class TestDerivativesAndMagnitudes:
    """Test combined derivatives and magnitude helpers."""

    def test_compute_derivatives_shapes(self, sample_positions, sample_frame_rate):
        """Every derivative array has the same length as the input."""
        velocity, acceleration, jerk = compute_derivatives(sample_positions, sample_frame_rate)

        assert velocity.shape == sample_positions.shape
        assert acceleration.shape == sample_positions.shape
        assert jerk.shape == sample_positions.shape

    def test_planar_magnitude_ignores_vertical_axis(self):
        """Speed 2D uses X and Z only."""
        vectors = np.array([[3.0, 100.0, 4.0], [0.0, -7.0, 0.0]])

        np.testing.assert_allclose(compute_planar_magnitudes(vectors), [5.0, 0.0])
        np.testing.assert_allclose(compute_magnitudes(vectors), [np.sqrt(9 + 10000 + 16), 7.0])

    def test_vertical_motion_has_zero_planar_speed(self):
        """A joint moving straight up has positive 3D speed and zero 2D speed."""
        positions = np.column_stack([np.zeros(6), np.arange(6.0), np.zeros(6)])
        series = compute_kinematic_series(positions, sample_rate=10.0)

        np.testing.assert_allclose(series.speed_2d, 0.0)
        np.testing.assert_allclose(series.speed_3d, 10.0)


@pytest.mark.unit
class TestKinematicSeries:
    """Test KinematicSeries container."""

    def test_series_arrays_have_equal_length(self, sample_positions):
        """All per-sample arrays line up with positions."""
        series = compute_kinematic_series(sample_positions, 90.0, "RightHand")

        n = len(sample_positions)
        assert len(series) == n
        for array in (
            series.velocity,
            series.acceleration,
            series.jerk,
            series.speed_2d,
            series.speed_3d,
            series.acceleration_magnitude,
            series.jerk_magnitude,
        ):
            assert len(array) == n

    def test_times_follow_sample_rate(self):
        """Sample i sits at i / sample_rate seconds."""
        series = compute_kinematic_series(np.zeros((4, 3)), sample_rate=2.0)
        np.testing.assert_allclose(series.times, [0.0, 0.5, 1.0, 1.5])

    def test_chart_data_keys(self, sample_positions):
        """Each temporal metric exposes the series the chart plots."""
        series = compute_kinematic_series(sample_positions)

        assert set(series.as_chart_data("speed")) == {"speed_2d", "speed_3d"}
        assert set(series.as_chart_data("acceleration")) == {
            "acceleration_x",
            "acceleration_y",
            "acceleration_z",
            "acceleration_norm",
        }
        assert set(series.as_chart_data("jerk")) == {"jerk_magnitude"}

    def test_chart_data_rejects_unknown_metric(self, sample_positions):
        """Unknown metric names raise ValueError."""
        series = compute_kinematic_series(sample_positions)
        with pytest.raises(ValueError, match="Unknown temporal metric"):
            series.as_chart_data("snap")

    def test_empty_series(self):
        """An empty trajectory produces an empty series."""
        series = compute_kinematic_series(np.zeros((0, 3)), joint_name="Ghost")

        assert series.is_empty
        assert len(series.jerk_magnitude) == 0


@pytest.mark.unit
class TestSpikesAndSmoothness:
    """Test summary statistics helpers."""

    def test_detect_spikes_finds_outlier(self):
        """A single large value above mean + k*std is flagged."""
        values = np.ones(50)
        values[25] = 50.0

        spikes = detect_spikes(values, 2.5)

        assert list(spikes) == [25]

    def test_detect_spikes_constant_data(self):
        """Constant data has no spikes."""
        assert len(detect_spikes(np.full(20, 3.0), 2.0)) == 0

    def test_detect_spikes_empty(self):
        """Empty input returns an empty index array."""
        assert len(detect_spikes(np.array([]), 2.0)) == 0

    def test_smoothness_score_bounds(self):
        """Zero jerk scores 1.0, larger jerk scores lower."""
        assert compute_smoothness_score(np.zeros(10)) == 1.0
        low = compute_smoothness_score(np.full(10, 1.0))
        high = compute_smoothness_score(np.full(10, 100.0))
        assert 0.0 < high < low < 1.0

    def test_summarize_series(self):
        """Summary reports sample count, duration, and mean/peak values."""
        positions = np.column_stack([np.arange(10.0), np.zeros(10), np.zeros(10)])
        summary = summarize_series(compute_kinematic_series(positions, 10.0, "Hips"))

        assert summary["joint_name"] == "Hips"
        assert summary["samples"] == 10
        assert summary["duration"] == pytest.approx(0.9)
        assert summary["mean_speed_3d"] == pytest.approx(10.0)
        assert summary["max_speed_2d"] == pytest.approx(10.0)
        assert summary["mean_acceleration"] == pytest.approx(0.0, abs=1e-9)
        assert summary["smoothness_score"] == pytest.approx(1.0)

    def test_summarize_empty_series(self):
        """An empty series summarises to zeros."""
        summary = summarize_series(compute_kinematic_series(np.zeros((0, 3))))

        assert summary["samples"] == 0
        assert summary["max_jerk"] == 0.0
        assert summary["jerk_spike_count"] == 0


@pytest.mark.unit
class TestExport:
    """Test CSV export of kinematic series."""

    def test_export_writes_one_row_per_sample(self, sample_positions, temp_output_dir):
        """CSV has a header plus one row per frame."""
        series = compute_kinematic_series(sample_positions, 90.0, "Hips")
        path = temp_output_dir / "kinematics.csv"

        export_kinematic_series_csv(series, str(path))

        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == len(sample_positions)
        assert "speed_3d" in rows[0]

    def test_export_empty_series_writes_nothing(self, temp_output_dir):
        """Nothing is written for an empty series."""
        path = temp_output_dir / "empty.csv"
        export_kinematic_series_csv(compute_kinematic_series(np.zeros((0, 3))), str(path))

        assert not path.exists()
