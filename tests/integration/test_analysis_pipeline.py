"""
Integration tests for the complete analysis pipeline.

Drives SkeletonAnalysisViewer end to end over pose-table rigs:
- Kinematics of a joint moving at constant speed
- Bounding volumes of a unit-cube "skeleton"
- Distance covered along a right-angle path
- Kinematics are recomputed on selection changes only, not per frame
- Output file generation
"""

import csv
import json
from unittest.mock import patch

import numpy as np
import pytest

from bvh_tool.analysis import kinematics_sampler
from bvh_tool.analysis.descriptor_manager import DescriptorType
from bvh_tool.analysis.geometric_descriptors import BoundingBox, BoundingSphere
from bvh_tool.analysis.orchestrator import SkeletonAnalysisViewer
from bvh_tool.analysis.skeleton import Bone, PoseTableRig, Skeleton, make_clip_from_rig

FRAME_RATE = 90.0


def build_viewer(names, frames, renderer=None):
    """
    Viewer over a flat skeleton (every bone parented to the first).

    Args:
        names: Bone names, root first
        frames: (F, J, 3) world positions
    """
    frames = np.asarray(frames, dtype=float)
    skeleton = Skeleton([Bone(name, None if i == 0 else names[0]) for i, name in enumerate(names)])
    times = np.arange(len(frames)) / FRAME_RATE
    rig = PoseTableRig(skeleton, times, frames)
    return SkeletonAnalysisViewer(rig, skeleton, make_clip_from_rig(rig), renderer=renderer), rig


@pytest.mark.integration
class TestKinematicsPipeline:
    """Constant-speed joint through sampling and derivatives."""

    def test_constant_speed_joint(self):
        frames = [[[float(i), 0.0, 0.0]] for i in range(5)]
        viewer, _ = build_viewer(["Hips"], frames)

        series = viewer.set_temporal_metric("speed")

        np.testing.assert_allclose(series.speed_3d[1:-1], 90.0)
        np.testing.assert_allclose(series.acceleration_magnitude, 0.0, atol=1e-6)
        # Four-interval track still has enough samples for jerk
        np.testing.assert_allclose(series.jerk_magnitude, 0.0, atol=1e-3)

    def test_short_track_jerk_is_zero(self):
        frames = [[[float(i) ** 2, 0.0, 0.0]] for i in range(4)]
        viewer, _ = build_viewer(["Hips"], frames)

        series = viewer.set_temporal_metric("jerk")

        assert len(series) == 4
        assert np.all(series.jerk_magnitude == 0.0)

    def test_ticks_do_not_resample(self, walking_rig, humanoid_skeleton, walking_clip):
        """Kinematics are computed when the joint or metric changes, never per frame."""
        viewer = SkeletonAnalysisViewer(walking_rig, humanoid_skeleton, walking_clip)
        viewer.set_active_descriptor("com")

        with patch(
            "bvh_tool.analysis.orchestrator.sample_joint_positions",
            wraps=kinematics_sampler.sample_joint_positions,
        ) as sampler:
            viewer.set_temporal_metric("speed")
            for frame in range(10):
                walking_rig.set_clock_time(walking_rig.times[frame])
                viewer.tick(walking_rig.times[frame])
            viewer.select_joint("LeftFoot")

        assert sampler.call_count == 2


@pytest.mark.integration
class TestBoundingVolumePipeline:
    """Unit-cube joints through the descriptor manager."""

    @pytest.fixture
    def cube_viewer(self):
        corners = [[x, y, z] for x in (0.0, 1.0) for y in (0.0, 1.0) for z in (0.0, 1.0)]
        names = ["Hips"] + [f"Corner{i}" for i in range(1, 8)]
        viewer, _ = build_viewer(names, [corners, corners])
        return viewer

    def test_box_of_unit_cube(self, cube_viewer):
        cube_viewer.set_active_descriptor("box")
        assert cube_viewer.tick(0.0)

        box = cube_viewer.descriptors.active_result
        assert isinstance(box, BoundingBox)
        np.testing.assert_allclose(box.size, [1.0, 1.0, 1.0])

    def test_sphere_of_unit_cube(self, cube_viewer):
        cube_viewer.set_active_descriptor("sphere")
        assert cube_viewer.tick(0.0)

        sphere = cube_viewer.descriptors.active_result
        assert isinstance(sphere, BoundingSphere)
        assert sphere.unpadded_radius >= np.sqrt(3) / 2 - 1e-12

    def test_ellipsoid_of_unit_cube(self, cube_viewer):
        cube_viewer.set_active_descriptor("ellipsoid")
        cube_viewer.tick(0.0)

        ellipsoid = cube_viewer.descriptors.active_result
        corners = np.array(list(cube_viewer.read_joint_positions().values()))
        assert ellipsoid.contains(corners)

    def test_switch_cycle_keeps_single_active(self, cube_viewer):
        for kind in ("box", "sphere", "ellipsoid", "box"):
            cube_viewer.set_active_descriptor(kind)
            cube_viewer.tick(0.0)

        visible = []
        for kind in DescriptorType:
            variant = cube_viewer.descriptors.get_variant(kind)
            if variant is not None and variant.visible:
                visible.append(kind)
        assert visible == [DescriptorType.BOX]


@pytest.mark.integration
class TestDistancePipeline:
    """Right-angle path through the viewer's distance descriptor."""

    def test_path_length_is_segment_sum(self):
        frames = [[[0.0, 90.0, 0.0]], [[3.0, 90.0, 0.0]], [[3.0, 90.0, 4.0]]]
        viewer, rig = build_viewer(["Hips"], frames)
        viewer.set_active_descriptor("distance")

        for frame, t in enumerate(rig.times):
            rig.set_clock_time(t)
            viewer.tick(t, wall_time=frame * 0.1)

        assert viewer.tracker.total_distance == pytest.approx(7.0, abs=viewer.config.min_movement)


@pytest.mark.integration
class TestFullPipeline:
    """Complete session over the walking rig with exports."""

    def test_session_and_export(self, walking_rig, humanoid_skeleton, walking_clip, temp_output_dir):
        viewer = SkeletonAnalysisViewer(walking_rig, humanoid_skeleton, walking_clip)
        viewer.select_joint("RightFoot")
        viewer.set_temporal_metric("acceleration")
        viewer.set_active_descriptor("distance")

        for frame, t in enumerate(walking_rig.times):
            walking_rig.set_clock_time(t)
            viewer.tick(t, wall_time=frame / 90.0)

        summary = viewer.export_analysis(str(temp_output_dir), joint_names=["Hips", "RightFoot", "Head"])

        assert summary["joint_name"] == "RightFoot"
        assert summary["distance"]["total_distance"] == pytest.approx(29.0)
        assert summary["distance"]["markers"] == [10.0, 20.0]

        with open(temp_output_dir / "kinematics_summary.json") as f:
            assert json.load(f)["distance"]["points"] == 30

        with open(temp_output_dir / "kinematics_temporal.csv", newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 30
        assert float(rows[10]["speed_2d"]) == pytest.approx(90.0)

        with open(temp_output_dir / "joint_table.csv", newline="") as f:
            header = next(csv.reader(f))
        assert "Head_roty" in header
