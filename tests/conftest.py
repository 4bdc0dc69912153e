"""
Pytest configuration and shared fixtures for BVH Tool tests

Fixtures:
- humanoid_skeleton: Small humanoid skeleton with BVH-style end sites
- humanoid_rest_pose: Rest world positions keyed by bone name
- walking_rig: PoseTableRig translating the rest pose along +X
- walking_clip: Bone-indexed AnimationClip built from walking_rig
- sample_positions: Sample joint trajectory
- temp_output_dir: Temporary directory for test outputs
"""

import shutil
import tempfile
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from bvh_tool.analysis.skeleton import Bone, PoseTableRig, Skeleton, make_clip_from_rig  # noqa: E402

# ========== Skeleton Fixtures ==========

# (bone, parent, rest world position); "ENDSITE" entries are renamed to <previous>_end
HUMANOID_LAYOUT = [
    ("Hips", None, (0.0, 100.0, 0.0)),
    ("Spine", "Hips", (0.0, 110.0, 0.0)),
    ("Spine1", "Spine", (0.0, 130.0, 0.0)),
    ("Neck", "Spine1", (0.0, 150.0, 0.0)),
    ("Head", "Neck", (0.0, 160.0, 0.0)),
    ("ENDSITE", "Head", (0.0, 175.0, 0.0)),
    ("LeftShoulder", "Spine1", (5.0, 145.0, 0.0)),
    ("LeftArm", "LeftShoulder", (18.0, 145.0, 0.0)),
    ("LeftForeArm", "LeftArm", (18.0, 118.0, 0.0)),
    ("LeftHand", "LeftForeArm", (18.0, 93.0, 0.0)),
    ("ENDSITE", "LeftHand", (18.0, 85.0, 0.0)),
    ("RightShoulder", "Spine1", (-5.0, 145.0, 0.0)),
    ("RightArm", "RightShoulder", (-18.0, 145.0, 0.0)),
    ("RightForeArm", "RightArm", (-18.0, 118.0, 0.0)),
    ("RightHand", "RightForeArm", (-18.0, 93.0, 0.0)),
    ("ENDSITE", "RightHand", (-18.0, 85.0, 0.0)),
    ("LeftUpLeg", "Hips", (9.0, 95.0, 0.0)),
    ("LeftLeg", "LeftUpLeg", (9.0, 52.0, 0.0)),
    ("LeftFoot", "LeftLeg", (9.0, 8.0, 0.0)),
    ("ENDSITE", "LeftFoot", (9.0, 0.0, 12.0)),
    ("RightUpLeg", "Hips", (-9.0, 95.0, 0.0)),
    ("RightLeg", "RightUpLeg", (-9.0, 52.0, 0.0)),
    ("RightFoot", "RightLeg", (-9.0, 8.0, 0.0)),
    ("ENDSITE", "RightFoot", (-9.0, 0.0, 12.0)),
]

WALK_FRAMES = 30
WALK_FRAME_RATE = 90.0
# Forward travel per frame along +X
WALK_STEP = 1.0


@pytest.fixture
def humanoid_skeleton():
    """Humanoid skeleton (24 bones, 4 of them end effectors)."""
    return Skeleton([Bone(name=name, parent=parent) for name, parent, _ in HUMANOID_LAYOUT])


@pytest.fixture
def humanoid_rest_pose(humanoid_skeleton):
    """Rest world positions keyed by (renamed) bone name, root first."""
    return {
        name: np.array(position)
        for name, (_, _, position) in zip(humanoid_skeleton.bone_names, HUMANOID_LAYOUT)
    }


@pytest.fixture
def walking_rig(humanoid_skeleton):
    """
    Rest pose translated along +X by WALK_STEP per frame with a small
    vertical bob, sampled at 90 Hz. Root yaw turns slowly.
    """
    rest = np.array([position for _, _, position in HUMANOID_LAYOUT])
    times = np.arange(WALK_FRAMES) / WALK_FRAME_RATE

    positions = np.zeros((WALK_FRAMES, len(rest), 3))
    rotations = np.zeros((WALK_FRAMES, len(rest), 3))
    for frame in range(WALK_FRAMES):
        offset = np.array([frame * WALK_STEP, 2.0 * np.sin(frame * 0.3), 0.0])
        positions[frame] = rest + offset
        rotations[frame, 0] = [0.0, frame * 0.5, 0.0]

    return PoseTableRig(humanoid_skeleton, times, positions, rotations)


@pytest.fixture
def walking_clip(walking_rig):
    """Bone-indexed clip keyed at the walking rig's table times."""
    return make_clip_from_rig(walking_rig, name="walk")


# ========== Sample Data Fixtures ==========


@pytest.fixture
def sample_positions():
    """Sample joint trajectory: 100 frames moving along +X with a sine bob."""
    frames = 100
    t = np.arange(frames) / WALK_FRAME_RATE
    return np.column_stack([50.0 * t, 100.0 + 3.0 * np.sin(2.0 * np.pi * t), np.zeros(frames)])


@pytest.fixture
def sample_frame_rate():
    """Standard sampling rate for tests."""
    return WALK_FRAME_RATE


# ========== File System Fixtures ==========


@pytest.fixture
def temp_output_dir():
    """Create temporary directory for test outputs."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


# ========== Pytest Configuration ==========


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "gui: Rendering tests (matplotlib Agg backend)")
    config.addinivalue_line("markers", "slow: Slow tests")


# ========== Helper Functions ==========


@pytest.fixture
def assert_csv_exists():
    """Helper to assert CSV file exists and has content."""

    def _assert_csv(filepath, min_rows=1):
        filepath = Path(filepath)
        assert filepath.exists(), f"CSV file not found: {filepath}"

        with open(filepath, "r") as f:
            lines = f.readlines()
            assert len(lines) > min_rows, f"CSV has {len(lines)} lines, expected > {min_rows}"

        return lines

    return _assert_csv
