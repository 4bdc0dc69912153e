"""
Kinematics Sampler Module

Samples world-space joint positions (and local joint angles) over an
animation's keyframe times by scrubbing the rig's clock.

For every keyframe time of the bone's rotation track:
1. set the rig clock to that time
2. advance the clock by zero so world transforms are refreshed
3. read the bone's world position

The pass leaves the rig clock at the last sampled time. Nothing is cached:
calling again re-reads the rig.

Outputs:
- joint_table.csv: Per-frame positions and angles for a set of joints
"""

import numpy as np

from bvh_tool.analysis.utils import write_dict_list_to_csv

# ==============================================================================
# CONSTANTS
# ==============================================================================

# Fixed sampling rate used for offline kinematic recomputation (Hz)
DEFAULT_SAMPLE_RATE = 90.0

# Joints exported by sample_joint_table() when no list is given
DEFAULT_TABLE_JOINTS = [
    "Spine",
    "Spine1",
    "Spine2",
    "Spine3",
    "Hips",
    "Neck",
    "Head",
    "LeftArm",
    "LeftForeArm",
    "RightArm",
    "RightForeArm",
    "LeftShoulder",
    "LeftShoulder2",
    "RightShoulder",
    "RightShoulder2",
    "LeftUpLeg",
    "LeftLeg",
    "RightUpLeg",
    "RightLeg",
]


def _resolve_rotation_track(skeleton, clip, bone_name):
    """Return the bone's rotation track, or None (with a warning) if absent."""
    if skeleton is None or clip is None or not skeleton.joint_index:
        print(f"⚠️  Warning: Skeleton not ready, cannot sample '{bone_name}'")
        return None

    if bone_name not in skeleton.joint_index:
        print(f"⚠️  Warning: Bone not found: {bone_name}")
        return None

    track = clip.rotation_track(skeleton, bone_name)
    if track is None:
        print(f"⚠️  Warning: No rotation track found for {bone_name}")
        return None

    return track


def _scrub(rig, times, read):
    """Step the rig through times, calling read() after each pose update."""
    samples = []
    for t in times:
        rig.set_clock_time(t)
        # Zero-length advance forces world transforms to propagate for this pose
        rig.advance_clock(0.0)
        samples.append(read())
    return samples


def sample_joint_positions(rig, skeleton, clip, bone_name):
    """
    Sample a bone's world position at every rotation keyframe.

    Args:
        rig: RigEvaluator
        skeleton: Skeleton providing joint/bone indices
        clip: AnimationClip with bone-indexed tracks
        bone_name: Bone to sample

    Returns:
        np.array: (n_keyframes, 3) positions, or (0, 3) if the bone or its
            rotation track is missing
    """
    track = _resolve_rotation_track(skeleton, clip, bone_name)
    if track is None:
        return np.zeros((0, 3))

    samples = _scrub(rig, track.times, lambda: rig.get_world_position(bone_name))
    if any(sample is None for sample in samples):
        print(f"⚠️  Warning: Rig returned no position for {bone_name}")
        return np.zeros((0, 3))

    return np.array(samples, dtype=float).reshape(-1, 3)


def sample_joint_angles(rig, skeleton, clip, bone_name):
    """
    Sample a bone's local Euler rotation (degrees) at every rotation keyframe.

    Returns:
        np.array: (n_keyframes, 3) angles, or (0, 3) if unavailable
    """
    track = _resolve_rotation_track(skeleton, clip, bone_name)
    if track is None:
        return np.zeros((0, 3))

    samples = _scrub(rig, track.times, lambda: rig.get_local_rotation(bone_name))
    if any(sample is None for sample in samples):
        print(f"⚠️  Warning: Rig returned no rotation for {bone_name}")
        return np.zeros((0, 3))

    return np.array(samples, dtype=float).reshape(-1, 3)


def sample_joint_table(rig, skeleton, clip, joint_names=None):
    """
    Sample positions and angles for several joints into per-frame rows.

    Joints that are missing from the skeleton or clip are skipped. Rows are
    aligned on keyframe index; if tracks differ in length the table is
    truncated to the shortest.

    Args:
        rig: RigEvaluator
        skeleton: Skeleton
        clip: AnimationClip
        joint_names: Joints to include (default: DEFAULT_TABLE_JOINTS)

    Returns:
        list: [{'frame': i, '<joint>_x': ..., '<joint>_rotx': ..., ...}, ...]
    """
    if joint_names is None:
        joint_names = DEFAULT_TABLE_JOINTS

    columns = {}
    for joint_name in joint_names:
        positions = sample_joint_positions(rig, skeleton, clip, joint_name)
        if len(positions) == 0:
            continue
        angles = sample_joint_angles(rig, skeleton, clip, joint_name)
        if len(angles) != len(positions):
            angles = np.full_like(positions, np.nan)
        columns[joint_name] = (positions, angles)

    if not columns:
        return []

    n_frames = min(len(positions) for positions, _ in columns.values())

    rows = []
    for frame in range(n_frames):
        row = {"frame": frame}
        for joint_name, (positions, angles) in columns.items():
            row[f"{joint_name}_x"] = float(positions[frame, 0])
            row[f"{joint_name}_y"] = float(positions[frame, 1])
            row[f"{joint_name}_z"] = float(positions[frame, 2])
            row[f"{joint_name}_rotx"] = float(angles[frame, 0])
            row[f"{joint_name}_roty"] = float(angles[frame, 1])
            row[f"{joint_name}_rotz"] = float(angles[frame, 2])
        rows.append(row)

    return rows


def export_joint_table_csv(rows, filepath):
    """Write rows from sample_joint_table() to CSV. Empty tables write nothing."""
    if not rows:
        print("⚠️  Warning: Joint table is empty, nothing exported")
        return
    write_dict_list_to_csv(rows, filepath)
    print(f"✓ Joint table exported: {filepath} ({len(rows)} frames)")
