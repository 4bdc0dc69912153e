"""
Skeleton Module

Bone hierarchy, joint indexing, and the rig-evaluator contract used by every
analysis module.

The actual BVH parse and pose evaluation happen elsewhere (the 3D engine that
owns the scene). This module only fixes the vocabulary the analysis layer
speaks:

- Skeleton: ordered bones, root first ("Hips")
- joint_index: bone name -> ordinal in the flattened bone list (all bones)
- bone_index: bone name -> ordinal ignoring synthetic "_end" bones
- AnimationClip: two tracks per indexed bone (position, rotation)
- RigEvaluator: clock + world-position lookup

PoseTableRig is a concrete evaluator over a precomputed pose table, for
embeddings that already evaluated their rig and for tests.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

# Name given by some BVH loaders to every "End Site" node
END_SITE_NAME = "ENDSITE"

# Suffix marking synthetic end-effector bones once renamed
END_EFFECTOR_SUFFIX = "_end"

# Root bone name expected at ordinal 0
ROOT_BONE_NAME = "Hips"

# Each indexed bone owns two consecutive tracks: position then rotation
TRACKS_PER_BONE = 2
ROTATION_TRACK_OFFSET = 1


def normalize_end_sites(names):
    """
    Rename anonymous end sites after the bone that precedes them.

    "ENDSITE" at index i > 0 becomes "<names[i-1]>_end". The first entry is
    never renamed.

    Args:
        names: list of bone names in traversal order

    Returns:
        list: Renamed bone names (new list)
    """
    renamed = []
    for i, name in enumerate(names):
        if name == END_SITE_NAME and i > 0:
            renamed.append(f"{renamed[i - 1]}{END_EFFECTOR_SUFFIX}")
        else:
            renamed.append(name)
    return renamed


def is_end_effector(name):
    """True for synthetic end-effector bones (e.g. 'LeftFootToe_end')."""
    return name.endswith(END_EFFECTOR_SUFFIX)


@dataclass
class Bone:
    """A bone in the skeleton. Parent is referenced by name only."""

    name: str
    parent: Optional[str] = None


class Skeleton:
    """
    Ordered bone list with lookup maps built once at load time.

    The maps are read-only after construction; a reloaded skeleton is a new
    Skeleton instance.
    """

    def __init__(self, bones: List[Bone]):
        names = normalize_end_sites([bone.name for bone in bones])

        # Parent references follow renames so that "ENDSITE" children stay attached
        rename_map = {}
        for bone, new_name in zip(bones, names):
            rename_map.setdefault(bone.name, new_name)

        self.bones: List[Bone] = []
        for bone, new_name in zip(bones, names):
            parent = rename_map.get(bone.parent, bone.parent) if bone.parent else None
            self.bones.append(Bone(name=new_name, parent=parent))

        self.bone_names: List[str] = [bone.name for bone in self.bones]
        self._parents: Dict[str, Optional[str]] = {bone.name: bone.parent for bone in self.bones}

        self.joint_index: Dict[str, int] = {}
        for i, name in enumerate(self.bone_names):
            self.joint_index.setdefault(name, i)

        self.bone_index: Dict[str, int] = {}
        last_index = None
        for i, name in enumerate(self.bone_names):
            if is_end_effector(name):
                continue
            # Ordinals stay contiguous once end effectors are skipped
            last_index = i if last_index is None else last_index + 1
            self.bone_index[name] = last_index

        self.bone_hierarchy = [
            {"name": name, "depth": self.depth(name)} for name in self.bone_names if not is_end_effector(name)
        ]

    @classmethod
    def from_parent_map(cls, hierarchy):
        """
        Build a skeleton from a {child_name: parent_name} mapping.

        Insertion order of the mapping is used as traversal order.
        """
        return cls([Bone(name=name, parent=parent) for name, parent in hierarchy.items()])

    def __len__(self):
        return len(self.bones)

    def __contains__(self, name):
        return name in self.joint_index

    @property
    def root_name(self):
        """Name of the first bone (normally 'Hips'), or None if empty."""
        return self.bone_names[0] if self.bone_names else None

    def parent_of(self, name):
        return self._parents.get(name)

    def depth(self, name):
        """Number of parent hops from the bone to the root."""
        depth = 0
        current = self._parents.get(name)
        while current is not None:
            depth += 1
            current = self._parents.get(current)
        return depth

    def rotation_track_index(self, name):
        """
        Index of a bone's rotation track in the animation clip.

        Returns:
            int or None: bone_index * 2 + 1, or None if the bone is not indexed
        """
        ordinal = self.bone_index.get(name)
        if ordinal is None:
            return None
        return ordinal * TRACKS_PER_BONE + ROTATION_TRACK_OFFSET

    def analysis_joint_names(self):
        """Bone names excluding end effectors, in traversal order."""
        return [entry["name"] for entry in self.bone_hierarchy]


@dataclass
class AnimationTrack:
    """Keyframe track. Values are flattened per keyframe (3 for position, 4 for quaternion)."""

    name: str
    times: np.ndarray
    values: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=float)
        self.values = np.asarray(self.values, dtype=float)

    def __len__(self):
        return len(self.times)


@dataclass
class AnimationClip:
    """Bone-indexed clip: tracks[bone_index * 2] is position, +1 is rotation."""

    name: str
    tracks: List[AnimationTrack]

    @property
    def duration(self):
        ends = [track.times[-1] for track in self.tracks if len(track.times)]
        return float(max(ends)) if ends else 0.0

    def rotation_track(self, skeleton, bone_name):
        """
        Look up the rotation track for a bone.

        Returns:
            AnimationTrack or None if the bone or track is absent
        """
        track_index = skeleton.rotation_track_index(bone_name)
        if track_index is None or track_index >= len(self.tracks):
            return None
        return self.tracks[track_index]


# ==============================================================================
# RIG EVALUATION
# ==============================================================================


class RigEvaluator:
    """
    Interface of the external rig/animation evaluator.

    Implementations own an animation clock. get_world_position() must reflect
    the pose at the current clock time, with world matrices fully propagated.
    """

    @property
    def clock_time(self):
        raise NotImplementedError

    def set_clock_time(self, t):
        raise NotImplementedError

    def advance_clock(self, dt):
        raise NotImplementedError

    def get_world_position(self, bone_name):
        """Return the bone's world position as np.array (3,), or None if unknown."""
        raise NotImplementedError

    def get_local_rotation(self, bone_name):
        """Return the bone's local Euler rotation in degrees as np.array (3,), or None."""
        raise NotImplementedError

    def get_world_positions(self, bone_names):
        """
        Read world positions for several bones at the current clock time.

        Unknown bones are omitted from the result.

        Returns:
            dict: {bone_name: np.array (3,)}
        """
        positions = {}
        for name in bone_names:
            position = self.get_world_position(name)
            if position is not None:
                positions[name] = np.asarray(position, dtype=float)
        return positions


class PoseTableRig(RigEvaluator):
    """
    Rig evaluator over a precomputed pose table.

    Args:
        skeleton: Skeleton whose bone_names index the joint axis of the table
        times: (F,) ascending keyframe times in seconds
        world_positions: (F, J, 3) world positions per frame and joint
        local_rotations: optional (F, J, 3) local Euler angles in degrees

    Poses between table times are linearly interpolated; the clock is clamped
    to [times[0], times[-1]].
    """

    def __init__(self, skeleton, times, world_positions, local_rotations=None):
        self.skeleton = skeleton
        self.times = np.asarray(times, dtype=float)
        self.world_positions = np.asarray(world_positions, dtype=float)

        if self.world_positions.ndim != 3 or self.world_positions.shape[2] != 3:
            raise ValueError(f"world_positions must have shape (frames, joints, 3), got {self.world_positions.shape}")
        if self.world_positions.shape[0] != len(self.times):
            raise ValueError("world_positions and times disagree on frame count")
        if self.world_positions.shape[1] != len(skeleton):
            raise ValueError("world_positions joint axis does not match skeleton bone count")

        if local_rotations is None:
            self.local_rotations = np.zeros_like(self.world_positions)
        else:
            self.local_rotations = np.asarray(local_rotations, dtype=float)

        self._clock = float(self.times[0]) if len(self.times) else 0.0

    @property
    def clock_time(self):
        return self._clock

    @property
    def duration(self):
        return float(self.times[-1] - self.times[0]) if len(self.times) else 0.0

    def set_clock_time(self, t):
        self._clock = self._clamp(t)

    def advance_clock(self, dt):
        self._clock = self._clamp(self._clock + dt)

    def _clamp(self, t):
        if not len(self.times):
            return 0.0
        return float(np.clip(t, self.times[0], self.times[-1]))

    def _interpolate(self, table, joint):
        if len(self.times) == 1:
            return table[0, joint].copy()
        upper = int(np.searchsorted(self.times, self._clock, side="right"))
        upper = min(max(upper, 1), len(self.times) - 1)
        lower = upper - 1
        span = self.times[upper] - self.times[lower]
        alpha = 0.0 if span <= 0 else (self._clock - self.times[lower]) / span
        alpha = min(max(alpha, 0.0), 1.0)
        return (1.0 - alpha) * table[lower, joint] + alpha * table[upper, joint]

    def get_world_position(self, bone_name):
        joint = self.skeleton.joint_index.get(bone_name)
        if joint is None or not len(self.times):
            return None
        return self._interpolate(self.world_positions, joint)

    def get_local_rotation(self, bone_name):
        joint = self.skeleton.joint_index.get(bone_name)
        if joint is None or not len(self.times):
            return None
        return self._interpolate(self.local_rotations, joint)


def make_clip_from_rig(rig, name="clip"):
    """
    Build a bone-indexed AnimationClip from a PoseTableRig.

    Each non-end-effector bone gets a position track followed by a rotation
    track (Euler degrees), both keyed at the rig's table times.
    """
    tracks = []
    for bone_name in rig.skeleton.analysis_joint_names():
        joint = rig.skeleton.joint_index[bone_name]
        tracks.append(
            AnimationTrack(
                name=f"{bone_name}.position",
                times=rig.times,
                values=rig.world_positions[:, joint, :].reshape(-1),
            )
        )
        tracks.append(
            AnimationTrack(
                name=f"{bone_name}.rotation",
                times=rig.times,
                values=rig.local_rotations[:, joint, :].reshape(-1),
            )
        )
    return AnimationClip(name=name, tracks=tracks)


# ==============================================================================
# POSE TABLE FILES
# ==============================================================================

# Arrays stored in a pose-table .npz file
POSE_TABLE_KEYS = ("bone_names", "parents", "times", "world_positions")


def save_pose_table(rig, filepath):
    """
    Write a PoseTableRig to a compressed .npz file.

    Parents are stored as names, with "" for the root.
    """
    skeleton = rig.skeleton
    np.savez_compressed(
        filepath,
        bone_names=np.array(skeleton.bone_names),
        parents=np.array([skeleton.parent_of(name) or "" for name in skeleton.bone_names]),
        times=rig.times,
        world_positions=rig.world_positions,
        local_rotations=rig.local_rotations,
    )


def load_pose_table(filepath):
    """
    Load a pose table exported from a BVH-evaluating engine.

    Args:
        filepath (str): Path to a .npz file with bone_names, parents, times,
            world_positions and optionally local_rotations.

    Returns:
        tuple: (Skeleton, PoseTableRig, AnimationClip)

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If required arrays are missing or inconsistent.
    """
    import os

    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Pose table not found: {filepath}")

    with np.load(filepath, allow_pickle=False) as data:
        missing = [key for key in POSE_TABLE_KEYS if key not in data.files]
        if missing:
            raise RuntimeError(f"Pose table {filepath} is missing arrays: {', '.join(missing)}")

        names = [str(name) for name in data["bone_names"]]
        parents = [str(parent) or None for parent in data["parents"]]
        times = data["times"]
        world_positions = data["world_positions"]
        local_rotations = data["local_rotations"] if "local_rotations" in data.files else None

    if len(parents) != len(names):
        raise RuntimeError(f"Pose table {filepath} has {len(names)} bones but {len(parents)} parents")

    skeleton = Skeleton([Bone(name=name, parent=parent) for name, parent in zip(names, parents)])
    try:
        rig = PoseTableRig(skeleton, times, world_positions, local_rotations)
    except ValueError as e:
        raise RuntimeError(f"Invalid pose table {filepath}: {e}")

    clip = make_clip_from_rig(rig, name=os.path.splitext(os.path.basename(filepath))[0])
    return skeleton, rig, clip
