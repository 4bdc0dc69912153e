"""
Geometric Descriptor Module

Per-frame shape descriptors of a posed skeleton:

1. BOUNDING VOLUMES
   - Axis-aligned bounding box (min/max over joints)
   - Bounding sphere (centroid- or root-centred, padded radius)
   - Bounding ellipsoid (std-dev radii, one containment-correction pass)

2. MASS DISTRIBUTION
   - Weighted center of mass from an anthropometric segment-weight table

3. BALANCE
   - Support polygon = ground footprint of a bounding volume
   - Balanced iff the ground-projected CoM lies inside the polygon

All functions are pure: world positions (plus an optional CoordinateFrame)
in, result dataclasses out. Volumes are expressed in the frame's local
coordinates. Too little valid data returns None rather than raising.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from bvh_tool.analysis.coordinate_frame import CoordinateFrame
from bvh_tool.analysis.utils import as_points, finite_rows

# ==============================================================================
# CONSTANTS - Bounding Volumes
# ==============================================================================

# Sphere radius inflation so the tessellated sphere still contains every joint
SPHERE_PADDING = 1.05

# Sphere centre: centroid of all joints, or the root joint (row 0)
SPHERE_CENTER_MODES = ("centroid", "root")
DEFAULT_SPHERE_CENTER_MODE = "centroid"

# Ellipsoid radius = std-dev of offsets along the axis × scale
# Empirical; values between 1.5 and 2.5 have both been used
ELLIPSOID_SCALE = 2.5

# Ellipsoid centre: centroid of joints, or bounding-box midpoint
ELLIPSOID_CENTER_MODES = ("centroid", "box_center")
DEFAULT_ELLIPSOID_CENTER_MODE = "centroid"

# Extra inflation applied on top of sqrt(max_ratio) in the correction pass
ELLIPSOID_CORRECTION_MARGIN = 1.02

# Floor for a radius when joints are coplanar along an axis
MIN_ELLIPSOID_RADIUS = 1e-6

MIN_JOINTS_BOX = 1
MIN_JOINTS_SPHERE = 2
MIN_JOINTS_ELLIPSOID = 2

# ==============================================================================
# CONSTANTS - Center of Mass
# ==============================================================================

# Relative segment weights keyed by joint name
SEGMENT_WEIGHTS = {
    "Hips": 0.497,
    "LeftShoulder": 0.28,
    "RightShoulder": 0.28,
    "LeftArm": 0.16,
    "RightArm": 0.16,
    "LeftHand": 0.06,
    "RightHand": 0.06,
    "LeftUpLeg": 0.10,
    "RightUpLeg": 0.10,
    "LeftLeg": 0.465,
    "RightLeg": 0.465,
    "LeftFoot": 0.145,
    "RightFoot": 0.145,
    "Head": 0.081,
}

# Joints without a direct entry borrow the weight of another joint
WEIGHT_ALIASES = {
    "LeftForeArm": "LeftArm",
    "RightForeArm": "RightArm",
    "LeftUpArm": "LeftArm",
    "RightUpArm": "RightArm",
    "LeftThigh": "LeftUpLeg",
    "RightThigh": "RightUpLeg",
    "LeftShin": "LeftLeg",
    "RightShin": "RightLeg",
}

# ==============================================================================
# CONSTANTS - Balance
# ==============================================================================

# Substrings identifying foot joints for ground detection
FOOT_JOINT_KEYWORDS = ("Foot", "Toe")

# Ground plane sits this far below the lowest foot joint
GROUND_OFFSET = 0.1

BALANCE_BASES = ("box", "sphere", "ellipsoid")
DEFAULT_BALANCE_BASIS = "box"

# Vertices used to approximate circular/elliptical footprints
SUPPORT_POLYGON_SEGMENTS = 32

MIN_POLYGON_POINTS = 3

# Tolerance for treating a point as lying on the polygon boundary
POLYGON_BOUNDARY_EPSILON = 1e-9

BALANCED_COLOR = "#00ff00"
UNBALANCED_COLOR = "#ff0000"


# ==============================================================================
# RESULT TYPES
# ==============================================================================


@dataclass
class BoundingBox:
    min: np.ndarray
    max: np.ndarray
    center: np.ndarray
    size: np.ndarray

    @property
    def volume(self):
        return float(np.prod(self.size))

    def contains(self, points, tolerance=1e-9):
        points = as_points(points)
        return bool(np.all(points >= self.min - tolerance) and np.all(points <= self.max + tolerance))


@dataclass
class BoundingSphere:
    center: np.ndarray
    radius: float
    unpadded_radius: float

    @property
    def volume(self):
        return float(4.0 / 3.0 * np.pi * self.radius**3)

    def contains(self, points, tolerance=1e-9):
        points = as_points(points)
        return bool(np.all(np.linalg.norm(points - self.center, axis=1) <= self.radius + tolerance))


@dataclass
class BoundingEllipsoid:
    center: np.ndarray
    radii: np.ndarray
    corrected: bool

    @property
    def volume(self):
        return float(4.0 / 3.0 * np.pi * np.prod(self.radii))

    def normalized_distances(self, points):
        """(dx/rx)² + (dy/ry)² + (dz/rz)² per point; <= 1 means inside."""
        points = as_points(points)
        return np.sum(((points - self.center) / self.radii) ** 2, axis=1)

    def contains(self, points, tolerance=1e-9):
        return bool(np.all(self.normalized_distances(points) <= 1.0 + tolerance))


@dataclass
class CenterOfMass:
    position: np.ndarray
    total_weight: float
    matched_joints: List[str]


@dataclass
class BalanceResult:
    is_balanced: bool
    center_of_mass: np.ndarray
    projected_com: np.ndarray
    ground_y: float
    support_polygon: np.ndarray  # (K, 3) points on the ground plane, closed implicitly
    basis: str

    @property
    def color(self):
        return BALANCED_COLOR if self.is_balanced else UNBALANCED_COLOR


# ==============================================================================
# BOUNDING VOLUMES
# ==============================================================================


def _local_points(world_positions, frame):
    points = finite_rows(world_positions)
    if frame is None:
        return points
    return frame.to_local(points)


def compute_bounding_box(world_positions, frame: Optional[CoordinateFrame] = None):
    """
    Axis-aligned bounding box of joint positions in the frame's local space.

    Args:
        world_positions: (N, 3) joint world positions
        frame: CoordinateFrame the box is aligned to (default: world)

    Returns:
        BoundingBox or None if no valid joints
    """
    points = _local_points(world_positions, frame)
    if len(points) < MIN_JOINTS_BOX:
        return None

    box_min = points.min(axis=0)
    box_max = points.max(axis=0)
    return BoundingBox(min=box_min, max=box_max, center=(box_min + box_max) / 2.0, size=box_max - box_min)


def compute_bounding_sphere(
    world_positions,
    frame: Optional[CoordinateFrame] = None,
    center_mode=DEFAULT_SPHERE_CENTER_MODE,
    padding=SPHERE_PADDING,
):
    """
    Sphere enclosing every joint.

    Args:
        world_positions: (N, 3) joint world positions; row 0 is the root joint
        frame: CoordinateFrame for the result (default: world)
        center_mode: 'centroid' or 'root'
        padding: Radius multiplier (>= 1)

    Returns:
        BoundingSphere or None if fewer than 2 valid joints
    """
    if center_mode not in SPHERE_CENTER_MODES:
        raise ValueError(f"Unknown sphere center mode: {center_mode!r}")

    raw = as_points(world_positions)
    points = _local_points(raw, frame)
    if len(points) < MIN_JOINTS_SPHERE:
        return None

    if center_mode == "root" and len(raw) and np.all(np.isfinite(raw[0])):
        center = _local_points(raw[:1], frame)[0]
    else:
        center = points.mean(axis=0)

    unpadded = float(np.max(np.linalg.norm(points - center, axis=1)))
    return BoundingSphere(center=center, radius=unpadded * padding, unpadded_radius=unpadded)


def compute_bounding_ellipsoid(
    world_positions,
    frame: Optional[CoordinateFrame] = None,
    center_mode=DEFAULT_ELLIPSOID_CENTER_MODE,
    scale=ELLIPSOID_SCALE,
):
    """
    Axis-aligned ellipsoid fitted to joint spread.

    Radii are the per-axis standard deviation of offsets from the centre,
    times scale. If any joint then falls outside, all radii are inflated by
    sqrt(max_ratio) × ELLIPSOID_CORRECTION_MARGIN (single pass).

    Returns:
        BoundingEllipsoid or None if fewer than 2 valid joints
    """
    if center_mode not in ELLIPSOID_CENTER_MODES:
        raise ValueError(f"Unknown ellipsoid center mode: {center_mode!r}")

    points = _local_points(world_positions, frame)
    if len(points) < MIN_JOINTS_ELLIPSOID:
        return None

    if center_mode == "box_center":
        center = (points.min(axis=0) + points.max(axis=0)) / 2.0
    else:
        center = points.mean(axis=0)

    offsets = points - center
    std = np.sqrt(np.mean(offsets**2, axis=0))
    radii = np.maximum(std * scale, MIN_ELLIPSOID_RADIUS)

    max_ratio = float(np.max(np.sum((offsets / radii) ** 2, axis=1)))
    corrected = False
    if max_ratio > 1.0:
        radii = radii * np.sqrt(max_ratio) * ELLIPSOID_CORRECTION_MARGIN
        corrected = True

    return BoundingEllipsoid(center=center, radii=radii, corrected=corrected)


# ==============================================================================
# CENTER OF MASS
# ==============================================================================


def resolve_segment_weight(joint_name):
    """Weight for a joint, following WEIGHT_ALIASES. None if unweighted."""
    if joint_name in SEGMENT_WEIGHTS:
        return SEGMENT_WEIGHTS[joint_name]
    alias = WEIGHT_ALIASES.get(joint_name)
    if alias is not None:
        return SEGMENT_WEIGHTS.get(alias)
    return None


def compute_center_of_mass(joint_positions: Dict[str, np.ndarray]):
    """
    Weighted average of joint positions.

    Args:
        joint_positions: {joint_name: (3,) world position}

    Returns:
        CenterOfMass or None if no joint carries a weight
    """
    weighted_sum = np.zeros(3)
    total_weight = 0.0
    matched = []

    for name, position in joint_positions.items():
        weight = resolve_segment_weight(name)
        if weight is None:
            continue
        position = np.asarray(position, dtype=float)
        if position.shape != (3,) or not np.all(np.isfinite(position)):
            continue
        weighted_sum += weight * position
        total_weight += weight
        matched.append(name)

    if total_weight <= 0.0:
        return None

    return CenterOfMass(position=weighted_sum / total_weight, total_weight=total_weight, matched_joints=matched)


# ==============================================================================
# BALANCE
# ==============================================================================


def is_foot_joint(joint_name):
    return any(keyword in joint_name for keyword in FOOT_JOINT_KEYWORDS)


def find_ground_level(joint_positions: Dict[str, np.ndarray], offset=GROUND_OFFSET):
    """
    Ground height: lowest foot joint Y (or lowest joint Y) minus offset.

    Returns:
        float or None if no finite joint positions
    """
    foot_ys = []
    all_ys = []
    for name, position in joint_positions.items():
        position = np.asarray(position, dtype=float)
        if position.shape != (3,) or not np.all(np.isfinite(position)):
            continue
        all_ys.append(position[1])
        if is_foot_joint(name):
            foot_ys.append(position[1])

    if foot_ys:
        return float(min(foot_ys)) - offset
    if all_ys:
        return float(min(all_ys)) - offset
    return None


def compute_support_polygon(basis, shape, ground_y, segments=SUPPORT_POLYGON_SEGMENTS):
    """
    Ground-plane footprint of a bounding volume.

    Args:
        basis: 'box', 'sphere', or 'ellipsoid'
        shape: Matching BoundingBox / BoundingSphere / BoundingEllipsoid
        ground_y: Height of the ground plane
        segments: Vertices for circular/elliptical footprints

    Returns:
        np.array: (K, 3) polygon vertices in order, y = ground_y
    """
    if shape is None:
        return np.zeros((0, 3))

    if basis == "box":
        xz = np.array(
            [
                [shape.min[0], shape.min[2]],
                [shape.max[0], shape.min[2]],
                [shape.max[0], shape.max[2]],
                [shape.min[0], shape.max[2]],
            ]
        )
    elif basis in ("sphere", "ellipsoid"):
        if basis == "sphere":
            rx = rz = shape.radius
        else:
            rx, rz = shape.radii[0], shape.radii[2]
        angles = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
        xz = np.column_stack([shape.center[0] + rx * np.cos(angles), shape.center[2] + rz * np.sin(angles)])
    else:
        raise ValueError(f"Unknown balance basis: {basis!r} (expected one of {BALANCE_BASES})")

    return np.column_stack([xz[:, 0], np.full(len(xz), ground_y), xz[:, 1]])


def _on_segment(p, a, b, eps):
    ab = b - a
    ap = p - a
    cross = ab[0] * ap[1] - ab[1] * ap[0]
    if abs(cross) > eps * max(1.0, np.linalg.norm(ab)):
        return False
    dot = np.dot(ap, ab)
    return -eps <= dot <= np.dot(ab, ab) + eps


def point_in_polygon(point_xz, polygon_xz, eps=POLYGON_BOUNDARY_EPSILON):
    """
    Crossing-number test on the X/Z plane.

    Points on a vertex or an edge count as inside.

    Args:
        point_xz: (2,) query point
        polygon_xz: (K, 2) vertices in order (not repeated at the end)

    Returns:
        bool
    """
    p = np.asarray(point_xz, dtype=float)
    poly = np.asarray(polygon_xz, dtype=float)
    n = len(poly)
    if n < MIN_POLYGON_POINTS:
        return False

    for i in range(n):
        if _on_segment(p, poly[i], poly[(i + 1) % n], eps):
            return True

    inside = False
    x, z = p
    j = n - 1
    for i in range(n):
        xi, zi = poly[i]
        xj, zj = poly[j]
        if (zi > z) != (zj > z):
            x_cross = (xj - xi) * (z - zi) / (zj - zi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def evaluate_balance(
    joint_positions: Dict[str, np.ndarray],
    basis=DEFAULT_BALANCE_BASIS,
    ground_offset=GROUND_OFFSET,
    segments=SUPPORT_POLYGON_SEGMENTS,
    sphere_center_mode=DEFAULT_SPHERE_CENTER_MODE,
    sphere_padding=SPHERE_PADDING,
    ellipsoid_center_mode=DEFAULT_ELLIPSOID_CENTER_MODE,
    ellipsoid_scale=ELLIPSOID_SCALE,
):
    """
    Classify the pose as balanced if the ground-projected CoM is inside the
    footprint of the selected bounding volume.

    Computed in world space so the footprint and CoM share the ground plane.

    Args:
        joint_positions: {joint_name: (3,) world position}, root first
        basis: Bounding volume used for the support polygon

    Returns:
        BalanceResult or None (no CoM, or polygon with < 3 points)
    """
    if basis not in BALANCE_BASES:
        raise ValueError(f"Unknown balance basis: {basis!r} (expected one of {BALANCE_BASES})")

    com = compute_center_of_mass(joint_positions)
    if com is None:
        return None

    ground_y = find_ground_level(joint_positions, ground_offset)
    if ground_y is None:
        return None

    points = np.array([np.asarray(p, dtype=float) for p in joint_positions.values()]).reshape(-1, 3)
    if basis == "box":
        shape = compute_bounding_box(points)
    elif basis == "sphere":
        shape = compute_bounding_sphere(points, center_mode=sphere_center_mode, padding=sphere_padding)
    else:
        shape = compute_bounding_ellipsoid(points, center_mode=ellipsoid_center_mode, scale=ellipsoid_scale)

    polygon = compute_support_polygon(basis, shape, ground_y, segments)
    if len(polygon) < MIN_POLYGON_POINTS:
        return None

    projected = np.array([com.position[0], ground_y, com.position[2]])
    balanced = point_in_polygon(projected[[0, 2]], polygon[:, [0, 2]])

    return BalanceResult(
        is_balanced=balanced,
        center_of_mass=com.position,
        projected_com=projected,
        ground_y=ground_y,
        support_polygon=polygon,
        basis=basis,
    )
