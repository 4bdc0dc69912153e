"""
Coordinate Frame Module

Explicit coordinate frames for geometric descriptors.

Bounding volumes are computed in a shared local frame (typically the group the
joint markers are parented to, rotated to cancel the root heading). Rather
than asking a scene graph to convert points, every geometric computation takes
a CoordinateFrame and converts world positions itself.

Convention: Y is up, the character faces -Z at zero heading.
"""

import numpy as np

from bvh_tool.analysis.utils import as_points

# Forward direction of an unrotated root bone
DEFAULT_FORWARD = np.array([0.0, 0.0, -1.0])


class CoordinateFrame:
    """
    Rigid/affine frame stored as a 4x4 local-to-world matrix.

    to_local() and to_world() are pure functions on (N, 3) arrays.
    """

    def __init__(self, matrix=None):
        if matrix is None:
            matrix = np.eye(4)
        self.matrix = np.asarray(matrix, dtype=float)
        if self.matrix.shape != (4, 4):
            raise ValueError(f"Coordinate frame matrix must be 4x4, got {self.matrix.shape}")
        self._inverse = np.linalg.inv(self.matrix)

    @classmethod
    def identity(cls):
        return cls(np.eye(4))

    @classmethod
    def from_root_heading(cls, origin=(0.0, 0.0, 0.0), yaw_degrees=0.0):
        """
        Frame rotated about +Y by yaw_degrees and translated to origin.

        Args:
            origin: World-space origin of the frame
            yaw_degrees: Rotation about the vertical axis

        Returns:
            CoordinateFrame
        """
        yaw = np.radians(yaw_degrees)
        c, s = np.cos(yaw), np.sin(yaw)
        matrix = np.eye(4)
        matrix[:3, :3] = np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])
        matrix[:3, 3] = np.asarray(origin, dtype=float)
        return cls(matrix)

    @property
    def is_identity(self):
        return np.allclose(self.matrix, np.eye(4))

    def to_local(self, points):
        """Convert world-space points (N, 3) into this frame."""
        return _apply(self._inverse, points)

    def to_world(self, points):
        """Convert points (N, 3) expressed in this frame back to world space."""
        return _apply(self.matrix, points)


def _apply(matrix, points):
    arr = as_points(points)
    if len(arr) == 0:
        return arr
    homogeneous = np.hstack([arr, np.ones((len(arr), 1))])
    return (homogeneous @ matrix.T)[:, :3]


def heading_from_rotation(euler_xyz_degrees):
    """
    Yaw (degrees) of the root's current forward direction about +Y.

    The root's forward (-Z) is rotated by its XYZ Euler angles, then the
    heading is read from the X/Z components. An unrotated root has heading 0.

    Args:
        euler_xyz_degrees: (3,) root local rotation in degrees

    Returns:
        float: Heading yaw in degrees, wrapped to [-180, 180)
    """
    rx, ry, rz = np.radians(np.asarray(euler_xyz_degrees, dtype=float))

    cx, sx = np.cos(rx), np.sin(rx)
    cy, sy = np.cos(ry), np.sin(ry)
    cz, sz = np.cos(rz), np.sin(rz)

    rot_x = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    rot_y = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rot_z = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])

    # Intrinsic XYZ order
    forward = rot_x @ rot_y @ rot_z @ DEFAULT_FORWARD

    angle_y = np.degrees(np.arctan2(forward[0], forward[2]))
    # Unrotated forward (-Z) gives atan2(0, -1) = 180 degrees; measure relative to it
    heading = angle_y - 180.0
    heading = (heading + 180.0) % 360.0 - 180.0
    return heading
