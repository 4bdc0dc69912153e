"""
Descriptor Manager with explicit release-on-switch

Keeps exactly one geometric descriptor active per viewer.

Key features:
- Lazy construction: a variant is built the first time it is selected, then cached
- Explicit release: switching away calls release() on the previous variant
  before the next one is activated, so no descriptor keeps stale geometry
- Frame updates only touch the active variant
- Insufficient data keeps the previous result instead of clearing it

Usage:
    manager = DescriptorManager(config, tracker)
    manager.set_active_descriptor("sphere")
    manager.update(FrameContext(joint_positions=positions))
    sphere = manager.active_result
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

import numpy as np

from bvh_tool.analysis.config import AnalysisConfig
from bvh_tool.analysis.coordinate_frame import CoordinateFrame
from bvh_tool.analysis.distance_tracker import DistanceTracker
from bvh_tool.analysis.geometric_descriptors import (
    compute_bounding_box,
    compute_bounding_ellipsoid,
    compute_bounding_sphere,
    compute_center_of_mass,
    evaluate_balance,
)


class DescriptorType(Enum):
    """Selectable descriptors. Values match the selector keys."""

    NONE = "none"
    BOX = "box"
    SPHERE = "sphere"
    ELLIPSOID = "ellipsoid"
    COM = "com"
    BALANCE = "balance"
    DISTANCE = "distance"

    @classmethod
    def parse(cls, value):
        """Accept a DescriptorType, its value string, or None (= NONE)."""
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown descriptor type: {value!r} (expected one of {valid})")


@dataclass
class FrameContext:
    """Everything a descriptor may read for one animation frame."""

    joint_positions: Dict[str, np.ndarray]
    frame: Optional[CoordinateFrame] = None
    animation_time: float = 0.0
    playing: bool = True
    wall_time: Optional[float] = None
    tracked_joint: Optional[str] = None
    extras: dict = field(default_factory=dict)

    def positions_array(self):
        """Joint positions as (N, 3), in the dict's (root-first) order."""
        if not self.joint_positions:
            return np.zeros((0, 3))
        return np.array([np.asarray(p, dtype=float) for p in self.joint_positions.values()]).reshape(-1, 3)


class DescriptorVariant:
    """
    Base class for one selectable descriptor.

    Subclasses implement compute(); the base handles visibility, result
    retention on missing data, and release.
    """

    kind = DescriptorType.NONE

    def __init__(self, config: AnalysisConfig):
        self.config = config
        self.result = None
        self.visible = False
        self.released = False
        self.update_count = 0

    def activate(self):
        self.released = False
        self.visible = True

    def compute(self, context: FrameContext):
        raise NotImplementedError

    def update(self, context: FrameContext):
        """
        Recompute from this frame's data.

        Returns:
            bool: True if the result changed; False if data was insufficient
                (previous result retained) or the variant is hidden
        """
        if not self.visible:
            return False
        result = self.compute(context)
        if result is None:
            return False
        self.result = result
        self.update_count += 1
        return True

    def release(self):
        """Drop derived geometry and hide. Safe to call more than once."""
        if self.released:
            return
        self.result = None
        self.visible = False
        self.released = True


class BoundingBoxDescriptor(DescriptorVariant):
    kind = DescriptorType.BOX

    def compute(self, context):
        return compute_bounding_box(context.positions_array(), context.frame)


class BoundingSphereDescriptor(DescriptorVariant):
    kind = DescriptorType.SPHERE

    def compute(self, context):
        return compute_bounding_sphere(
            context.positions_array(),
            context.frame,
            center_mode=self.config.sphere_center_mode,
            padding=self.config.sphere_padding,
        )


class BoundingEllipsoidDescriptor(DescriptorVariant):
    kind = DescriptorType.ELLIPSOID

    def compute(self, context):
        return compute_bounding_ellipsoid(
            context.positions_array(),
            context.frame,
            center_mode=self.config.ellipsoid_center_mode,
            scale=self.config.ellipsoid_scale,
        )


class CenterOfMassDescriptor(DescriptorVariant):
    kind = DescriptorType.COM

    def compute(self, context):
        return compute_center_of_mass(context.joint_positions)


class BalanceDescriptor(DescriptorVariant):
    kind = DescriptorType.BALANCE

    def compute(self, context):
        return evaluate_balance(
            context.joint_positions,
            basis=self.config.balance_basis,
            ground_offset=self.config.ground_offset,
            segments=self.config.polygon_segments,
            sphere_center_mode=self.config.sphere_center_mode,
            sphere_padding=self.config.sphere_padding,
            ellipsoid_center_mode=self.config.ellipsoid_center_mode,
            ellipsoid_scale=self.config.ellipsoid_scale,
        )


class DistanceDescriptor(DescriptorVariant):
    """Feeds the viewer's DistanceTracker with the tracked joint each frame."""

    kind = DescriptorType.DISTANCE

    def __init__(self, config, tracker: DistanceTracker):
        super().__init__(config)
        self.tracker = tracker

    def activate(self):
        super().activate()
        self.result = self.tracker

    def compute(self, context):
        joint = context.tracked_joint
        if joint is None or joint not in context.joint_positions:
            return None
        if joint != self.tracker.joint_name:
            self.tracker.start(joint)
        changed = self.tracker.update(
            context.joint_positions[joint],
            context.animation_time,
            playing=context.playing,
            wall_time=context.wall_time,
        )
        return self.tracker if changed else None

    def release(self):
        if not self.released:
            self.tracker.reset()
        super().release()


VARIANT_CLASSES = {
    DescriptorType.BOX: BoundingBoxDescriptor,
    DescriptorType.SPHERE: BoundingSphereDescriptor,
    DescriptorType.ELLIPSOID: BoundingEllipsoidDescriptor,
    DescriptorType.COM: CenterOfMassDescriptor,
    DescriptorType.BALANCE: BalanceDescriptor,
}


class DescriptorManager:
    """
    State machine over DescriptorType. Initial state: NONE.

    Args:
        config: AnalysisConfig shared by every variant
        tracker: DistanceTracker owned by the viewer (used by DISTANCE)
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, tracker: Optional[DistanceTracker] = None):
        self.config = config or AnalysisConfig()
        self.tracker = tracker or DistanceTracker(
            min_movement=self.config.min_movement,
            marker_interval=self.config.marker_interval,
            loop_threshold=self.config.loop_threshold,
            speed_range=self.config.speed_range,
        )
        self.active_type = DescriptorType.NONE
        self._variants: Dict[DescriptorType, DescriptorVariant] = {}

    def _build(self, kind):
        if kind == DescriptorType.DISTANCE:
            return DistanceDescriptor(self.config, self.tracker)
        return VARIANT_CLASSES[kind](self.config)

    @property
    def active_variant(self) -> Optional[DescriptorVariant]:
        if self.active_type == DescriptorType.NONE:
            return None
        return self._variants.get(self.active_type)

    @property
    def active_result(self):
        variant = self.active_variant
        return variant.result if variant else None

    def get_variant(self, kind):
        """Cached variant for kind, or None if never constructed."""
        return self._variants.get(DescriptorType.parse(kind))

    def set_active_descriptor(self, kind):
        """
        Switch the active descriptor.

        The previous variant is released before the next one is constructed
        (if needed) and made visible. Re-selecting the active type is a no-op.

        Returns:
            DescriptorVariant or None (for NONE)
        """
        kind = DescriptorType.parse(kind)
        if kind == self.active_type:
            return self.active_variant

        previous = self.active_variant
        if previous is not None:
            previous.release()

        self.active_type = kind
        if kind == DescriptorType.NONE:
            return None

        variant = self._variants.get(kind)
        if variant is None:
            variant = self._build(kind)
            self._variants[kind] = variant
        variant.activate()
        return variant

    def update(self, context: FrameContext):
        """
        Recompute the active descriptor for this frame.

        Returns:
            bool: True if the active result changed
        """
        variant = self.active_variant
        if variant is None:
            return False
        return variant.update(context)

    def clear(self):
        """Release everything and return to NONE (skeleton reload/teardown)."""
        for variant in self._variants.values():
            variant.release()
        self._variants.clear()
        self.active_type = DescriptorType.NONE
