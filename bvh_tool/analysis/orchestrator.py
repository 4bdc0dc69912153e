"""
Analysis Orchestrator

One SkeletonAnalysisViewer per skeleton on screen. The viewer owns its
descriptor manager, distance tracker, and kinematic cache; nothing is shared
between viewers except the renderer they are handed.

Responsibilities:
- Hold the active geometric descriptor and the active temporal metric
- Recompute kinematics when the tracked joint or metric changes
- Per-frame tick: read joint world positions, update the active descriptor,
  push results to the renderer
- Guard every entry point while a skeleton reload is pending

Usage:
    viewer = SkeletonAnalysisViewer(rig, skeleton, clip, renderer=renderer)
    viewer.select_joint("RightHand")
    viewer.set_temporal_metric("speed")
    viewer.set_active_descriptor("balance")

    # In the render loop, after the rig has evaluated the frame:
    viewer.tick(animation_time, playing=True)
"""

import os

from bvh_tool.analysis.config import AnalysisConfig
from bvh_tool.analysis.coordinate_frame import CoordinateFrame, heading_from_rotation
from bvh_tool.analysis.descriptor_manager import DescriptorManager, DescriptorType, FrameContext
from bvh_tool.analysis.distance_tracker import OVERLAY_ID, DistanceTracker
from bvh_tool.analysis.kinematics_sampler import export_joint_table_csv, sample_joint_positions, sample_joint_table
from bvh_tool.analysis.metric_info import get_metric_info
from bvh_tool.analysis.utils import ensure_output_dir, write_json
from bvh_tool.analysis.velocity_analysis import (
    TEMPORAL_METRICS,
    compute_kinematic_series,
    export_kinematic_series_csv,
    summarize_series,
)

NO_METRIC = "none"


class AnalysisRenderer:
    """
    Rendering/plotting collaborator. Every hook is a no-op by default;
    subclasses override what they draw.

    show_descriptor() receives the CoordinateFrame the result was computed
    in (None for world space); renderers map the geometry back to world.
    """

    def show_series(self, joint_name, metric, chart_data):
        pass

    def show_descriptor(self, kind, result, frame=None):
        pass

    def hide_descriptor(self, kind):
        pass

    def show_distance(self, tracker):
        pass

    def mount_overlay(self, overlay_id, text):
        pass

    def update_overlay(self, overlay_id, text):
        pass

    def remove_overlay(self, overlay_id):
        pass

    def show_metric_info(self, info):
        pass


class SkeletonAnalysisViewer:
    """
    Per-skeleton analysis state and routing.

    Args:
        rig: RigEvaluator for the loaded skeleton (may be None until loaded)
        skeleton: Skeleton
        clip: AnimationClip
        renderer: AnalysisRenderer receiving results
        config: AnalysisConfig
    """

    def __init__(self, rig=None, skeleton=None, clip=None, renderer=None, config=None):
        self.config = config or AnalysisConfig()
        self.renderer = renderer or AnalysisRenderer()
        self.tracker = DistanceTracker(
            min_movement=self.config.min_movement,
            marker_interval=self.config.marker_interval,
            loop_threshold=self.config.loop_threshold,
            speed_range=self.config.speed_range,
        )
        self.descriptors = DescriptorManager(self.config, self.tracker)

        self.rig = None
        self.skeleton = None
        self.clip = None
        self.selected_joint = None
        self.temporal_metric = NO_METRIC
        self.series = None
        self.frame_count = 0

        self._requested_descriptor = DescriptorType.NONE
        self._loading = False
        self._stale_warned = False

        if rig is not None and skeleton is not None:
            self.load_skeleton(rig, skeleton, clip)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def is_ready(self):
        """True when a skeleton is fully loaded and not mid-reload."""
        return (
            not self._loading
            and self.rig is not None
            and self.skeleton is not None
            and bool(self.skeleton.joint_index)
        )

    def _warn_stale(self, action):
        if not self._stale_warned:
            print(f"⚠️  Warning: Skeleton not ready, skipping {action}")
            self._stale_warned = True

    def begin_reload(self):
        """
        Mark the skeleton as being replaced.

        Releases descriptor state and distance history immediately; per-frame
        updates become no-ops until load_skeleton() completes.
        """
        self._loading = True
        self._stale_warned = False
        self.descriptors.clear()
        self.tracker.start(None)
        self.renderer.remove_overlay(OVERLAY_ID)
        self.series = None

    def load_skeleton(self, rig, skeleton, clip):
        """
        Install a freshly loaded skeleton.

        The previous descriptor selection and temporal metric are re-applied
        to the new skeleton; the tracked joint is kept if the new skeleton has
        it, otherwise the root is tracked.
        """
        if not self._loading:
            self.begin_reload()

        self.rig = rig
        self.skeleton = skeleton
        self.clip = clip
        self.frame_count = 0
        self._loading = False
        self._stale_warned = False

        if self.selected_joint not in skeleton.joint_index:
            self.selected_joint = skeleton.root_name
        self.tracker.start(self.selected_joint)

        print(f"✓ Skeleton loaded: {len(skeleton)} bones, tracking {self.selected_joint}")

        requested = self._requested_descriptor
        self._requested_descriptor = DescriptorType.NONE
        self.set_active_descriptor(requested)

        if self.temporal_metric != NO_METRIC:
            self.compute_temporal_series()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_joint(self, joint_name):
        """
        Track a different joint.

        Distance history is discarded; the temporal series is recomputed if
        a temporal metric is active.

        Returns:
            bool: False if the joint is unknown or the skeleton is not ready
        """
        if not self.is_ready:
            self._warn_stale(f"joint selection '{joint_name}'")
            return False

        if joint_name not in self.skeleton.joint_index:
            print(f"⚠️  Warning: Bone not found: {joint_name}")
            return False

        self.selected_joint = joint_name
        self.tracker.start(joint_name)

        if self.temporal_metric != NO_METRIC:
            self.compute_temporal_series()
        return True

    @property
    def active_descriptor(self):
        return self.descriptors.active_type

    def set_active_descriptor(self, kind):
        """
        Switch the active geometric/spatial descriptor.

        The previous descriptor is hidden and released before the new one is
        activated. Leaving DISTANCE removes the distance overlay.
        """
        kind = DescriptorType.parse(kind)
        self._requested_descriptor = kind

        if not self.is_ready:
            return None

        previous = self.descriptors.active_type
        if previous == kind:
            return self.descriptors.active_variant

        if previous != DescriptorType.NONE:
            self.renderer.hide_descriptor(previous)
        if previous == DescriptorType.DISTANCE:
            self.renderer.remove_overlay(OVERLAY_ID)

        variant = self.descriptors.set_active_descriptor(kind)

        if kind == DescriptorType.DISTANCE:
            self.tracker.start(self.selected_joint)
            self._mount_distance_overlay()

        self.renderer.show_metric_info(get_metric_info(kind.value))
        return variant

    def _mount_distance_overlay(self):
        # One overlay per id: drop any leftover before inserting
        self.renderer.remove_overlay(OVERLAY_ID)
        self.renderer.mount_overlay(OVERLAY_ID, self.tracker.overlay_text())

    def set_temporal_metric(self, metric):
        """
        Select 'speed', 'acceleration', 'jerk', or 'none'.

        Raises:
            ValueError: For unknown metric names
        """
        metric = NO_METRIC if metric is None else str(metric).lower()
        if metric != NO_METRIC and metric not in TEMPORAL_METRICS:
            raise ValueError(f"Unknown temporal metric: {metric!r} (expected one of {TEMPORAL_METRICS + (NO_METRIC,)})")

        self.temporal_metric = metric
        self.renderer.show_metric_info(get_metric_info(metric))

        if metric == NO_METRIC:
            self.renderer.show_series(self.selected_joint, metric, {})
            return None
        return self.compute_temporal_series()

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def compute_temporal_series(self):
        """
        Sample the tracked joint and recompute its kinematics.

        Returns:
            KinematicSeries (empty if the joint has no data), or None when the
            skeleton is not ready
        """
        if not self.is_ready:
            self._warn_stale("kinematics")
            return None

        positions = sample_joint_positions(self.rig, self.skeleton, self.clip, self.selected_joint)
        self.series = compute_kinematic_series(positions, self.config.sample_rate, self.selected_joint)

        if self.temporal_metric != NO_METRIC:
            chart_data = self.series.as_chart_data(self.temporal_metric)
            self.renderer.show_series(self.selected_joint, self.temporal_metric, chart_data)
        return self.series

    def coordinate_frame(self):
        """Frame the bounding volumes are expressed in (world, or root-heading aligned)."""
        if not self.config.align_to_root_heading or not self.is_ready:
            return None

        root = self.skeleton.root_name
        origin = self.rig.get_world_position(root)
        rotation = self.rig.get_local_rotation(root)
        if origin is None or rotation is None:
            return None
        return CoordinateFrame.from_root_heading(origin, heading_from_rotation(rotation))

    def read_joint_positions(self):
        """World positions of every bone at the rig's current pose, root first."""
        if not self.is_ready:
            return {}
        return self.rig.get_world_positions(self.skeleton.bone_names)

    def tick(self, animation_time, playing=True, wall_time=None):
        """
        Per-frame update. Call after the rig has evaluated this frame's pose.

        Returns:
            bool: True if the active descriptor produced a new result
        """
        if not self.is_ready:
            self._warn_stale("frame update")
            return False

        self.frame_count += 1
        kind = self.descriptors.active_type
        if kind == DescriptorType.NONE:
            return False

        joint_positions = self.read_joint_positions()
        if not joint_positions:
            return False

        context = FrameContext(
            joint_positions=joint_positions,
            frame=self.coordinate_frame(),
            animation_time=animation_time,
            playing=playing,
            wall_time=wall_time,
            tracked_joint=self.selected_joint,
        )

        if not self.descriptors.update(context):
            return False

        if kind == DescriptorType.DISTANCE:
            self.renderer.show_distance(self.tracker)
            self.renderer.update_overlay(OVERLAY_ID, self.tracker.overlay_text())
        else:
            self.renderer.show_descriptor(kind, self.descriptors.active_result, context.frame)
        return True

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_analysis(self, output_dir="output/", joint_names=None):
        """
        Write the tracked joint's kinematics and a multi-joint table to disk.

        Outputs:
        - kinematics_temporal.csv: Frame-by-frame kinematics of the tracked joint
        - kinematics_summary.json: Mean/peak statistics and distance state
        - joint_table.csv: Per-frame positions/angles of several joints

        Returns:
            dict: Summary written to kinematics_summary.json (empty if not ready)
        """
        if not self.is_ready:
            self._warn_stale("export")
            return {}

        ensure_output_dir(os.path.join(output_dir, ""))

        series = self.series if self.series is not None else self.compute_temporal_series()
        export_kinematic_series_csv(series, os.path.join(output_dir, "kinematics_temporal.csv"))

        summary = summarize_series(series)
        summary["sample_rate"] = self.config.sample_rate
        summary["distance"] = self.tracker.snapshot()
        write_json(summary, os.path.join(output_dir, "kinematics_summary.json"))

        rows = sample_joint_table(self.rig, self.skeleton, self.clip, joint_names)
        export_joint_table_csv(rows, os.path.join(output_dir, "joint_table.csv"))

        print(f"✓ Analysis exported to {output_dir}")
        return summary
