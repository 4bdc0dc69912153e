"""
Skeleton Visualization Module

matplotlib rendering of skeleton poses, geometric descriptors, distance
paths, and kinematic charts. Acts as the renderer collaborator for
SkeletonAnalysisViewer via MatplotlibRenderer.
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401

from bvh_tool.analysis.descriptor_manager import DescriptorType
from bvh_tool.analysis.distance_tracker import DistanceTracker
from bvh_tool.analysis.geometric_descriptors import (
    BalanceResult,
    BoundingBox,
    BoundingEllipsoid,
    BoundingSphere,
    CenterOfMass,
)
from bvh_tool.analysis.orchestrator import AnalysisRenderer

# Chart styling per temporal metric: (title, y-label, {series_key: label})
CHART_LAYOUT = {
    'speed': (
        'Movement Speed Analysis',
        'Speed (units/s)',
        {'speed_2d': 'Speed 2D (X/Z)', 'speed_3d': 'Speed 3D'},
    ),
    'acceleration': (
        'Movement Acceleration Analysis',
        'Acceleration (units/s²)',
        {
            'acceleration_x': 'X',
            'acceleration_y': 'Y',
            'acceleration_z': 'Z',
            'acceleration_norm': 'Magnitude',
        },
    ),
    'jerk': (
        'Movement Jerk Analysis',
        'Jerk (units/s³)',
        {'jerk_magnitude': 'Magnitude'},
    ),
}

DESCRIPTOR_COLOR = '#145e9f'
COM_COLOR = '#ff8800'
WIREFRAME_RESOLUTION = 16


def plot_kinematic_series(series, metric, joint_name=None, ax=None):
    """
    Line chart of one temporal metric.

    Args:
        series: KinematicSeries
        metric: 'speed', 'acceleration', or 'jerk'
        joint_name: Title suffix (default: series.joint_name)
        ax: Existing axes to draw into (default: new figure)

    Returns:
        matplotlib Axes
    """
    if metric not in CHART_LAYOUT:
        raise ValueError(f'Unknown temporal metric: {metric!r}')

    if ax is None:
        fig = Figure(figsize=(10, 4))
        ax = fig.add_subplot(111)

    title, ylabel, labels = CHART_LAYOUT[metric]
    data = series.as_chart_data(metric)
    times = series.times

    for key, label in labels.items():
        ax.plot(times, data[key], label=label, linewidth=1.2)

    ax.set_title(f'{title} - {joint_name or series.joint_name}')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel(ylabel)
    if len(series):
        ax.legend(loc='upper right')
    ax.grid(True, alpha=0.3)
    return ax


def _frame_points(points, frame):
    return points if frame is None else frame.to_world(points)


def _wireframe_box(ax, box, frame=None, color=DESCRIPTOR_COLOR):
    corners = np.array([
        [box.min[0] if i & 1 == 0 else box.max[0],
         box.min[1] if i & 2 == 0 else box.max[1],
         box.min[2] if i & 4 == 0 else box.max[2]]
        for i in range(8)
    ])
    corners = _frame_points(corners, frame)
    edges = [(0, 1), (2, 3), (4, 5), (6, 7),
             (0, 2), (1, 3), (4, 6), (5, 7),
             (0, 4), (1, 5), (2, 6), (3, 7)]
    lines = []
    for a, b in edges:
        lines.append(ax.plot3D(*zip(corners[a], corners[b]), color=color, linewidth=1)[0])
    return lines


def _wireframe_ellipsoid(ax, center, radii, frame=None, color=DESCRIPTOR_COLOR):
    u = np.linspace(0, 2 * np.pi, WIREFRAME_RESOLUTION)
    v = np.linspace(0, np.pi, WIREFRAME_RESOLUTION // 2)
    x = center[0] + radii[0] * np.outer(np.cos(u), np.sin(v))
    y = center[1] + radii[1] * np.outer(np.sin(u), np.sin(v))
    z = center[2] + radii[2] * np.outer(np.ones_like(u), np.cos(v))
    if frame is not None:
        flat = frame.to_world(np.column_stack([x.ravel(), y.ravel(), z.ravel()]))
        x, y, z = (flat[:, i].reshape(x.shape) for i in range(3))
    return [ax.plot_wireframe(x, y, z, color=color, linewidth=0.5, alpha=0.6)]


def draw_descriptor(ax, result, frame=None):
    """
    Draw a descriptor result onto a 3D axes.

    Args:
        ax: 3D axes
        result: BoundingBox / BoundingSphere / BoundingEllipsoid /
            CenterOfMass / BalanceResult
        frame: CoordinateFrame the result is expressed in (None = world)

    Returns:
        list: Artists added (remove them to clear the overlay)
    """
    if isinstance(result, BoundingBox):
        return _wireframe_box(ax, result, frame)
    if isinstance(result, BoundingSphere):
        return _wireframe_ellipsoid(ax, result.center, np.full(3, result.radius), frame)
    if isinstance(result, BoundingEllipsoid):
        return _wireframe_ellipsoid(ax, result.center, result.radii, frame)
    if isinstance(result, CenterOfMass):
        p = result.position
        return [ax.scatter([p[0]], [p[1]], [p[2]], color=COM_COLOR, s=80, marker='o')]
    if isinstance(result, BalanceResult):
        polygon = np.vstack([result.support_polygon, result.support_polygon[:1]])
        com, ground = result.center_of_mass, result.projected_com
        return [
            ax.plot3D(polygon[:, 0], polygon[:, 1], polygon[:, 2], color=result.color, linewidth=1.5)[0],
            ax.scatter([com[0]], [com[1]], [com[2]], color=COM_COLOR, s=80),
            ax.scatter([ground[0]], [ground[1]], [ground[2]], color=result.color, s=40, marker='x'),
            ax.plot3D([com[0], ground[0]], [com[1], ground[1]], [com[2], ground[2]],
                      color=result.color, linestyle='--', linewidth=1)[0],
        ]
    return []


def draw_distance_path(ax, tracker: DistanceTracker):
    """
    Speed-colored path segments and distance markers of a tracker.

    Returns:
        list: Artists added
    """
    artists = []
    for start, end, color in tracker.path_segments():
        artists.append(ax.plot3D([start[0], end[0]], [start[1], end[1]], [start[2], end[2]],
                                 color=color, linewidth=2)[0])
    for marker in tracker.markers:
        p = marker.position
        artists.append(ax.scatter([p[0]], [p[1]], [p[2]], color='black', s=20))
        artists.append(ax.text(p[0], p[1], p[2], marker.label, fontsize=8))
    return artists


def set_axes_equal(ax, positions):
    """
    Set equal aspect ratio for 3D plot.

    Args:
        ax: Matplotlib 3D axis
        positions: (N, 3) array of points to frame
    """
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)
    if len(positions) == 0:
        return

    max_range = max((positions.max(axis=0) - positions.min(axis=0)).max() / 2.0, 1e-6)
    mid = (positions.max(axis=0) + positions.min(axis=0)) * 0.5

    ax.set_xlim(mid[0] - max_range, mid[0] + max_range)
    ax.set_ylim(mid[1] - max_range, mid[1] + max_range)
    ax.set_zlim(mid[2] - max_range, mid[2] + max_range)


def draw_skeleton(ax, skeleton, joint_positions, bone_color='cyan', joint_color='red'):
    """
    Bones as lines between each joint and its parent, joints as points.

    Args:
        skeleton: Skeleton (for parent links)
        joint_positions: {bone_name: (3,) position}
    """
    artists = []
    for name, position in joint_positions.items():
        parent = skeleton.parent_of(name)
        if parent and parent in joint_positions:
            parent_pos = joint_positions[parent]
            artists.append(ax.plot3D(
                [parent_pos[0], position[0]],
                [parent_pos[1], position[1]],
                [parent_pos[2], position[2]],
                color=bone_color,
                linewidth=2
            )[0])

    if joint_positions:
        positions = np.array(list(joint_positions.values()))
        artists.append(ax.scatter(positions[:, 0], positions[:, 1], positions[:, 2],
                                  color=joint_color, s=20, alpha=0.8))
    return artists


class MatplotlibRenderer(AnalysisRenderer):
    """
    Renderer collaborator backed by one matplotlib figure:
    a 3D scene axes on the left, the temporal chart on the right.

    Overlays are text artists keyed by id; mounting an id replaces any
    existing overlay with that id.
    """

    def __init__(self, figure=None):
        self.figure = figure or Figure(figsize=(14, 6))
        self.scene_ax = self.figure.add_subplot(1, 2, 1, projection='3d')
        self.chart_ax = self.figure.add_subplot(1, 2, 2)
        self.descriptor_artists = {}
        self.distance_artists = []
        self.overlays = {}
        self.metric_info = None

    def _clear_artists(self, artists):
        for artist in artists:
            artist.remove()

    def show_series(self, joint_name, metric, chart_data):
        self.chart_ax.clear()
        if metric in CHART_LAYOUT and chart_data:
            title, ylabel, labels = CHART_LAYOUT[metric]
            for key, label in labels.items():
                values = chart_data.get(key)
                if values is not None:
                    self.chart_ax.plot(np.arange(len(values)), values, label=label, linewidth=1.2)
            self.chart_ax.set_title(f'{title} - {joint_name}')
            self.chart_ax.set_xlabel('Frame')
            self.chart_ax.set_ylabel(ylabel)

    def show_descriptor(self, kind, result, frame=None):
        self.hide_descriptor(kind)
        self.descriptor_artists[kind] = draw_descriptor(self.scene_ax, result, frame)

    def hide_descriptor(self, kind):
        self._clear_artists(self.descriptor_artists.pop(kind, []))
        if kind == DescriptorType.DISTANCE:
            self._clear_artists(self.distance_artists)
            self.distance_artists = []

    def show_distance(self, tracker):
        self._clear_artists(self.distance_artists)
        self.distance_artists = draw_distance_path(self.scene_ax, tracker)

    def mount_overlay(self, overlay_id, text):
        self.remove_overlay(overlay_id)
        self.overlays[overlay_id] = self.figure.text(
            0.01, 0.98, text, va='top', ha='left', fontsize=9,
            bbox=dict(boxstyle='round', facecolor='white', alpha=0.8)
        )

    def update_overlay(self, overlay_id, text):
        overlay = self.overlays.get(overlay_id)
        if overlay is None:
            self.mount_overlay(overlay_id, text)
        else:
            overlay.set_text(text)

    def remove_overlay(self, overlay_id):
        overlay = self.overlays.pop(overlay_id, None)
        if overlay is not None:
            overlay.remove()

    def show_metric_info(self, info):
        self.metric_info = info

    def save(self, path, dpi=150):
        self.figure.savefig(path, dpi=dpi, bbox_inches='tight')
        print(f'✓ Saved visualization: {path}')


def visualize_pose(viewer, save_path=None):
    """
    Draw the viewer's current pose plus its active descriptor.

    Args:
        viewer: SkeletonAnalysisViewer
        save_path: Optional image path; otherwise the figure is shown

    Returns:
        matplotlib Figure
    """
    fig = plt.figure(figsize=(12, 9))
    ax = fig.add_subplot(111, projection='3d')

    joint_positions = viewer.read_joint_positions()
    draw_skeleton(ax, viewer.skeleton, joint_positions)

    result = viewer.descriptors.active_result
    if isinstance(result, DistanceTracker):
        draw_distance_path(ax, result)
    elif result is not None:
        draw_descriptor(ax, result, viewer.coordinate_frame())

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_zlabel('Z')
    ax.set_title(f'Skeleton - {viewer.active_descriptor.value}')
    set_axes_equal(ax, list(joint_positions.values()))

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f'✓ Saved visualization: {save_path}')
        plt.close(fig)
    else:
        plt.show()

    return fig
