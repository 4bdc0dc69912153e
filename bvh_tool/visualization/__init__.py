"""
Visualization module for BVH Tool.
"""

from bvh_tool.visualization.matplotlib_viewer import MatplotlibRenderer, plot_kinematic_series, visualize_pose

__all__ = [
    'MatplotlibRenderer',
    'plot_kinematic_series',
    'visualize_pose'
]
