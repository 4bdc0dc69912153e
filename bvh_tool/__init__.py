"""
BVH Tool - Motion descriptor analysis for BVH skeleton animations.
"""

__version__ = "1.0.0"

# Convenience imports
from bvh_tool.analysis.orchestrator import SkeletonAnalysisViewer

__all__ = ['SkeletonAnalysisViewer']
