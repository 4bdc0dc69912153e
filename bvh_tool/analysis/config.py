"""
Configuration for the analysis layer.

Defaults come from the module-level constants of each analysis module, so a
plain AnalysisConfig() reproduces the stock behaviour. Values can be
overridden in code or loaded from a JSON file.
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Tuple

from bvh_tool.analysis import distance_tracker, geometric_descriptors, kinematics_sampler


@dataclass
class AnalysisConfig:
    """Tunables for sampling, descriptors, and distance tracking."""

    # Offline kinematics sampling rate (Hz)
    sample_rate: float = kinematics_sampler.DEFAULT_SAMPLE_RATE

    # Bounding sphere
    sphere_center_mode: str = geometric_descriptors.DEFAULT_SPHERE_CENTER_MODE
    sphere_padding: float = geometric_descriptors.SPHERE_PADDING

    # Bounding ellipsoid
    ellipsoid_center_mode: str = geometric_descriptors.DEFAULT_ELLIPSOID_CENTER_MODE
    ellipsoid_scale: float = geometric_descriptors.ELLIPSOID_SCALE

    # Balance
    balance_basis: str = geometric_descriptors.DEFAULT_BALANCE_BASIS
    ground_offset: float = geometric_descriptors.GROUND_OFFSET
    polygon_segments: int = geometric_descriptors.SUPPORT_POLYGON_SEGMENTS

    # Distance tracking
    min_movement: float = distance_tracker.MIN_MOVEMENT
    marker_interval: float = distance_tracker.MARKER_INTERVAL
    loop_threshold: float = distance_tracker.LOOP_TIME_THRESHOLD
    speed_range: Tuple[float, float] = field(
        default=(distance_tracker.SPEED_COLOR_MIN, distance_tracker.SPEED_COLOR_MAX)
    )

    # Align bounding volumes to the root heading instead of world axes
    align_to_root_heading: bool = False

    def __post_init__(self):
        self.speed_range = tuple(self.speed_range)
        self.validate()

    def validate(self):
        """
        Raises:
            ValueError: On out-of-range or unknown values.
        """
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.sphere_center_mode not in geometric_descriptors.SPHERE_CENTER_MODES:
            raise ValueError(f"Unknown sphere_center_mode: {self.sphere_center_mode!r}")
        if self.sphere_padding < 1.0:
            raise ValueError(f"sphere_padding must be >= 1.0, got {self.sphere_padding}")
        if self.ellipsoid_center_mode not in geometric_descriptors.ELLIPSOID_CENTER_MODES:
            raise ValueError(f"Unknown ellipsoid_center_mode: {self.ellipsoid_center_mode!r}")
        if self.ellipsoid_scale <= 0:
            raise ValueError(f"ellipsoid_scale must be positive, got {self.ellipsoid_scale}")
        if self.balance_basis not in geometric_descriptors.BALANCE_BASES:
            raise ValueError(f"Unknown balance_basis: {self.balance_basis!r}")
        if self.polygon_segments < geometric_descriptors.MIN_POLYGON_POINTS:
            raise ValueError(f"polygon_segments must be >= 3, got {self.polygon_segments}")
        if self.min_movement < 0:
            raise ValueError(f"min_movement must be >= 0, got {self.min_movement}")
        if self.marker_interval <= 0:
            raise ValueError(f"marker_interval must be positive, got {self.marker_interval}")
        if self.loop_threshold <= 0:
            raise ValueError(f"loop_threshold must be positive, got {self.loop_threshold}")
        if len(self.speed_range) != 2:
            raise ValueError("speed_range must be a (min, max) pair")

    @classmethod
    def from_dict(cls, data):
        """
        Build a config from a dict, ignoring unknown keys with a warning.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            print(f"⚠️  Warning: Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self):
        data = asdict(self)
        data["speed_range"] = list(self.speed_range)
        return data


def load_config(filepath=None):
    """
    Load an AnalysisConfig from a JSON file.

    Args:
        filepath: Path to JSON config; None or a missing file gives defaults

    Returns:
        AnalysisConfig
    """
    if filepath is None:
        return AnalysisConfig()

    if not os.path.exists(filepath):
        print(f"⚠️  Warning: Config file not found: {filepath} (using defaults)")
        return AnalysisConfig()

    with open(filepath, "r") as f:
        data = json.load(f)

    config = AnalysisConfig.from_dict(data)
    print(f"✓ Config loaded: {filepath}")
    return config
