"""
Metric descriptions shown next to the active descriptor or temporal chart.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MetricInfo:
    title: str
    description: str
    calculation: str
    quality: str
    interpretation: str
    unit: str


EMPTY_METRIC_INFO = MetricInfo(title="", description="", calculation="", quality="", interpretation="", unit="")

METRIC_INFO = {
    "box": MetricInfo(
        title="Bounding Box",
        description="The smallest axis-aligned cuboid that encloses every joint of the body.",
        calculation="Minimum and maximum joint coordinates along each axis (x, y, z).",
        quality="Quantifies the spatial spread of the body, i.e. how expanded or contracted the posture is.",
        interpretation="> Big Bounding Box: open, expansive posture and dynamic, expressive movement.\n"
        "> Small Bounding Box: contracted, controlled posture and a subtler movement style.",
        unit="Cubic meter/centimeter",
    ),
    "sphere": MetricInfo(
        title="Bounding Sphere",
        description="A sphere that completely encloses all joints of the body.",
        calculation="Sphere centre at the joint centroid (or root), radius = farthest joint distance, slightly padded.",
        quality="Relates to the overall spatial occupancy of the body and the expansiveness of movement.",
        interpretation="> Large Sphere Radius: expanded, outreaching movements.\n"
        "> Small Sphere Radius: contained, centralized movements.",
        unit="Cubic meter/centimeter",
    ),
    "ellipsoid": MetricInfo(
        title="Bounding Ellipsoid",
        description="A closer-fitting enclosure than a sphere or box that approximates the body's shape.",
        calculation="Per-axis radii from the standard deviation of joint positions, "
        "inflated until every joint is inside.",
        quality="Describes the directional extension of the body in space.",
        interpretation="> Elongated Ellipsoid: stretched-out posture in specific directions.\n"
        "> Spherical Ellipsoid: even extension in all directions.",
        unit="Cubic meter/centimeter",
    ),
    "com": MetricInfo(
        title="Center of Mass (CoM)",
        description="The weighted average position of all parts of the body.",
        calculation="Weighted average of joint positions, with weights proportional to body-segment mass.",
        quality="The CoM trajectory gives insight into balance, stability, and movement efficiency.",
        interpretation="> Stable CoM: controlled, balanced movement.\n"
        "> Dynamic CoM: expressive, potentially less stable movement.",
        unit="Meters/centimeters (position coordinates)",
    ),
    "balance": MetricInfo(
        title="Balance",
        description="Postural stability based on the relation between the center of mass and the base of support.",
        calculation="Projection of the CoM onto the ground, tested against the support polygon.",
        quality="Relates to stability, control, and readiness for movement initiation.",
        interpretation="> Balanced: CoM projection inside the support polygon, stable posture.\n"
        "> Unbalanced: CoM projection outside, dynamic posture ready for movement.",
        unit="Boolean (balanced / unbalanced)",
    ),
    "distance": MetricInfo(
        title="Distance Covered",
        description="The total path length travelled by a joint during the motion sequence.",
        calculation="Sum of ground-plane distances between consecutive positions of the tracked joint.",
        quality="Relates to the overall quantity of motion and the spatial exploration of the performer.",
        interpretation="> Large Distance: extensive movement with high mobility.\n"
        "> Small Distance: contained, economical movement.",
        unit="Meters/centimeters",
    ),
    "speed": MetricInfo(
        title="Speed/Velocity",
        description="Rate of change of position over time: how fast a joint is moving.",
        calculation="First derivative of position with respect to time: v = Δposition/Δtime",
        quality="Relates to the tempo and dynamics of movement, indicating energy and urgency.",
        interpretation="> High Speed: energetic, possibly urgent or expressive movement.\n"
        "> Low Speed: controlled, deliberate, or restrained movement.",
        unit="Meters/centimeters per second",
    ),
    "acceleration": MetricInfo(
        title="Acceleration",
        description="Rate of change of velocity over time: how quickly speed changes.",
        calculation="Second derivative of position with respect to time: a = Δvelocity/Δtime",
        quality="Gives insight into movement dynamics, effort, and expressiveness.",
        interpretation="> High Acceleration: forceful, dynamic movement with rapid changes.\n"
        "> Low Acceleration: smooth, continuous movement with gradual transitions.",
        unit="Meters/centimeters per second squared",
    ),
    "jerk": MetricInfo(
        title="Jerk",
        description="Rate of change of acceleration over time: the smoothness of movement.",
        calculation="Third derivative of position with respect to time: j = Δacceleration/Δtime",
        quality="Relates to movement quality, particularly smoothness and control.",
        interpretation="> Low Jerk: smooth, well-controlled movement.\n"
        "> High Jerk: abrupt, potentially less controlled or more expressive movement.",
        unit="Meters/centimeters per second cubed",
    ),
}


def get_metric_info(key):
    """Description for a metric key; EMPTY_METRIC_INFO for 'none' or unknown keys."""
    if key is None:
        return EMPTY_METRIC_INFO
    return METRIC_INFO.get(str(key).lower(), EMPTY_METRIC_INFO)
