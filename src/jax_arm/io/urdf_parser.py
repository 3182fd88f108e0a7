"""URDF parser for loading arm descriptions into an ArmConfig.

Only serial arms that match the engine's chain layout are accepted: seven
revolute (or continuous) joints rotating about a coordinate axis, each joint
origin being a pure translation along one coordinate axis, and a trailing
fixed joint that places the tip.
"""

import logging
import math
from typing import Dict, List, Tuple

import numpy as np
from lxml import etree

from jax_arm.core.constants import NUM_JOINTS
from jax_arm.core.robot_model import ArmConfig, JointAxis, JointConfig, RobotDimensions

logger = logging.getLogger(__name__)

_ACTUATED_TYPES = ('revolute', 'continuous')


def load_urdf(urdf_path: str) -> ArmConfig:
    """Load a URDF file and convert it to an ArmConfig.

    Args:
        urdf_path: Path to the URDF file to load.

    Returns:
        ArmConfig: Joint configs, link lengths and segment directions.

    Raises:
        ValueError: If the file does not describe a supported 7-joint arm.
    """
    # Parse the URDF XML file
    tree = etree.parse(urdf_path)
    root = tree.getroot()

    # Collect all links
    all_links = {link.get('name') for link in root.findall('.//link')}

    # Collect joints keyed by their parent link
    joints_by_parent: Dict[str, etree._Element] = {}
    child_links = set()
    for joint in root.findall('.//joint'):
        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            raise ValueError(f"Joint '{joint.get('name')}' is missing a parent or child")

        parent_name = parent_elem.get('link')
        if parent_name in joints_by_parent:
            raise ValueError(f"Link '{parent_name}' branches; only serial chains are supported")
        joints_by_parent[parent_name] = joint
        child_links.add(child_elem.get('link'))

    # Find root link (not a child of any joint)
    root_links = all_links - child_links
    if len(root_links) != 1:
        raise ValueError(f"Expected exactly one root link, found: {root_links}")
    root_link = root_links.pop()

    # Walk the chain from the root
    chain: List[etree._Element] = []
    current_link = root_link
    while current_link in joints_by_parent:
        joint = joints_by_parent[current_link]
        chain.append(joint)
        current_link = joint.find('child').get('link')

    actuated = [j for j in chain if j.get('type') in _ACTUATED_TYPES]
    if len(actuated) != NUM_JOINTS:
        raise ValueError(f"Expected {NUM_JOINTS} revolute joints, found {len(actuated)}")
    if chain[-1].get('type') != 'fixed':
        raise ValueError("Expected the chain to end with a fixed tip joint")
    for joint in chain[:-1]:
        if joint.get('type') not in _ACTUATED_TYPES:
            raise ValueError(
                f"Joint '{joint.get('name')}' of type '{joint.get('type')}' is not supported mid-chain"
            )

    # Segment i is the origin offset of chain joint i: base, J1->J2, ..., J7->tip
    lengths = []
    directions = []
    for joint in chain:
        length, direction = _parse_origin(joint)
        lengths.append(length)
        directions.append(direction)

    joint_configs = tuple(_parse_joint(i, joint) for i, joint in enumerate(actuated))
    dimensions = RobotDimensions.from_sequence(lengths).validate()

    config = ArmConfig(
        joints=joint_configs,
        dimensions=dimensions,
        offset_directions=tuple(directions),
    )
    logger.info(
        "Loaded arm '%s' from %s: total length %.3f m",
        root.get('name'), urdf_path, dimensions.total_length,
    )
    return config


def _parse_origin(joint) -> Tuple[float, Tuple[float, float, float]]:
    """Split a joint origin into a segment length and a unit axis direction."""
    name = joint.get('name')
    origin_elem = joint.find('origin')
    if origin_elem is None:
        raise ValueError(f"Joint '{name}' has no origin")

    xyz = np.array([float(x) for x in origin_elem.get('xyz', '0 0 0').split()])
    rpy = np.array([float(x) for x in origin_elem.get('rpy', '0 0 0').split()])

    if not np.allclose(rpy, 0.0):
        raise ValueError(f"Joint '{name}' has a rotated origin; only translations are supported")
    if np.count_nonzero(xyz) != 1:
        raise ValueError(f"Joint '{name}' origin {xyz.tolist()} is not along a single axis")

    length = float(np.linalg.norm(xyz))
    direction = tuple(float(x) for x in xyz / length)
    return length, direction


def _parse_joint(index: int, joint) -> JointConfig:
    """Build a JointConfig from a revolute joint element."""
    name = joint.get('name')

    axis_elem = joint.find('axis')
    axis_xyz = np.array([float(x) for x in axis_elem.get('xyz', '1 0 0').split()]) \
        if axis_elem is not None else np.array([1.0, 0.0, 0.0])  # URDF default
    if np.count_nonzero(axis_xyz) != 1 or not np.isclose(axis_xyz.sum(), 1.0):
        raise ValueError(f"Joint '{name}' axis {axis_xyz.tolist()} is not a positive coordinate axis")
    axis = JointAxis(int(np.argmax(axis_xyz)))

    limit_elem = joint.find('limit')
    if joint.get('type') == 'continuous' or limit_elem is None:
        lower, upper = -math.pi, math.pi
    else:
        lower = float(limit_elem.get('lower', '0'))
        upper = float(limit_elem.get('upper', '0'))
    speed = float(limit_elem.get('velocity', '0.02')) if limit_elem is not None else 0.02

    default_value = min(max(0.0, lower), upper)

    return JointConfig(
        id=index,
        name=name,
        min=lower,
        max=upper,
        axis=axis,
        default_value=default_value,
        speed=speed,
    )
