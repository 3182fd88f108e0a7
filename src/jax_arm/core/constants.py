"""Fixed numeric parameters of the arm engine."""

NUM_JOINTS = 7
NUM_POSITIONS = NUM_JOINTS + 1  # J1..J7 plus the tip

# World frame is Y-up; "height" always means this coordinate.
UP_AXIS = 1

# Collision settings
FLOOR_LIMIT = 0.0
FLOOR_BUFFER = 0.05
COLLISION_WARNING_THRESHOLD = 0.15  # approx. sum of two link radii (link width 0.25)
SEGMENT_EPSILON = 1e-6

# CCD solver settings, sized for one solve per rendered frame
IK_MAX_ITERATIONS = 5
IK_THRESHOLD = 0.01
IK_DAMPING = 0.5
IK_ALIGNMENT_TOLERANCE = 1e-4
IK_POSITIONAL_JOINTS = 6  # wrist roll (J7) is left to direct input

# Workspace sampling
WORKSPACE_BATCH_SIZE = 4096
