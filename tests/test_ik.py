"""Tests for the damped CCD inverse kinematics solver."""

import jax
import jax.numpy as jnp
import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_arm.chain import tip_position
from jax_arm.core import JointLimits, default_config
from jax_arm.core.constants import IK_MAX_ITERATIONS, IK_POSITIONAL_JOINTS, IK_THRESHOLD
from jax_arm.ik import ccd_joint_step, ccd_sweep, solve_ik, solve_ik_detailed

CONFIG = default_config()
LENGTHS = CONFIG.lengths
LIMITS = CONFIG.limits
REST = CONFIG.default_angles

jit_joint_step = jax.jit(ccd_joint_step)


def _distance(q, target):
    return float(jnp.linalg.norm(tip_position(q, LENGTHS) - target))


def test_target_at_tip_makes_no_moves():
    """Test a target already at the tip exits before the first sweep."""
    target = tip_position(REST, LENGTHS)

    solution = solve_ik_detailed(target, REST, LENGTHS, LIMITS)

    assert int(solution.iterations) == 0
    assert bool(solution.converged)
    np.testing.assert_array_equal(solution.angles, REST)
    np.testing.assert_array_equal(solve_ik(target, REST, LENGTHS, LIMITS), REST)


def test_converges_for_nearby_target():
    """Test a target well inside the envelope is reached within the iteration cap."""
    target = tip_position(REST.at[0].set(0.02), LENGTHS)

    solution = solve_ik_detailed(target, REST, LENGTHS, LIMITS)

    assert bool(solution.converged)
    assert 1 <= int(solution.iterations) <= IK_MAX_ITERATIONS
    assert _distance(solution.angles, target) < IK_THRESHOLD
    np.testing.assert_allclose(solution.error, _distance(solution.angles, target), atol=1e-12)


def test_distance_never_increases_per_joint_step():
    """Test every damped joint update moves the tip no further from the target."""
    target = tip_position(jnp.array([0.4, -0.2, 0.3, -0.3, 0.2, 0.6, 0.0]), LENGTHS)
    q = REST
    distances = [_distance(q, target)]

    for _ in range(IK_MAX_ITERATIONS):
        for index in reversed(range(IK_POSITIONAL_JOINTS)):
            q = jit_joint_step(index, q, target, LENGTHS, LIMITS)
            distances.append(_distance(q, target))

    assert all(b <= a + 1e-9 for a, b in zip(distances, distances[1:]))
    assert distances[-1] < distances[0]


def test_solve_matches_manual_sweeps():
    """Test the solver is the early-exit loop around ccd_sweep."""
    target = jnp.array([0.8, 1.2, 1.5])
    q = REST
    for _ in range(IK_MAX_ITERATIONS):
        if _distance(q, target) < IK_THRESHOLD:
            break
        q = ccd_sweep(q, target, LENGTHS, LIMITS)

    np.testing.assert_allclose(solve_ik(target, REST, LENGTHS, LIMITS), q, atol=1e-9)


def test_sweep_updates_tip_between_joints():
    """Test each joint in a sweep sees the tip moved by the previous one."""
    target = tip_position(jnp.array([0.3, 0.1, 0.2, -0.2, 0.3, 0.5, 0.0]), LENGTHS)

    stepped = REST
    for index in reversed(range(IK_POSITIONAL_JOINTS)):
        stepped = ccd_joint_step(index, stepped, target, LENGTHS, LIMITS)

    np.testing.assert_allclose(ccd_sweep(REST, target, LENGTHS, LIMITS), stepped, atol=1e-12)


def test_wrist_roll_is_not_solved():
    """Test the seventh joint keeps its input value."""
    q = REST.at[6].set(1.3)
    target = jnp.array([1.0, 1.0, 1.0])

    result = solve_ik(target, q, LENGTHS, LIMITS)

    assert float(result[6]) == 1.3


def test_unreachable_target_is_best_effort():
    """Test a target far outside the envelope returns finite, in-range angles."""
    target = jnp.array([10.0, 10.0, 10.0])

    solution = solve_ik_detailed(target, REST, LENGTHS, LIMITS)

    assert int(solution.iterations) == IK_MAX_ITERATIONS
    assert not bool(solution.converged)
    assert bool(jnp.all(jnp.isfinite(solution.angles)))
    assert bool(LIMITS.contains(solution.angles))
    assert float(solution.error) < _distance(REST, target)


def test_frozen_joints_stay_put():
    """Test limits with min == max keep every joint at its value."""
    frozen = JointLimits(lower=REST, upper=REST, speed=LIMITS.speed)
    target = jnp.array([0.5, 1.0, 2.0])

    np.testing.assert_array_equal(solve_ik(target, REST, LENGTHS, frozen), REST)


def test_initial_angles_are_clamped():
    """Test out-of-range input angles come back inside the limits."""
    q = REST.at[1].set(3.0)
    target = tip_position(REST, LENGTHS)

    result = solve_ik(target, q, LENGTHS, LIMITS)

    assert bool(LIMITS.contains(result))
    assert float(result[1]) <= float(LIMITS.upper[1])


def test_solve_ik_jit():
    """Test the solver can be wrapped in jax.jit."""
    target = jnp.array([0.8, 1.2, 1.5])
    jitted = jax.jit(solve_ik)
    np.testing.assert_allclose(
        jitted(target, REST, LENGTHS, LIMITS), solve_ik(target, REST, LENGTHS, LIMITS), atol=1e-12
    )


@given(st.integers(min_value=0, max_value=1000))
@settings(deadline=None, max_examples=10)
def test_limits_hold_at_every_step(seed):
    """Property test: no intermediate or final state leaves the limits."""
    key_low, key_high, key_frozen, key_target = jax.random.split(jax.random.PRNGKey(seed), 4)

    low_span = jax.random.uniform(key_low, (7,), minval=0.0, maxval=0.5)
    high_span = jax.random.uniform(key_high, (7,), minval=0.0, maxval=0.5)
    frozen = jax.random.bernoulli(key_frozen, 0.3, (7,))
    limits = JointLimits(
        lower=jnp.where(frozen, REST, REST - low_span),
        upper=jnp.where(frozen, REST, REST + high_span),
        speed=LIMITS.speed,
    )
    target = jax.random.uniform(key_target, (3,), minval=-2.0, maxval=2.0) + jnp.array([0.0, 1.5, 1.0])

    q = REST
    for _ in range(IK_MAX_ITERATIONS):
        for index in reversed(range(IK_POSITIONAL_JOINTS)):
            q = jit_joint_step(index, q, target, LENGTHS, limits)
            assert bool(limits.contains(q))

    result = solve_ik(target, REST, LENGTHS, limits)
    assert bool(limits.contains(result))
    np.testing.assert_array_equal(jnp.where(frozen, result, REST), REST)
