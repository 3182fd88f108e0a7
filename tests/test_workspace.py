"""Tests for Monte-Carlo workspace sampling."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_arm.chain import forward_kinematics, tip_position
from jax_arm.collision import check_collision
from jax_arm.core import JointLimits, default_config
from jax_arm.workspace import CancellationToken, SamplingCancelled, WorkspaceSampler, sample_workspace

CONFIG = default_config()
LENGTHS = CONFIG.lengths
LIMITS = CONFIG.limits


def test_sample_count_bounds():
    """Test at most one point per trial is returned."""
    points = sample_workspace(LIMITS, LENGTHS, 1000, jax.random.PRNGKey(0))

    assert isinstance(points, np.ndarray)
    assert points.ndim == 2 and points.shape[1] == 3
    assert 0 <= len(points) <= 1000


def test_only_collision_free_samples_are_emitted():
    """Test every returned point comes from a valid, in-range configuration."""
    points, angles = sample_workspace(
        LIMITS, LENGTHS, 1000, jax.random.PRNGKey(1), return_angles=True
    )

    assert angles.shape == (len(points), 7)
    assert bool(jnp.all(LIMITS.contains(jnp.asarray(angles))))

    positions = jax.vmap(forward_kinematics, in_axes=(0, None))(jnp.asarray(angles), LENGTHS)
    assert not bool(jnp.any(jax.vmap(check_collision)(positions)))
    np.testing.assert_allclose(np.asarray(positions[:, -1]), points, atol=1e-9)


def test_some_samples_are_rejected():
    """Test the full joint ranges include colliding configurations."""
    points = sample_workspace(LIMITS, LENGTHS, 2000, jax.random.PRNGKey(2))
    assert 0 < len(points) < 2000


def test_same_key_same_points():
    """Test sampling is deterministic for an explicit key."""
    first = sample_workspace(LIMITS, LENGTHS, 500, jax.random.PRNGKey(3), batch_size=128)
    second = sample_workspace(LIMITS, LENGTHS, 500, jax.random.PRNGKey(3), batch_size=128)
    np.testing.assert_array_equal(first, second)


def test_partial_last_batch():
    """Test a trial count that is not a multiple of the batch size."""
    points, angles = sample_workspace(
        LIMITS, LENGTHS, 300, jax.random.PRNGKey(4), batch_size=128, return_angles=True
    )
    assert len(points) <= 300
    assert len(angles) == len(points)


def test_frozen_limits_repeat_the_rest_tip():
    """Test min == max on every joint reproduces the rest pose each trial."""
    rest = CONFIG.default_angles
    frozen = JointLimits(lower=rest, upper=rest, speed=LIMITS.speed)

    points = sample_workspace(frozen, LENGTHS, 50, jax.random.PRNGKey(5))

    assert points.shape == (50, 3)
    np.testing.assert_allclose(points, np.broadcast_to(np.asarray(tip_position(rest, LENGTHS)), (50, 3)), atol=1e-9)


def test_zero_samples():
    """Test an empty request returns an empty array."""
    points = sample_workspace(LIMITS, LENGTHS, 0, jax.random.PRNGKey(6))
    assert points.shape == (0, 3)


def test_without_key():
    """Test a fresh key is drawn when none is given."""
    points = sample_workspace(LIMITS, LENGTHS, 64)
    assert 0 <= len(points) <= 64


def test_invalid_batch_size():
    """Test a non-positive batch size is rejected."""
    with pytest.raises(ValueError, match="batch_size must be positive"):
        sample_workspace(LIMITS, LENGTHS, 10, jax.random.PRNGKey(0), batch_size=0)


def test_cancelled_token_raises():
    """Test a cancelled run raises instead of returning partial output."""
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SamplingCancelled):
        sample_workspace(LIMITS, LENGTHS, 1000, jax.random.PRNGKey(7), cancel_token=token)


def test_token_state():
    """Test the token reports cancellation."""
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()
    token.cancel()
    assert token.cancelled


def test_sampler_background_request():
    """Test a single background request delivers points."""
    with WorkspaceSampler() as sampler:
        future = sampler.submit(LIMITS, LENGTHS, 200, jax.random.PRNGKey(8), batch_size=64)
        points = future.result(timeout=120)

    assert 0 <= len(points) <= 200


def test_sampler_new_request_supersedes_stale_one():
    """Test a newer request cancels the one still in flight."""
    with WorkspaceSampler() as sampler:
        stale = sampler.submit(LIMITS, LENGTHS, 500_000, jax.random.PRNGKey(9), batch_size=256)
        fresh = sampler.submit(LIMITS, LENGTHS, 100, jax.random.PRNGKey(10), batch_size=64)

        with pytest.raises(SamplingCancelled):
            stale.result(timeout=120)
        assert 0 <= len(fresh.result(timeout=120)) <= 100


def test_sampler_cancel():
    """Test cancel stops the current request."""
    with WorkspaceSampler() as sampler:
        future = sampler.submit(LIMITS, LENGTHS, 500_000, jax.random.PRNGKey(11), batch_size=256)
        sampler.cancel()

        with pytest.raises(SamplingCancelled):
            future.result(timeout=120)


def test_sampler_rejects_caller_token():
    """Test the sampler refuses an external token at submit time."""
    with WorkspaceSampler() as sampler:
        with pytest.raises(TypeError):
            sampler.submit(LIMITS, LENGTHS, 10, jax.random.PRNGKey(12), cancel_token=CancellationToken())


def test_sampler_forwards_sampling_options():
    """Test keyword options reach the sampling run."""
    with WorkspaceSampler() as sampler:
        future = sampler.submit(
            LIMITS, LENGTHS, 100, jax.random.PRNGKey(13), batch_size=32, return_angles=True
        )
        points, angles = future.result(timeout=120)

    expected = sample_workspace(
        LIMITS, LENGTHS, 100, jax.random.PRNGKey(13), batch_size=32, return_angles=True
    )
    np.testing.assert_array_equal(points, expected[0])
    np.testing.assert_array_equal(angles, expected[1])

    with WorkspaceSampler() as sampler:
        with pytest.raises(ValueError, match="batch_size must be positive"):
            sampler.submit(LIMITS, LENGTHS, 10, jax.random.PRNGKey(14), batch_size=0)
