"""Monte-Carlo sampling of the reachable workspace.

Random joint configurations are drawn uniformly inside the joint limits,
pushed through forward kinematics and the collision checker in vmapped
batches, and the tips of the collision-free samples are collected. Long runs
can be cancelled cooperatively between batches, and ``WorkspaceSampler``
runs requests in the background so a new request supersedes a stale one.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Optional, Tuple, Union

import jax
import numpy as np
from jax import Array

from .chain import forward_kinematics
from .collision import check_collision
from .core import DEFAULT_CHAIN, ChainModel, JointLimits
from .core.constants import NUM_JOINTS, WORKSPACE_BATCH_SIZE

logger = logging.getLogger(__name__)


class SamplingCancelled(Exception):
    """Raised when a sampling run is cancelled before it finished."""


class CancellationToken:
    """Thread-safe flag checked by a sampling run between batches."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise SamplingCancelled("Workspace sampling was cancelled")


@partial(jax.jit, static_argnames=("count",))
def _evaluate_batch(
    key: Array,
    limits: JointLimits,
    lengths: Array,
    chain: ChainModel,
    count: int,
) -> Tuple[Array, Array, Array]:
    """Draw ``count`` configurations and evaluate them.

    Returns:
        Tuple of angles (count, 7), tip positions (count, 3) and a
        collision-free mask (count,)
    """
    angles = jax.random.uniform(
        key,
        shape=(count, NUM_JOINTS),
        minval=limits.lower,
        maxval=limits.upper,
        dtype=float,
    )
    positions = jax.vmap(forward_kinematics, in_axes=(0, None, None))(angles, lengths, chain)
    valid = ~jax.vmap(check_collision)(positions)
    return angles, positions[:, -1], valid


def _fresh_key() -> Array:
    seed = int(np.random.default_rng().integers(0, 2**31 - 1))
    return jax.random.PRNGKey(seed)


def sample_workspace(
    limits: JointLimits,
    lengths: Array,
    sample_count: int,
    key: Optional[Array] = None,
    *,
    chain: ChainModel = DEFAULT_CHAIN,
    batch_size: int = WORKSPACE_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
    return_angles: bool = False,
) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """Sample tip positions of random collision-free configurations.

    Each trial draws every joint angle uniformly from its own limits, runs
    forward kinematics and the collision checker, and keeps the tip only if
    the pose is collision-free. The number of returned points is therefore
    anywhere between 0 and ``sample_count``.

    Args:
        limits: Joint limits to sample within
        lengths: Link lengths of shape (8,)
        sample_count: Number of trials
        key: PRNG key. A fresh random key is drawn when omitted.
        chain: ChainModel
        batch_size: Trials evaluated per vmapped batch
        cancel_token: Checked between batches; cancellation raises
                      ``SamplingCancelled`` and discards partial output
        return_angles: Also return the angle vector behind every point

    Returns:
        (n, 3) array of tip positions, or ``(points, angles)`` with angles of
        shape (n, 7) when ``return_angles`` is set
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    sample_count = max(0, int(sample_count))
    if key is None:
        key = _fresh_key()
    lengths = np.asarray(lengths, dtype=float)

    point_batches = []
    angle_batches = []
    count = min(batch_size, sample_count)
    remaining = sample_count

    while remaining > 0:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        key, subkey = jax.random.split(key)
        angles, tips, valid = _evaluate_batch(subkey, limits, lengths, chain, count)

        take = min(count, remaining)
        mask = np.asarray(valid)[:take]
        point_batches.append(np.asarray(tips)[:take][mask])
        angle_batches.append(np.asarray(angles)[:take][mask])
        remaining -= take

        logger.debug(
            "Workspace batch: %d/%d valid, %d trials left", int(mask.sum()), take, remaining
        )

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    points = np.concatenate(point_batches) if point_batches else np.zeros((0, 3))
    sampled_angles = np.concatenate(angle_batches) if angle_batches else np.zeros((0, NUM_JOINTS))

    logger.info("Workspace sampled: %d of %d trials collision-free", len(points), sample_count)

    if return_angles:
        return points, sampled_angles
    return points


class WorkspaceSampler:
    """Runs workspace sampling on a background thread.

    Only the most recent request is kept alive: submitting a new one cancels
    the previous request's token, so its future raises ``SamplingCancelled``
    instead of delivering stale points.
    """

    def __init__(self, max_workers: int = 1):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="workspace")
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None

    def submit(
        self,
        limits: JointLimits,
        lengths: Array,
        sample_count: int,
        key: Optional[Array] = None,
        *,
        chain: ChainModel = DEFAULT_CHAIN,
        batch_size: int = WORKSPACE_BATCH_SIZE,
        return_angles: bool = False,
    ) -> Future:
        """Start a sampling run, superseding the one in flight (if any).

        The sampler owns the cancellation token of every run it starts, so
        ``cancel_token`` is not accepted here.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        token = CancellationToken()
        with self._lock:
            if self._token is not None and not self._token.cancelled:
                logger.debug("Superseding in-flight workspace request")
                self._token.cancel()
            self._token = token

        return self._executor.submit(
            sample_workspace,
            limits,
            lengths,
            sample_count,
            key,
            chain=chain,
            batch_size=batch_size,
            cancel_token=token,
            return_angles=return_angles,
        )

    def cancel(self):
        """Cancel the current request without starting a new one."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def shutdown(self, wait: bool = True):
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
