r"""
Batched path generation and broadcasting.

Functions
    :func:`simulate_paths` — Advance paths in vectorized batches and publish each row

Classes
    :class:`PathBroadcast` — Ordered fan-out of paths to a list of pricers

Every path starts at the process initial value and follows

.. math::

   X_{n} = \Phi(X_{n-1}, t_{n-1}, \Delta t, Z_{n-1}), \qquad n = 1, \dots, N_T,

with one fresh normal draw per path and step.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional

import numpy as np

from .random_sources import RandomSource
from .schemes import DiscretizationScheme

__all__ = ["simulate_paths", "PathBroadcast"]


def simulate_paths(
    scheme: DiscretizationScheme,
    source: RandomSource,
    n_paths: int,
    publish: Callable[[np.ndarray], None],
    *,
    batch_size: int = 1024,
    buffer: Optional[np.ndarray] = None,
    on_batch: Optional[Callable[[int], None]] = None,
) -> None:
    r"""
    Simulate ``n_paths`` paths and hand each one to ``publish``.

    Parameters
    ----------
    scheme : DiscretizationScheme
        Integrator; its mesh fixes the path length :math:`N_T + 1`.
    source : RandomSource
        Normal variates, drawn ``batch`` at a time for every step.
    n_paths : int
        Number of paths.
    publish : callable
        Called once per path with a read-only row of length :math:`N_T + 1`.
    batch_size : int, default 1024
        Paths advanced together. Ignored when ``buffer`` is given.
    buffer : ndarray, optional
        Reusable ``(batch, N_T + 1)`` work array.
    on_batch : callable, optional
        Called with the number of paths published after each batch.

    Notes
    -----
    Rows are views into ``buffer`` and are overwritten by the next batch.
    """
    mesh = scheme.mesh
    n_steps = scheme.n_steps
    dt = mesh.step
    x0 = scheme.process.initial_value
    if buffer is None:
        buffer = np.empty((max(1, min(batch_size, n_paths)), n_steps + 1), dtype=float)

    done = 0
    while done < n_paths:
        m = min(buffer.shape[0], n_paths - done)
        block = buffer[:m]
        block[:, 0] = x0
        for n in range(1, n_steps + 1):
            z = source.normals(m)
            block[:, n] = scheme.advance(block[:, n - 1], mesh[n - 1], dt, z)

        rows = block.view()
        rows.flags.writeable = False
        for row in rows:
            publish(row)
        done += m
        if on_batch is not None:
            on_batch(m)


class PathBroadcast:
    r"""
    Publish paths to pricers in list order.

    Parameters
    ----------
    pricers : iterable of PathPricer
        Subscribers, kept in the given order.

    Attributes
    ----------
    publishing : bool
        True while a path is being handed to the pricers.
    """

    def __init__(self, pricers: Iterable = ()):
        self.pricers = list(pricers)
        self.publishing = False

    def publish(self, path: np.ndarray) -> None:
        self.publishing = True
        try:
            for pricer in self.pricers:
                pricer.process_path(path)
        finally:
            self.publishing = False

    def fresh(self) -> "PathBroadcast":
        """Broadcast to empty partial copies of the current pricers."""
        return PathBroadcast(p.fresh() for p in self.pricers)

    def merge(self, other: "PathBroadcast") -> None:
        """Merge partial pricers position by position."""
        for mine, theirs in zip(self.pricers, other.pricers):
            mine.merge(theirs)

    def __len__(self) -> int:
        return len(self.pricers)
