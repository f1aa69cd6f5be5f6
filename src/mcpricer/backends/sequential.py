r"""
Sequential execution backend.

This module provides a single-threaded execution strategy that publishes
every path on the calling thread with optional progress reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np

from ..paths import PathBroadcast, simulate_paths

if TYPE_CHECKING:
    from ..random_sources import RandomSource
    from ..schemes import DiscretizationScheme

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Paths are published to the live subscriber list, so pricers may be
    added or removed between batches (e.g. from the progress callback).

    Parameters
    ----------
    buffer : ndarray, optional
        Reusable work array ``(batch, n_steps + 1)`` owned by the caller.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> backend.run(scheme, source, sink, n_paths=1000, progress_callback=None)
    """

    def __init__(self, buffer: np.ndarray | None = None):
        self.buffer = buffer

    def run(
        self,
        scheme: "DiscretizationScheme",
        source: "RandomSource",
        sink: PathBroadcast,
        n_paths: int,
        progress_callback: Callable[[int, int], None] | None,
        *,
        batch_size: int = 1024,
    ) -> None:
        r"""
        Simulate paths on a single thread.

        Parameters
        ----------
        scheme : DiscretizationScheme
            Integrator and time mesh.
        source : RandomSource
            Normal variates.
        sink : PathBroadcast
            Subscribed pricers.
        n_paths : int
            Number of paths to simulate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)``, called about every 1% of paths.
        batch_size : int, default 1024
            Paths advanced together when no buffer was supplied.
        """
        # Report progress every 1% of paths
        step = max(1, n_paths // 100)
        completed = 0
        next_report = step

        def _on_batch(m: int) -> None:
            nonlocal completed, next_report
            completed += m
            if progress_callback and (completed >= next_report or completed == n_paths):
                progress_callback(completed, n_paths)
                next_report = (completed // step + 1) * step

        simulate_paths(
            scheme,
            source,
            n_paths,
            sink.publish,
            batch_size=batch_size,
            buffer=self.buffer,
            on_batch=_on_batch,
        )
