r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Each block of paths gets a deep copy of the scheme, an independent source
from :meth:`~mcpricer.random_sources.RandomSource.spawn` and empty partial
pricers. Partials are merged into the subscribed pricers in block order once
every block has finished, so a seeded run is reproducible for a given block
layout.
"""

from __future__ import annotations

import copy
import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable

from ..paths import PathBroadcast
from .base import make_blocks, worker_run_block

if TYPE_CHECKING:
    from ..random_sources import RandomSource
    from ..schemes import DiscretizationScheme

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of blocks per worker for load balancing


class _BlockBackend:
    """Shared block preparation and merging of the pool backends."""

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers < 1:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def _prepare_blocks(
        self, n_paths: int, source: "RandomSource"
    ) -> tuple[list[tuple[int, int]], list["RandomSource"]]:
        """Prepare work blocks and independent random sources."""
        block_size = max(1, n_paths // (self.n_workers * self.chunks_per_worker))
        blocks = make_blocks(n_paths, block_size)
        return blocks, source.spawn(len(blocks))

    @staticmethod
    def _merge(sink: PathBroadcast, partials: list[PathBroadcast | None]) -> None:
        for part in partials:
            sink.merge(part)


class ThreadBackend(_BlockBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor` for parallel execution.
    Effective when NumPy releases the GIL (large batches of vectorized steps).

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> backend.run(scheme, source, sink, n_paths=100_000, progress_callback=None)
    """

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
        Simulate paths in parallel using threads.

        Parameters
        ----------
        scheme : DiscretizationScheme
            Template scheme, deep-copied per block.
        source : RandomSource
            Parent source; each block draws from its own spawned child.
        sink : PathBroadcast
            Subscribed pricers, updated by merging the block partials.
        n_paths : int
            Number of paths to simulate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)``, called as blocks finish.
        batch_size : int, default 1024
            Paths advanced together within a block.
        """
        blocks, children = self._prepare_blocks(n_paths, source)
        partials: list[PathBroadcast | None] = [None] * len(blocks)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))
        logger.debug("Dispatching %d blocks to %d threads.", len(blocks), max_workers)

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = {}
            for k, ((i, j), child) in enumerate(zip(blocks, children)):
                f = ex.submit(worker_run_block, copy.deepcopy(scheme), child, sink.fresh(), j - i, batch_size)
                futs[f] = k
            for f in as_completed(futs):
                k = futs[f]
                partials[k] = f.result()
                i, j = blocks[k]
                completed += j - i
                if progress_callback:
                    progress_callback(completed, n_paths)

        self._merge(sink, partials)


class ProcessBackend(_BlockBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context
    for parallel execution. Required on Windows or when thread-safety is a concern.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.
    chunks_per_worker : int, default 8
        Number of blocks per worker for load balancing.

    Notes
    -----
    The scheme, the source and every subscribed pricer must be pickleable.
    The strategies in :mod:`mcpricer.payoffs` are.

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> backend.run(scheme, source, sink, n_paths=100_000, progress_callback=None)
    """

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
        Simulate paths in parallel using processes.

        Parameters
        ----------
        scheme : DiscretizationScheme
            Template scheme, pickled per block.
        source : RandomSource
            Parent source; each block draws from its own spawned child.
        sink : PathBroadcast
            Subscribed pricers, updated by merging the block partials.
        n_paths : int
            Number of paths to simulate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)``, called as blocks finish.
        batch_size : int, default 1024
            Paths advanced together within a block.
        """
        blocks, children = self._prepare_blocks(n_paths, source)
        partials: list[PathBroadcast | None] = [None] * len(blocks)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))
        logger.debug("Dispatching %d blocks to %d processes.", len(blocks), max_workers)

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = []
            for k, ((i, j), child) in enumerate(zip(blocks, children)):
                f = ex.submit(worker_run_block, scheme, child, sink.fresh(), j - i, batch_size)
                f.blk = k  # type: ignore[attr-defined]
                futs.append(f)
            try:
                for f in as_completed(futs):
                    k = f.blk  # type: ignore[attr-defined]
                    partials[k] = f.result()
                    i, j = blocks[k]
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, n_paths)
            except KeyboardInterrupt:  # pragma: no cover
                for f in futs:
                    f.cancel()
                raise

        self._merge(sink, partials)
