r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for path simulation strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`worker_run_block` — Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Callable, Protocol

from ..paths import PathBroadcast, simulate_paths

if TYPE_CHECKING:
    from ..random_sources import RandomSource
    from ..schemes import DiscretizationScheme

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "worker_run_block",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size < 1:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def worker_run_block(
    scheme: "DiscretizationScheme",
    source: "RandomSource",
    sink: PathBroadcast,
    n_paths: int,
    batch_size: int,
) -> PathBroadcast:
    r"""
    Simulate one block of paths in a **separate worker**.

    Parameters
    ----------
    scheme : DiscretizationScheme
        Private copy of the scheme (and its process) for this block.
    source : RandomSource
        Independent source owned by this block only.
    sink : PathBroadcast
        Empty partial pricers receiving the block's paths.
    n_paths : int
        Number of paths in the block.
    batch_size : int
        Paths advanced together.

    Returns
    -------
    PathBroadcast
        ``sink`` with its partial pricers filled. Must be pickleable when
        used with a process backend.
    """
    simulate_paths(scheme, source, n_paths, sink.publish, batch_size=batch_size)
    return sink


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends simulate paths and deliver them to a :class:`~mcpricer.paths.PathBroadcast`.
    They handle the details of sequential vs parallel execution, thread vs
    process pools, and progress reporting.
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
        Simulate paths and feed every one of them to ``sink``.

        Parameters
        ----------
        scheme : DiscretizationScheme
            Integrator and time mesh.
        source : RandomSource
            Normal variates; parallel backends derive children via ``spawn``.
        sink : PathBroadcast
            Subscribed pricers.
        n_paths : int
            Number of paths to simulate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.
        batch_size : int, default 1024
            Paths advanced together.
        """
