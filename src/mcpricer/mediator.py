r"""
Simulation orchestrator.

This module provides:

Classes
    :class:`MediatorState` — Lifecycle states of a mediator
    :class:`MonteCarloMediator` — Drives the paths and broadcasts them to pricers

Lifecycle
---------
``CONFIGURED -> RUNNING -> FINISHED``. Pricers subscribe while the mediator
is configured (or between batches of a sequential run), :meth:`~MonteCarloMediator.run`
simulates every path, publishes each finished path to the subscribers in
subscription order and finally finalizes every subscriber exactly once.

Example
-------
>>> from mcpricer import ProcessParameters, default_parts, make_pricer, discount_factor
>>> params = ProcessParameters(rate=0.08, volatility=0.3, carry=0.0, initial_value=60.0, expiry=0.25)
>>> med = MonteCarloMediator(default_parts(params, n_steps=50, seed=7), n_paths=10_000)
>>> call = make_pricer("european_call", 65.0, discount_factor(0.08, 0.25))
>>> med.subscribe(call)
>>> results = med.run()  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from enum import Enum
from typing import Callable, Optional

import numpy as np

from .backends import ProcessBackend, SequentialBackend, ThreadBackend, is_windows_platform
from .config import SimulationParts
from .paths import PathBroadcast
from .pricers import PathPricer, PricingResult

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = ["MediatorState", "MonteCarloMediator"]


class MediatorState(str, Enum):
    CONFIGURED = "configured"
    RUNNING = "running"
    FINISHED = "finished"


class MonteCarloMediator:
    r"""
    Orchestrates path simulation and the pricers observing it.

    Parameters
    ----------
    parts : SimulationParts
        ``(process, scheme, source)`` triple, see :func:`~mcpricer.config.build_parts`.
    n_paths : int
        Number of simulated paths :math:`N_{sim} \ge 1`.
    batch_size : int, keyword-only, default 1024
        Paths advanced together in one vectorized batch.
    name : str, keyword-only, default ``"MonteCarloMediator"``
        Label used in logs.

    Attributes
    ----------
    state : MediatorState
        Current lifecycle state.
    execution_time : float or None
        Wall-clock seconds of the completed run.
    results : list of PricingResult
        Results of the last run, in subscription order.

    Raises
    ------
    ValueError
        If ``n_paths`` or ``batch_size`` is not positive, or if the scheme does
        not wrap ``process``.

    Notes
    -----
    Paths are published as read-only views of one reusable buffer of shape
    ``(batch_size, n_steps + 1)``; a pricer must copy anything it keeps.
    """

    _PARALLEL_THRESHOLD = 20_000  # Minimum paths to use parallel execution
    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")
    _parallel_run = False

    def __init__(
        self,
        parts: SimulationParts,
        n_paths: int,
        *,
        batch_size: int = 1024,
        name: str = "MonteCarloMediator",
    ):
        if n_paths < 1:
            raise ValueError("n_paths must be positive")
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.process, self.scheme, self.source = parts
        if self.scheme.process is not self.process:
            raise ValueError("scheme must discretize the process it is assembled with")
        self.n_paths = int(n_paths)
        self.batch_size = int(batch_size)
        self.name = name
        self.buffer = np.empty((min(self.batch_size, self.n_paths), self.scheme.n_steps + 1), dtype=float)
        self.state = MediatorState.CONFIGURED
        self.execution_time: Optional[float] = None
        self.results: list[PricingResult] = []
        self._sink = PathBroadcast()
        self._completed = 0

    @property
    def subscribers(self) -> tuple[PathPricer, ...]:
        return tuple(self._sink.pricers)

    def _check_mutable(self) -> None:
        if self.state is MediatorState.FINISHED:
            raise RuntimeError("Subscriptions cannot change after the run has finished.")
        if self._sink.publishing:
            raise RuntimeError("Subscriptions cannot change while a path is being published.")
        if self.state is MediatorState.RUNNING and self._parallel_run:
            raise RuntimeError("Subscriptions cannot change during a parallel run.")
        if self.state is MediatorState.RUNNING and self._completed >= self.n_paths:
            raise RuntimeError("Subscriptions cannot change once every path has been published.")

    def subscribe(self, pricer: PathPricer) -> None:
        r"""
        Add a pricer; subscribing the same pricer twice is ignored.

        Raises
        ------
        RuntimeError
            After the run, during a path publish, during a parallel run, or
            once every path has been published.
        """
        self._check_mutable()
        if any(p is pricer for p in self._sink.pricers):
            return
        self._sink.pricers.append(pricer)

    def unsubscribe(self, pricer: PathPricer) -> None:
        r"""
        Remove a pricer.

        Raises
        ------
        ValueError
            If ``pricer`` is not subscribed.
        RuntimeError
            Under the same conditions as :meth:`subscribe`.
        """
        self._check_mutable()
        for k, p in enumerate(self._sink.pricers):
            if p is pricer:
                del self._sink.pricers[k]
                return
        raise ValueError(f"{pricer!r} is not subscribed")

    def _resolve_backend(self, backend: str, n_workers: Optional[int]) -> tuple[str, int]:
        r"""
        Resolve the requested backend name.

        ``"auto"`` maps to ``"sequential"`` for fewer than ``_PARALLEL_THRESHOLD``
        paths or a single worker, otherwise to ``"thread"`` (``"process"`` on
        Windows). Invalid names fall back to ``"auto"`` with a warning.
        """
        if backend not in self._VALID_BACKENDS:
            logger.warning(
                "backend must be one of %s, got '%s'. Defaulting to 'auto'.",
                self._VALID_BACKENDS,
                backend,
            )
            backend = "auto"
        if n_workers is None:
            n_workers = mp.cpu_count()
        if backend == "auto":
            if n_workers <= 1 or self.n_paths < self._PARALLEL_THRESHOLD:
                backend = "sequential"
            elif is_windows_platform():
                backend = "process"
                logger.info("Backend 'auto' resolved to 'process' on Windows platform.")
            else:
                backend = "thread"
        return backend, n_workers

    def _create_backend(self, backend: str, n_workers: int):
        if backend == "sequential":
            return SequentialBackend(buffer=self.buffer)
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers)
        return ProcessBackend(n_workers=n_workers)

    def run(
        self,
        *,
        backend: str = "sequential",
        n_workers: Optional[int] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        confidence: float = 0.95,
        ci_method: str = "auto",
    ) -> list[PricingResult]:
        r"""
        Simulate every path, publish it, then finalize the subscribers.

        Parameters
        ----------
        backend : {"sequential", "auto", "thread", "process"}, default ``"sequential"``
            Execution strategy. Parallel backends simulate blocks of paths on
            spawned sources and merge per-block partial pricers in block order.
        n_workers : int, optional
            Worker count for parallel backends; defaults to the CPU count.
        progress_callback : callable, optional
            ``f(completed, total)`` called about every 1% of paths and at completion.
        confidence : float, default 0.95
            Confidence level of the price intervals.
        ci_method : {"auto", "z", "t"}, default ``"auto"``
            Critical value selection for the intervals.

        Returns
        -------
        list of PricingResult
            One result per subscriber, in subscription order.

        Raises
        ------
        RuntimeError
            If the mediator has already run.
        ValueError
            For invalid ``n_workers``, ``confidence`` or ``ci_method``.
        """
        if self.state is not MediatorState.CONFIGURED:
            raise RuntimeError(f"Mediator '{self.name}' has already run.")
        if n_workers is not None and n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in the interval (0, 1)")
        if ci_method not in ("auto", "z", "t"):
            raise ValueError(f"ci_method must be one of 'auto', 'z', 't', got '{ci_method}'")

        resolved, n_workers = self._resolve_backend(backend, n_workers)
        runner = self._create_backend(resolved, n_workers)
        logger.info(
            "Running '%s': %d paths of %d steps, %d subscriber(s), backend '%s'%s.",
            self.name,
            self.n_paths,
            self.scheme.n_steps,
            len(self._sink),
            resolved,
            "" if resolved == "sequential" else f" with {n_workers} workers",
        )

        def _progress(completed: int, total: int) -> None:
            self._completed = completed
            logger.debug("'%s' progress: %d/%d paths (%.0f%%)", self.name, completed, total, 100.0 * completed / total)
            if progress_callback:
                progress_callback(completed, total)

        self.state = MediatorState.RUNNING
        self._parallel_run = resolved != "sequential"
        t0 = time.time()
        try:
            runner.run(
                self.scheme,
                self.source,
                self._sink,
                self.n_paths,
                _progress,
                batch_size=self.batch_size,
            )
        finally:
            self.execution_time = time.time() - t0
            self._parallel_run = False
            self.state = MediatorState.FINISHED

        logger.info("'%s' finished in %.2f seconds.", self.name, self.execution_time)
        self.results = [
            pricer.finalize(confidence, ci_method, execution_time=self.execution_time)
            for pricer in self._sink.pricers
        ]
        return self.results

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, n_paths={self.n_paths}, "
            f"state={self.state.value}, subscribers={len(self._sink)})"
        )
