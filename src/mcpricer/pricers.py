r"""
mcpricer.pricers
================

Path pricers: subscribers of :class:`~mcpricer.mediator.MonteCarloMediator`
that turn simulated paths into a discounted price estimate.

Classes
    :class:`PricerState` — Streaming payoff accumulators
    :class:`PricingResult` — Finalized price, dispersion and confidence interval
    :class:`PathPricer` — Abstract subscriber (``process_path`` / ``finalize``)
    :class:`EuropeanPricer` — Payoff of the terminal level
    :class:`AsianPricer` — Payoff of the path average
    :class:`BarrierPricer` — Terminal payoff unless the path is knocked

Functions
    :func:`make_pricer` — Build one of the standard option pricers by name

Statistics
----------
With :math:`n` paths and undiscounted payoffs :math:`V_i`,

.. math::

   \bar V = \frac{1}{n}\sum_i V_i, \qquad
   \text{price} = D\,\bar V, \qquad
   s^2 = \max\Big(\frac{1}{n}\sum_i V_i^2 - \bar V^2,\ 0\Big), \qquad
   \mathrm{SE} = s / \sqrt{n},

where :math:`D = e^{-rT}` is the discount factor.
"""

from __future__ import annotations

import copy
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .payoffs import (
    ArithmeticAverage,
    CallPayoff,
    DownAndIn,
    DownAndOut,
    GeometricAverage,
    PutPayoff,
    UpAndIn,
    UpAndOut,
)
from .utils import autocrit

logger = logging.getLogger(__name__)

__all__ = [
    "PricerState",
    "PricingResult",
    "PathPricer",
    "EuropeanPricer",
    "AsianPricer",
    "BarrierPricer",
    "make_pricer",
    "OPTION_KINDS",
]


@dataclass
class PricerState:
    r"""
    Running sums of one pricer.

    Attributes
    ----------
    discount_factor : float
        Factor :math:`D` applied to the mean payoff.
    payoff_sum : float
        :math:`\sum_i V_i`.
    payoff_sum_sq : float
        :math:`\sum_i V_i^2`.
    n_paths : int
        Number of processed paths.
    """

    discount_factor: float
    payoff_sum: float = 0.0
    payoff_sum_sq: float = 0.0
    n_paths: int = 0

    def update(self, payoff: float) -> None:
        self.payoff_sum += payoff
        self.payoff_sum_sq += payoff * payoff
        self.n_paths += 1

    def merge(self, other: "PricerState") -> None:
        """Fold the sums of a partial accumulator into this one."""
        self.payoff_sum += other.payoff_sum
        self.payoff_sum_sq += other.payoff_sum_sq
        self.n_paths += other.n_paths


@dataclass(frozen=True)
class PricingResult:
    r"""
    Outcome of one pricer after a run.

    Attributes
    ----------
    name : str
        Pricer label.
    price : float
        Discounted price estimate :math:`D\,\bar V`.
    mean_payoff : float
        Undiscounted sample mean :math:`\bar V`.
    std : float
        Population standard deviation of the payoff.
    se : float
        Standard error :math:`s/\sqrt{n}`.
    n_paths : int
        Number of paths the estimate is based on.
    discount_factor : float
        Factor :math:`D`.
    confidence : float
        Confidence level of the interval.
    ci_low, ci_high : float
        Interval :math:`D(\bar V \pm c\,\mathrm{SE})` on the price.
    method : str
        Critical value used, ``"z"`` or ``"t"``.
    execution_time : float or None
        Wall-clock seconds of the run that produced the result.
    """

    name: str
    price: float
    mean_payoff: float
    std: float
    se: float
    n_paths: int
    discount_factor: float
    confidence: float
    ci_low: float
    ci_high: float
    method: str
    execution_time: Optional[float] = None

    def result_to_string(self) -> str:
        """Multiline, human-readable summary."""
        lines = [
            f"Pricing results for '{self.name}':",
            f"  Number of paths: {self.n_paths}",
        ]
        if self.execution_time is not None:
            lines.append(f"  Execution time: {self.execution_time:.2f} seconds")
        lines += [
            f"  Price: {self.price:.6f}",
            f"  Mean payoff: {self.mean_payoff:.6f}",
            f"  Std of payoff: {self.std:.6f}",
            f"  Standard error: {self.se:.6f}",
            f"  {int(round(self.confidence * 100))}% CI ({self.method}): "
            f"[{self.ci_low:.6f}, {self.ci_high:.6f}]",
        ]
        return "\n".join(lines)


class PathPricer(ABC):
    r"""
    Abstract path subscriber that accumulates payoffs.

    Parameters
    ----------
    payoff : callable
        Maps a price level to a payoff, e.g. :class:`~mcpricer.payoffs.CallPayoff`.
    discount_factor : float
        Present-value factor applied at finalization.
    name : str, optional
        Label used in results and logs; defaults to the class name.

    Notes
    -----
    :meth:`process_path` receives a read-only view that is overwritten after
    the call returns. Subclasses must reduce it to a number inside
    :meth:`path_payoff` and keep no reference to it.
    """

    def __init__(
        self,
        payoff: Callable[[float], float],
        discount_factor: float,
        name: Optional[str] = None,
    ):
        self.payoff = payoff
        self.name = name or type(self).__name__
        self.state = PricerState(float(discount_factor))
        self._result: Optional[PricingResult] = None

    @property
    def discount_factor(self) -> float:
        return self.state.discount_factor

    @property
    def finalized(self) -> bool:
        return self._result is not None

    @abstractmethod
    def path_payoff(self, path: np.ndarray) -> float:
        """Undiscounted payoff of one simulated path."""

    def process_path(self, path: np.ndarray) -> None:
        r"""
        Accumulate the payoff of one path.

        Raises
        ------
        RuntimeError
            If the pricer has already been finalized.
        """
        if self._result is not None:
            raise RuntimeError(f"Pricer '{self.name}' is finalized; no further paths accepted.")
        self.state.update(float(self.path_payoff(path)))

    def finalize(
        self,
        confidence: float = 0.95,
        ci_method: str = "auto",
        execution_time: Optional[float] = None,
    ) -> PricingResult:
        r"""
        Compute the price and its dispersion from the accumulated sums.

        Parameters
        ----------
        confidence : float, default 0.95
            Confidence level of the price interval.
        ci_method : {"auto", "z", "t"}, default ``"auto"``
            Critical value selection, see :func:`~mcpricer.utils.autocrit`.
        execution_time : float, optional
            Run time recorded on the result.

        Returns
        -------
        PricingResult

        Raises
        ------
        ValueError
            If no path has been processed.

        Notes
        -----
        Only the first call computes; later calls return the same result.
        A non-finite payoff sum (e.g. ``nan`` from a geometric average of a
        path that went non-positive) is logged as a warning and propagates
        into the result.
        """
        if self._result is not None:
            return self._result
        st = self.state
        n = st.n_paths
        if n == 0:
            raise ValueError(f"Pricer '{self.name}' cannot be finalized without processed paths")
        if not (math.isfinite(st.payoff_sum) and math.isfinite(st.payoff_sum_sq)):
            logger.warning("Pricer '%s' accumulated non-finite payoffs; the estimate is nan or inf.", self.name)
        mean = st.payoff_sum / n
        variance = max(st.payoff_sum_sq / n - mean * mean, 0.0)
        std = math.sqrt(variance)
        se = std / math.sqrt(n)
        crit, kind = autocrit(confidence, n, ci_method)
        df = st.discount_factor
        self._result = PricingResult(
            name=self.name,
            price=df * mean,
            mean_payoff=mean,
            std=std,
            se=se,
            n_paths=n,
            discount_factor=df,
            confidence=confidence,
            ci_low=df * (mean - crit * se),
            ci_high=df * (mean + crit * se),
            method=kind,
            execution_time=execution_time,
        )
        logger.debug("Finalized '%s' over %d paths: price=%.6f", self.name, n, self._result.price)
        return self._result

    @property
    def result(self) -> PricingResult:
        if self._result is None:
            raise RuntimeError(f"Pricer '{self.name}' has not been finalized yet.")
        return self._result

    @property
    def price(self) -> float:
        return self.result.price

    def fresh(self) -> "PathPricer":
        """Empty copy sharing this pricer's strategies, used as a worker partial."""
        twin = copy.copy(self)
        twin.state = PricerState(self.state.discount_factor)
        twin._result = None
        return twin

    def merge(self, other: "PathPricer") -> None:
        """Fold a partial pricer's sums into this one."""
        if self._result is not None:
            raise RuntimeError(f"Pricer '{self.name}' is finalized; cannot merge.")
        self.state.merge(other.state)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, n_paths={self.state.n_paths})"


class EuropeanPricer(PathPricer):
    """Payoff of the terminal level ``path[-1]``."""

    def path_payoff(self, path):
        return self.payoff(path[-1])


class AsianPricer(PathPricer):
    r"""
    Payoff of the path average.

    Parameters
    ----------
    payoff : callable
        Payoff of the averaged level.
    discount_factor : float
        Present-value factor.
    average : callable
        Reduces a path to one level, :class:`~mcpricer.payoffs.ArithmeticAverage`
        or :class:`~mcpricer.payoffs.GeometricAverage`.
    name : str, optional
        Label.
    """

    def __init__(self, payoff, discount_factor, average, name=None):
        super().__init__(payoff, discount_factor, name)
        self.average = average

    def path_payoff(self, path):
        return self.payoff(self.average(path))


class BarrierPricer(PathPricer):
    r"""
    Terminal payoff, voided when the knock predicate holds for the path.

    Voided paths contribute a zero payoff and still count towards :math:`n`.

    Parameters
    ----------
    payoff : callable
        Payoff of the terminal level.
    discount_factor : float
        Present-value factor.
    knock : callable
        Path predicate, e.g. :class:`~mcpricer.payoffs.UpAndOut`.
    name : str, optional
        Label.
    """

    def __init__(self, payoff, discount_factor, knock, name=None):
        super().__init__(payoff, discount_factor, name)
        self.knock = knock

    def path_payoff(self, path):
        if self.knock(path):
            return 0.0
        return self.payoff(path[-1])


_PAYOFFS = {"call": CallPayoff, "put": PutPayoff}
_AVERAGES = {"arithmetic": ArithmeticAverage, "geometric": GeometricAverage}
_KNOCKS = {
    "up_and_in": UpAndIn,
    "up_and_out": UpAndOut,
    "down_and_in": DownAndIn,
    "down_and_out": DownAndOut,
}

OPTION_KINDS = tuple(
    [f"european_{p}" for p in _PAYOFFS]
    + [f"asian_{a}_{p}" for a in _AVERAGES for p in _PAYOFFS]
    + [f"barrier_{k}_{p}" for k in _KNOCKS for p in _PAYOFFS]
)


def make_pricer(
    kind: str,
    strike: float,
    discount_factor: float,
    barrier: Optional[float] = None,
) -> PathPricer:
    r"""
    Build a standard option pricer from its name.

    Parameters
    ----------
    kind : str
        One of :data:`OPTION_KINDS`, e.g. ``"european_call"``,
        ``"asian_geometric_put"`` or ``"barrier_up_and_out_call"``.
    strike : float
        Strike :math:`K`.
    discount_factor : float
        Present-value factor, see :func:`~mcpricer.payoffs.discount_factor`.
    barrier : float, optional
        Barrier level, required for barrier kinds.

    Returns
    -------
    PathPricer
        Pricer named after ``kind``.

    Raises
    ------
    ValueError
        If ``kind`` is unknown or a barrier kind is missing ``barrier``.

    Examples
    --------
    >>> p = make_pricer("barrier_up_and_out_call", 65.0, 0.98, barrier=80.0)
    >>> p.knock
    UpAndOut(barrier=80.0)
    """
    if kind not in OPTION_KINDS:
        raise ValueError(f"kind must be one of {OPTION_KINDS}, got '{kind}'")
    family, _, rest = kind.partition("_")
    style, _, side = rest.rpartition("_")
    payoff = _PAYOFFS[side](float(strike))
    if family == "european":
        return EuropeanPricer(payoff, discount_factor, name=kind)
    if family == "asian":
        return AsianPricer(payoff, discount_factor, _AVERAGES[style](), name=kind)
    if barrier is None:
        raise ValueError(f"barrier is required for '{kind}'")
    return BarrierPricer(payoff, discount_factor, _KNOCKS[style](float(barrier)), name=kind)
