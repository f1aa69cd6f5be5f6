r"""
mcpricer.payoffs
================

Strategies injected into the pricers.

Payoff functions map a price to a payoff, averaging functions reduce a path
to one price for Asian options, and knock predicates decide from a whole
path whether a barrier option is voided. All are frozen dataclasses, so
pricers built from them can be pickled to process workers.

Functions
    :func:`discount_factor` — Present-value factor :math:`e^{-rT}`
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

__all__ = [
    "discount_factor",
    "CallPayoff",
    "PutPayoff",
    "ArithmeticAverage",
    "GeometricAverage",
    "UpAndIn",
    "UpAndOut",
    "DownAndIn",
    "DownAndOut",
]


def discount_factor(rate: float, expiry: float) -> float:
    r"""
    Continuous-compounding discount factor :math:`e^{-rT}`.

    Examples
    --------
    >>> discount_factor(0.0, 1.0)
    1.0
    """
    return math.exp(-rate * expiry)


@dataclass(frozen=True)
class CallPayoff:
    r"""
    Call payoff :math:`\max(S - K, 0)`.

    A ``nan`` level yields ``nan``, which the pricer reports at finalization.
    """

    strike: float

    def __call__(self, s: float) -> float:
        return max(float(s) - self.strike, 0.0)


@dataclass(frozen=True)
class PutPayoff:
    r"""
    Put payoff :math:`\max(K - S, 0)`.

    A ``nan`` level yields ``nan``, like :class:`CallPayoff`.
    """

    strike: float

    def __call__(self, s: float) -> float:
        return max(self.strike - float(s), 0.0)


@dataclass(frozen=True)
class ArithmeticAverage:
    r"""Arithmetic mean :math:`\frac{1}{N+1}\sum_i S_{t_i}` over every path point."""

    def __call__(self, path: np.ndarray) -> float:
        return float(np.mean(path))


@dataclass(frozen=True)
class GeometricAverage:
    r"""
    Geometric mean :math:`\big(\prod_i S_{t_i}\big)^{1/(N+1)}` over every path point.

    Computed as :math:`\exp(\overline{\log S})`, which avoids overflowing the
    product on long paths. Non-positive levels give ``nan``.
    """

    def __call__(self, path: np.ndarray) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(np.exp(np.mean(np.log(path))))


@dataclass(frozen=True)
class UpAndOut:
    """Voided once the path touches the barrier from below (``S >= barrier``)."""

    barrier: float

    def __call__(self, path: np.ndarray) -> bool:
        return bool(np.any(path >= self.barrier))


@dataclass(frozen=True)
class UpAndIn:
    """Voided unless the path touches the barrier from below."""

    barrier: float

    def __call__(self, path: np.ndarray) -> bool:
        return not bool(np.any(path >= self.barrier))


@dataclass(frozen=True)
class DownAndOut:
    """Voided once the path touches the barrier from above (``S <= barrier``)."""

    barrier: float

    def __call__(self, path: np.ndarray) -> bool:
        return bool(np.any(path <= self.barrier))


@dataclass(frozen=True)
class DownAndIn:
    """Voided unless the path touches the barrier from above."""

    barrier: float

    def __call__(self, path: np.ndarray) -> bool:
        return not bool(np.any(path <= self.barrier))
