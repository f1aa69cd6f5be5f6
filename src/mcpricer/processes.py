r"""
mcpricer.processes
==================

One-factor stochastic processes

.. math::

   dX_t = a(X_t)\,dt + b(X_t)\,dW_t,

where :math:`a` is the drift and :math:`b` the diffusion coefficient.

Classes
    :class:`ProcessParameters` — Market data shared by every process
    :class:`StochasticProcess` — Abstract base defining the coefficient interface
    :class:`GeometricProcess` — Geometric Brownian motion
    :class:`ElasticityProcess` — Constant elasticity of variance (CEV)

All coefficient methods are pure and work element-wise on floats or
:class:`numpy.ndarray` levels, so schemes can advance many paths at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace

import numpy as np

__all__ = [
    "ProcessParameters",
    "StochasticProcess",
    "GeometricProcess",
    "ElasticityProcess",
]


@dataclass(frozen=True)
class ProcessParameters:
    r"""
    Market data of a one-factor process.

    Attributes
    ----------
    rate : float
        Risk-free drift rate :math:`r`.
    volatility : float
        Volatility :math:`\sigma`, strictly positive.
    carry : float
        Dividend yield or cost of carry :math:`q`.
    initial_value : float
        Level :math:`X_0` at time zero.
    expiry : float
        Horizon :math:`T` in years, strictly positive.

    Examples
    --------
    >>> p = ProcessParameters(rate=0.08, volatility=0.3, carry=0.0, initial_value=60.0, expiry=0.25)
    >>> p.with_overrides(expiry=1.0).expiry
    1.0
    """

    rate: float
    volatility: float
    carry: float
    initial_value: float
    expiry: float

    def __post_init__(self) -> None:
        if not self.volatility > 0.0:
            raise ValueError("volatility must be positive")
        if not self.expiry > 0.0:
            raise ValueError("expiry must be positive")

    def with_overrides(self, **changes) -> "ProcessParameters":
        """Return a copy with selected fields replaced (validation re-runs)."""
        return replace(self, **changes)


class StochasticProcess(ABC):
    r"""
    Abstract one-factor stochastic process.

    Subclasses implement :meth:`drift`, :meth:`diffusion` and
    :meth:`diffusion_derivative`; :meth:`drift_corrected` is derived from them.

    Parameters
    ----------
    params : ProcessParameters
        Market data. The initial value must be positive.
    """

    def __init__(self, params: ProcessParameters):
        if not params.initial_value > 0.0:
            raise ValueError("initial_value must be positive")
        self.params = params

    @property
    def initial_value(self) -> float:
        """Level :math:`X_0` every path starts from."""
        return self.params.initial_value

    @property
    def expiry(self) -> float:
        """Simulation horizon :math:`T`."""
        return self.params.expiry

    @abstractmethod
    def drift(self, x):
        """Drift coefficient :math:`a(x)`."""

    @abstractmethod
    def diffusion(self, x):
        """Diffusion coefficient :math:`b(x)`."""

    @abstractmethod
    def diffusion_derivative(self, x):
        r"""Analytic derivative :math:`b'(x)`."""

    def drift_corrected(self, x, blend: float):
        r"""
        Drift with the Itô correction term removed.

        .. math::

           \tilde a(x) = a(x) - B\, b(x)\, b'(x)

        Parameters
        ----------
        x : float or ndarray
            Current level.
        blend : float
            Weight :math:`B` of the correction.
        """
        return self.drift(x) - blend * self.diffusion(x) * self.diffusion_derivative(x)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params!r})"


class GeometricProcess(StochasticProcess):
    r"""
    Geometric Brownian motion with continuous carry.

    .. math::

       dS_t = (r - q) S_t\,dt + \sigma S_t\,dW_t

    Examples
    --------
    >>> p = ProcessParameters(rate=0.05, volatility=0.2, carry=0.0, initial_value=100.0, expiry=1.0)
    >>> GeometricProcess(p).diffusion(100.0)
    20.0
    """

    def drift(self, x):
        return (self.params.rate - self.params.carry) * x

    def diffusion(self, x):
        return self.params.volatility * x

    def diffusion_derivative(self, x):
        # Constant, broadcast to the shape of x.
        return self.params.volatility + 0.0 * x


class ElasticityProcess(StochasticProcess):
    r"""
    Constant elasticity of variance process.

    .. math::

       dS_t = (r - q) S_t\,dt + \hat\sigma S_t^{\beta}\,dW_t,
       \qquad \hat\sigma = \sigma S_0^{1-\beta}.

    The volatility is rescaled once at construction so that the local
    volatility at :math:`S_0` equals :math:`\sigma`; at :math:`\beta = 1`
    the process coincides with :class:`GeometricProcess`.

    Parameters
    ----------
    params : ProcessParameters
        Market data.
    beta : float
        Elasticity exponent :math:`\beta`.
    """

    def __init__(self, params: ProcessParameters, beta: float):
        super().__init__(params)
        self.beta = float(beta)
        self.scaled_volatility = params.volatility * params.initial_value ** (1.0 - self.beta)

    def drift(self, x):
        return (self.params.rate - self.params.carry) * x

    def diffusion(self, x):
        return self.scaled_volatility * np.power(x, self.beta)

    def diffusion_derivative(self, x):
        if self.beta > 1.0:
            return self.scaled_volatility * self.beta * np.power(x, self.beta - 1.0)
        # Divide rather than raise to a negative power.
        return self.scaled_volatility * self.beta / np.power(x, 1.0 - self.beta)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params!r}, beta={self.beta})"
