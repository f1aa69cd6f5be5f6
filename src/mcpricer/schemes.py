r"""
mcpricer.schemes
================

Time discretization of a :class:`~mcpricer.processes.StochasticProcess`.

Classes
    :class:`TimeMesh` — Uniform time grid on :math:`[0, T]`
    :class:`DiscretizationScheme` — Abstract one-step integrator
    :class:`EulerScheme` — Euler–Maruyama
    :class:`MilsteinScheme` — Milstein (first-order strong)
    :class:`ModifiedPredictorCorrectorScheme` — Trapezoidal predictor–corrector

Every scheme advances a level by one step from a single standard normal
draw :math:`Z`:

.. math::

   X_{n+1} = \Phi(X_n, t_n, \Delta t, Z_n).

Levels and draws may be floats or equally shaped arrays.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np

from .processes import StochasticProcess

logger = logging.getLogger(__name__)

__all__ = [
    "TimeMesh",
    "DiscretizationScheme",
    "EulerScheme",
    "MilsteinScheme",
    "ModifiedPredictorCorrectorScheme",
]


class TimeMesh:
    r"""
    Uniform mesh :math:`t_i = i\,\Delta t`, :math:`i = 0, \dots, N_T`.

    Parameters
    ----------
    expiry : float
        Horizon :math:`T`.
    n_steps : int
        Number of intervals :math:`N_T`. Negative values are coerced to ``0``,
        which yields the single point ``[0.0]`` and :math:`\Delta t = 0`.

    Examples
    --------
    >>> mesh = TimeMesh(1.0, 4)
    >>> mesh.points.tolist()
    [0.0, 0.25, 0.5, 0.75, 1.0]
    """

    def __init__(self, expiry: float, n_steps: int):
        n_steps = int(n_steps)
        if n_steps < 0:
            logger.warning("Negative step count %d coerced to 0.", n_steps)
            n_steps = 0
        self.expiry = float(expiry)
        self.n_steps = n_steps
        self.step = self.expiry / n_steps if n_steps > 0 else 0.0
        self.points = self.step * np.arange(n_steps + 1, dtype=float)
        if n_steps > 0:
            # Pin the last point against accumulated rounding.
            self.points[-1] = self.expiry
        self.points.flags.writeable = False

    def __len__(self) -> int:
        return self.points.size

    def __getitem__(self, i):
        return self.points[i]

    def __repr__(self) -> str:
        return f"TimeMesh(expiry={self.expiry}, n_steps={self.n_steps})"


class DiscretizationScheme(ABC):
    r"""
    Abstract one-step integrator for a stochastic process.

    The scheme owns the :class:`TimeMesh` built once from the process expiry
    and the requested number of steps.

    Parameters
    ----------
    process : StochasticProcess
        Process whose coefficients drive the step.
    n_steps : int
        Number of time intervals :math:`N_T` (negative coerced to ``0``).
    """

    def __init__(self, process: StochasticProcess, n_steps: int):
        self.process = process
        self.mesh = TimeMesh(process.expiry, n_steps)

    @property
    def n_steps(self) -> int:
        return self.mesh.n_steps

    @property
    def step(self) -> float:
        r"""Mesh size :math:`\Delta t`."""
        return self.mesh.step

    @abstractmethod
    def advance(self, x, t: float, dt: float, z):
        r"""
        Advance the level by one time step.

        Parameters
        ----------
        x : float or ndarray
            Level :math:`X_n`.
        t : float
            Time :math:`t_n`; ignored by time-homogeneous processes.
        dt : float
            Step size :math:`\Delta t`.
        z : float or ndarray
            Standard normal draw(s), shaped like ``x``.

        Returns
        -------
        float or ndarray
            Level :math:`X_{n+1}`.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.process!r}, n_steps={self.n_steps})"


class EulerScheme(DiscretizationScheme):
    r"""
    Euler–Maruyama step.

    .. math::

       X_{n+1} = X_n + a(X_n)\,\Delta t + b(X_n)\sqrt{\Delta t}\,Z_n
    """

    def advance(self, x, t, dt, z):
        sde = self.process
        return x + sde.drift(x) * dt + sde.diffusion(x) * math.sqrt(dt) * z


class MilsteinScheme(DiscretizationScheme):
    r"""
    Milstein step, Euler plus the second-order Itô–Taylor correction.

    .. math::

       X_{n+1} = X_n + a\,\Delta t + b\sqrt{\Delta t}\,Z_n
                 + \tfrac{1}{2}\,\Delta t\, b\, b'\,(Z_n^2 - 1)

    The correction does not vanish at :math:`Z_n = 0`; it equals
    :math:`-\tfrac{1}{2}\Delta t\, b\, b'` there.
    """

    def advance(self, x, t, dt, z):
        sde = self.process
        b = sde.diffusion(x)
        return (
            x
            + sde.drift(x) * dt
            + b * math.sqrt(dt) * z
            + 0.5 * dt * b * sde.diffusion_derivative(x) * (z * z - 1.0)
        )


class ModifiedPredictorCorrectorScheme(DiscretizationScheme):
    r"""
    Modified trapezoidal predictor–corrector.

    An Euler predictor :math:`\hat X` is corrected by blending the corrected
    drift :math:`\tilde a` and the diffusion at :math:`X_n` and :math:`\hat X`:

    .. math::

       X_{n+1} = X_n
         + \big(A\,\tilde a(\hat X) + (1-A)\,\tilde a(X_n)\big)\Delta t
         + \big(B\,b(\hat X) + (1-B)\,b(X_n)\big)\sqrt{\Delta t}\,Z_n,

    with :math:`\tilde a(x) = a(x) - B\,b(x)\,b'(x)`.

    Parameters
    ----------
    process : StochasticProcess
        Process to integrate.
    n_steps : int
        Number of time intervals.
    a : float, default 0.5
        Drift blend factor :math:`A`.
    b : float, default 0.5
        Diffusion blend factor :math:`B`.

    Notes
    -----
    The last predictor is kept in :attr:`predictor`, so one instance must not
    be shared by concurrent workers.
    """

    def __init__(self, process: StochasticProcess, n_steps: int, a: float = 0.5, b: float = 0.5):
        super().__init__(process, n_steps)
        self.a = float(a)
        self.b = float(b)
        self.predictor = 0.0

    def advance(self, x, t, dt, z):
        sde = self.process
        sqrt_dt = math.sqrt(dt)
        self.predictor = x + sde.drift(x) * dt + sde.diffusion(x) * sqrt_dt * z
        mid = self.predictor
        drift_term = (
            self.a * sde.drift_corrected(mid, self.b) + (1.0 - self.a) * sde.drift_corrected(x, self.b)
        ) * dt
        diffusion_term = (self.b * sde.diffusion(mid) + (1.0 - self.b) * sde.diffusion(x)) * sqrt_dt * z
        return x + drift_term + diffusion_term

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.process!r}, n_steps={self.n_steps}, a={self.a}, b={self.b})"
