r"""
Configuration assembly.

This module provides:

Enums
    :class:`ProcessKind` — Stochastic process variants
    :class:`SchemeKind` — Discretization scheme variants
    :class:`SourceKind` — Random source variants

Classes
    :class:`SimulationConfig` — Plain record of every construction choice
    :class:`SimulationParts` — ``(process, scheme, source)`` triple

Functions
    :func:`build_parts` — Build the triple from a :class:`SimulationConfig`
    :func:`default_parts` — Geometric process, Euler scheme, Mersenne source

Unrecognized variant names never fail: each falls back to the default
variant with a logged warning.

Example
-------
>>> cfg = SimulationConfig(rate=0.05, volatility=0.2, initial_value=100.0, expiry=1.0,
...                        process="elasticity", beta=0.5, scheme="milstein", seed=1)
>>> process, scheme, source = build_parts(cfg)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple, Optional, Union

from .processes import ElasticityProcess, GeometricProcess, ProcessParameters, StochasticProcess
from .random_sources import RandomSource, SeedLike, make_source
from .schemes import (
    DiscretizationScheme,
    EulerScheme,
    MilsteinScheme,
    ModifiedPredictorCorrectorScheme,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessKind",
    "SchemeKind",
    "SourceKind",
    "SimulationConfig",
    "SimulationParts",
    "build_parts",
    "default_parts",
]


class ProcessKind(str, Enum):
    r"""
    Stochastic process variants.

    Attributes
    ----------
    geometric : str
        Geometric Brownian motion.
    elasticity : str
        Constant elasticity of variance, exponent ``beta``.
    """

    geometric = "geometric"
    elasticity = "elasticity"


class SchemeKind(str, Enum):
    euler = "euler"
    milstein = "milstein"
    predictor_corrector = "predictor_corrector"


class SourceKind(str, Enum):
    mersenne = "mersenne"
    box_muller = "box_muller"
    polar_marsaglia = "polar_marsaglia"


@dataclass
class SimulationConfig:
    r"""
    Every choice needed to assemble a simulation.

    Attributes
    ----------
    rate, volatility, carry, initial_value, expiry : float
        Market data, see :class:`~mcpricer.processes.ProcessParameters`.
    process : str or ProcessKind, default ``"geometric"``
        Process variant.
    beta : float, default 1.0
        Elasticity exponent, used by ``"elasticity"`` only.
    scheme : str or SchemeKind, default ``"euler"``
        Discretization variant.
    n_steps : int, default 100
        Number of time steps :math:`N_T`.
    blend_a, blend_b : float, default 0.5
        Predictor–corrector blend factors :math:`A` and :math:`B`.
    source : str or SourceKind, default ``"mersenne"``
        Random source variant.
    seed : int, SeedSequence or None
        Source entropy.
    mean, variance : float
        Mersenne source distribution parameters.
    """

    rate: float
    volatility: float
    initial_value: float
    expiry: float
    carry: float = 0.0
    process: Union[str, ProcessKind] = ProcessKind.geometric
    beta: float = 1.0
    scheme: Union[str, SchemeKind] = SchemeKind.euler
    n_steps: int = 100
    blend_a: float = 0.5
    blend_b: float = 0.5
    source: Union[str, SourceKind] = SourceKind.mersenne
    seed: SeedLike = None
    mean: float = 0.0
    variance: float = 1.0

    def __post_init__(self) -> None:
        if self.variance < 0.0:
            raise ValueError("variance must be non-negative")

    @property
    def params(self) -> ProcessParameters:
        """Market data as validated :class:`ProcessParameters`."""
        return ProcessParameters(
            rate=self.rate,
            volatility=self.volatility,
            carry=self.carry,
            initial_value=self.initial_value,
            expiry=self.expiry,
        )

    def with_overrides(self, **changes) -> "SimulationConfig":
        """Return a copy with selected fields replaced."""
        return replace(self, **changes)


class SimulationParts(NamedTuple):
    process: StochasticProcess
    scheme: DiscretizationScheme
    source: RandomSource


def _kind(value, enum_cls: type[Enum], default: Enum, what: str) -> Enum:
    """Map ``value`` onto ``enum_cls``, falling back to ``default`` with a warning."""
    try:
        return enum_cls(getattr(value, "value", value))
    except ValueError:
        logger.warning(
            "Unknown %s '%s'; expected one of %s. Defaulting to '%s'.",
            what,
            value,
            [k.value for k in enum_cls],
            default.value,
        )
        return default


def build_parts(config: SimulationConfig) -> SimulationParts:
    r"""
    Assemble the process, scheme and source described by ``config``.

    Parameters
    ----------
    config : SimulationConfig
        Construction choices.

    Returns
    -------
    SimulationParts
        ``(process, scheme, source)``.

    Raises
    ------
    ValueError
        For invalid market data (non-positive volatility, expiry or initial value).

    Notes
    -----
    Unknown ``process``, ``scheme`` or ``source`` names fall back to
    ``"geometric"``, ``"euler"`` and ``"mersenne"`` respectively.
    """
    params = config.params

    process_kind = _kind(config.process, ProcessKind, ProcessKind.geometric, "process")
    if process_kind is ProcessKind.elasticity:
        process: StochasticProcess = ElasticityProcess(params, config.beta)
    else:
        process = GeometricProcess(params)

    scheme_kind = _kind(config.scheme, SchemeKind, SchemeKind.euler, "scheme")
    if scheme_kind is SchemeKind.milstein:
        scheme: DiscretizationScheme = MilsteinScheme(process, config.n_steps)
    elif scheme_kind is SchemeKind.predictor_corrector:
        scheme = ModifiedPredictorCorrectorScheme(process, config.n_steps, config.blend_a, config.blend_b)
    else:
        scheme = EulerScheme(process, config.n_steps)

    source_kind = _kind(config.source, SourceKind, SourceKind.mersenne, "source")
    source = make_source(source_kind.value, seed=config.seed, mean=config.mean, variance=config.variance)

    return SimulationParts(process, scheme, source)


def default_parts(
    params: ProcessParameters,
    n_steps: int,
    seed: Optional[SeedLike] = None,
) -> SimulationParts:
    r"""
    Default assembly: geometric process, Euler scheme, standard Mersenne normals.

    Parameters
    ----------
    params : ProcessParameters
        Market data.
    n_steps : int
        Number of time steps.
    seed : int, SeedSequence or None
        Source entropy.
    """
    process = GeometricProcess(params)
    return SimulationParts(process, EulerScheme(process, n_steps), make_source("mersenne", seed=seed))
