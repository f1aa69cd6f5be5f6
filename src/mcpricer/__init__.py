"""mcpricer package public API."""

from .config import (
    ProcessKind,
    SchemeKind,
    SimulationConfig,
    SimulationParts,
    SourceKind,
    build_parts,
    default_parts,
)
from .mediator import MediatorState, MonteCarloMediator
from .payoffs import (
    ArithmeticAverage,
    CallPayoff,
    DownAndIn,
    DownAndOut,
    GeometricAverage,
    PutPayoff,
    UpAndIn,
    UpAndOut,
    discount_factor,
)
from .pricers import (
    OPTION_KINDS,
    AsianPricer,
    BarrierPricer,
    EuropeanPricer,
    PathPricer,
    PricerState,
    PricingResult,
    make_pricer,
)
from .processes import ElasticityProcess, GeometricProcess, ProcessParameters, StochasticProcess
from .random_sources import (
    BoxMullerSource,
    MersenneNormalSource,
    PolarMarsagliaSource,
    RandomSource,
    make_source,
)
from .schemes import (
    DiscretizationScheme,
    EulerScheme,
    MilsteinScheme,
    ModifiedPredictorCorrectorScheme,
    TimeMesh,
)
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "ProcessParameters",
    "StochasticProcess",
    "GeometricProcess",
    "ElasticityProcess",
    "TimeMesh",
    "DiscretizationScheme",
    "EulerScheme",
    "MilsteinScheme",
    "ModifiedPredictorCorrectorScheme",
    "RandomSource",
    "MersenneNormalSource",
    "BoxMullerSource",
    "PolarMarsagliaSource",
    "make_source",
    "CallPayoff",
    "PutPayoff",
    "ArithmeticAverage",
    "GeometricAverage",
    "UpAndIn",
    "UpAndOut",
    "DownAndIn",
    "DownAndOut",
    "discount_factor",
    "PricerState",
    "PricingResult",
    "PathPricer",
    "EuropeanPricer",
    "AsianPricer",
    "BarrierPricer",
    "make_pricer",
    "OPTION_KINDS",
    "MediatorState",
    "MonteCarloMediator",
    "ProcessKind",
    "SchemeKind",
    "SourceKind",
    "SimulationConfig",
    "SimulationParts",
    "build_parts",
    "default_parts",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
