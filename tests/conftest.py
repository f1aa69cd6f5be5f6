import multiprocessing as mp

import numpy as np
import pytest

from mcpricer import GeometricProcess, ProcessParameters, RandomSource


class ConstantSource(RandomSource):
    """Source that always returns the same draw."""

    def __init__(self, value: float = 0.0, seed=None):
        self.value = float(value)
        super().__init__(seed)

    def _child(self, seed_seq):
        return ConstantSource(self.value, seed=seed_seq)

    def next(self):
        return self.value

    def normals(self, size):
        return np.full(size, self.value)


class ZeroDiffusionProcess(GeometricProcess):
    """Geometric drift with the noise switched off."""

    def diffusion(self, x):
        return 0.0 * x

    def diffusion_derivative(self, x):
        return 0.0 * x


class RecordingPricer:
    """Subscriber that counts calls and keeps copies of the paths it sees."""

    def __init__(self, keep_paths: bool = True):
        self.keep_paths = keep_paths
        self.n_updates = 0
        self.n_finalize = 0
        self.paths = []
        self.writeable = []

    def process_path(self, path):
        self.n_updates += 1
        self.writeable.append(path.flags.writeable)
        if self.keep_paths:
            self.paths.append(np.array(path))

    def finalize(self, confidence=0.95, ci_method="auto", execution_time=None):
        self.n_finalize += 1
        return self.n_updates


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def textbook_params():
    """Market data of the classic 3-month call example."""
    return ProcessParameters(rate=0.08, volatility=0.3, carry=0.0, initial_value=60.0, expiry=0.25)


@pytest.fixture
def unit_params():
    """Driftless unit-horizon market data."""
    return ProcessParameters(rate=0.0, volatility=0.2, carry=0.0, initial_value=100.0, expiry=1.0)


@pytest.fixture
def constant_source():
    """Factory for constant-draw sources."""
    return ConstantSource


@pytest.fixture
def recording_pricer():
    """Provide a fresh recording subscriber."""
    return RecordingPricer()
