r"""
mcpricer.random_sources
=======================

Sources of standard normal variates.

Classes
    :class:`RandomSource` — Abstract, explicitly stateful normal generator
    :class:`MersenneNormalSource` — Mersenne Twister engine + library normal transform
    :class:`BoxMullerSource` — Box–Muller transform of two uniforms
    :class:`PolarMarsagliaSource` — Marsaglia polar rejection method

Functions
    :func:`make_source` — Build a source from its variant name

Each source owns its generator, seeded through a
:class:`numpy.random.SeedSequence`. :meth:`RandomSource.spawn` derives
independent children for parallel workers; one instance must never be
drawn from by two workers at once.

Example
-------
>>> src = BoxMullerSource(seed=42)
>>> z = src.next()
>>> zs = src.normals(1_000)
>>> children = src.spawn(4)
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Union

import numpy as np

__all__ = [
    "RandomSource",
    "MersenneNormalSource",
    "BoxMullerSource",
    "PolarMarsagliaSource",
    "make_source",
    "SOURCE_KINDS",
]

SeedLike = Union[int, np.random.SeedSequence, None]


class RandomSource(ABC):
    r"""
    Abstract infinite sequence of standard normal variates.

    Parameters
    ----------
    seed : int, SeedSequence or None
        Entropy for the generator. :data:`None` draws fresh entropy from the OS.

    Notes
    -----
    Sources are iterators: ``next(source)`` and ``for z in source`` both draw
    from the same, never-restarting stream.
    """

    def __init__(self, seed: SeedLike = None):
        if isinstance(seed, np.random.SeedSequence):
            self.seed_seq = seed
        else:
            self.seed_seq = np.random.SeedSequence(seed)
        self._gen = self._make_generator(self.seed_seq)

    def _make_generator(self, seed_seq: np.random.SeedSequence) -> np.random.Generator:
        return np.random.default_rng(seed_seq)

    @abstractmethod
    def next(self) -> float:
        """Draw one standard normal variate."""

    @abstractmethod
    def normals(self, size: int) -> np.ndarray:
        """Draw ``size`` standard normal variates as a 1D array."""

    def next_standard_normal(self) -> float:
        """Alias of :meth:`next`."""
        return self.next()

    def __iter__(self):
        return self

    def __next__(self) -> float:
        return self.next()

    def _child(self, seed_seq: np.random.SeedSequence) -> "RandomSource":
        """New source of the same variant on ``seed_seq``."""
        return type(self)(seed=seed_seq)

    def spawn(self, n: int) -> list["RandomSource"]:
        r"""
        Derive ``n`` statistically independent sources of the same variant.

        Parameters
        ----------
        n : int
            Number of children.

        Returns
        -------
        list of RandomSource

        Notes
        -----
        Uses :meth:`numpy.random.SeedSequence.spawn`, so the children are
        deterministic for a seeded parent and the same spawn order.
        """
        return [self._child(ss) for ss in self.seed_seq.spawn(n)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entropy={self.seed_seq.entropy})"


class MersenneNormalSource(RandomSource):
    r"""
    Normal variates from a Mersenne Twister (MT19937) engine.

    Parameters
    ----------
    mean : float, default 0.0
        Mean of the distribution.
    variance : float, default 1.0
        Variance of the distribution, non-negative.
    seed : int, SeedSequence or None
        Generator entropy.
    """

    def __init__(self, mean: float = 0.0, variance: float = 1.0, seed: SeedLike = None):
        if variance < 0.0:
            raise ValueError("variance must be non-negative")
        self.mean = float(mean)
        self.variance = float(variance)
        self._scale = math.sqrt(self.variance)
        super().__init__(seed)

    def _make_generator(self, seed_seq):
        return np.random.Generator(np.random.MT19937(seed_seq))

    def _child(self, seed_seq):
        return MersenneNormalSource(self.mean, self.variance, seed=seed_seq)

    def next(self) -> float:
        return float(self._gen.normal(self.mean, self._scale))

    def normals(self, size: int) -> np.ndarray:
        return self._gen.normal(self.mean, self._scale, size)


class BoxMullerSource(RandomSource):
    r"""
    Box–Muller transform.

    With independent :math:`R, \Phi \sim U(0, 1]`,

    .. math::

       Z = \sqrt{-2\ln R}\,\cos(2\pi\Phi) \sim \mathcal{N}(0, 1).
    """

    def next(self) -> float:
        # 1 - U(0,1] keeps log(r) finite.
        r = 1.0 - self._gen.random()
        phi = 1.0 - self._gen.random()
        return math.sqrt(-2.0 * math.log(r)) * math.cos(2.0 * math.pi * phi)

    def normals(self, size: int) -> np.ndarray:
        r = 1.0 - self._gen.random(size)
        phi = 1.0 - self._gen.random(size)
        return np.sqrt(-2.0 * np.log(r)) * np.cos(2.0 * np.pi * phi)


class PolarMarsagliaSource(RandomSource):
    r"""
    Marsaglia polar method.

    Draw :math:`V_1, V_2 \sim U(-1, 1)` until
    :math:`0 < W = V_1^2 + V_2^2 \le 1`, then return

    .. math::

       Z = V_1 \sqrt{-2\ln W / W}.

    About :math:`1 - \pi/4 \approx 21\%` of the candidate pairs are rejected.
    """

    def next(self) -> float:
        while True:
            v1 = 2.0 * self._gen.random() - 1.0
            v2 = 2.0 * self._gen.random() - 1.0
            w = v1 * v1 + v2 * v2
            if 0.0 < w <= 1.0:
                return v1 * math.sqrt(-2.0 * math.log(w) / w)

    def normals(self, size: int) -> np.ndarray:
        out = np.empty(size, dtype=float)
        filled = 0
        while filled < size:
            need = size - filled
            # Oversample by the inverse acceptance rate 4/pi.
            v = 2.0 * self._gen.random((need * 4 // 3 + 8, 2)) - 1.0
            w = np.einsum("ij,ij->i", v, v)
            ok = (w > 0.0) & (w <= 1.0)
            v1, w = v[ok, 0], w[ok]
            z = v1 * np.sqrt(-2.0 * np.log(w) / w)
            take = min(z.size, need)
            out[filled:filled + take] = z[:take]
            filled += take
        return out


_SOURCES = {
    "mersenne": MersenneNormalSource,
    "box_muller": BoxMullerSource,
    "polar_marsaglia": PolarMarsagliaSource,
}

SOURCE_KINDS = tuple(_SOURCES)


def make_source(
    kind: str,
    *,
    seed: SeedLike = None,
    mean: float = 0.0,
    variance: float = 1.0,
) -> RandomSource:
    r"""
    Build a random source from its variant name.

    Parameters
    ----------
    kind : {"mersenne", "box_muller", "polar_marsaglia"}
        Variant tag.
    seed : int, SeedSequence or None
        Generator entropy.
    mean, variance : float
        Distribution parameters, used by the Mersenne variant only.

    Returns
    -------
    RandomSource

    Raises
    ------
    ValueError
        If ``kind`` is unknown.
    """
    kind = getattr(kind, "value", kind)
    if kind not in _SOURCES:
        raise ValueError(f"kind must be one of {SOURCE_KINDS}, got '{kind}'")
    if kind == "mersenne":
        return MersenneNormalSource(mean, variance, seed=seed)
    return _SOURCES[kind](seed=seed)
