"""Simplex and fBm noise built on OpenSimplex."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from opensimplex import OpenSimplex

from hydroterrain.rng import RngStream

NoiseFn = Callable[[float, float], float]


@dataclass(frozen=True)
class SimplexNoise:
    """Single-octave 2D simplex noise in [-1, 1]."""

    generator: OpenSimplex

    def __call__(self, x: float, y: float) -> float:
        return float(self.generator.noise2(x, y))

    def grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Evaluate on the lattice xs (columns) by ys (rows)."""

        return np.asarray(self.generator.noise2array(xs, ys), dtype=np.float64)


@dataclass(frozen=True)
class FbmNoise:
    """Fractal sum of independently seeded simplex octaves, normalized to [-1, 1]."""

    octaves: tuple[SimplexNoise, ...]
    persistence: float = 0.5
    lacunarity: float = 2.0
    frequency: float = 1.0

    def __call__(self, x: float, y: float) -> float:
        total = 0.0
        amplitude = 1.0
        freq = self.frequency
        max_value = 0.0
        for octave in self.octaves:
            total += octave(x * freq, y * freq) * amplitude
            max_value += amplitude
            amplitude *= self.persistence
            freq *= self.lacunarity
        return total / max_value

    def grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        total = np.zeros((ys.size, xs.size), dtype=np.float64)
        amplitude = 1.0
        freq = self.frequency
        max_value = 0.0
        for octave in self.octaves:
            total += octave.grid(xs * freq, ys * freq) * amplitude
            max_value += amplitude
            amplitude *= self.persistence
            freq *= self.lacunarity
        return total / max_value


def simplex_noise(stream: RngStream) -> SimplexNoise:
    return SimplexNoise(OpenSimplex(seed=stream.noise_seed()))


def fbm_noise(
    stream: RngStream,
    *,
    octaves: int = 4,
    persistence: float = 0.5,
    lacunarity: float = 2.0,
    frequency: float = 1.0,
) -> FbmNoise:
    """Build fBm noise with one derived seed per octave."""

    if octaves < 1:
        raise ValueError("octaves must be >= 1")
    layers = tuple(simplex_noise(stream.fork(f"octave{i}")) for i in range(octaves))
    return FbmNoise(layers, persistence, lacunarity, frequency)


def unipolar(value: float | np.ndarray) -> float | np.ndarray:
    """Map [-1, 1] noise into [0, 1]."""

    return (value + 1.0) * 0.5
