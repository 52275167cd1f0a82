"""Scalar math helpers and world-space bounds."""

from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned world rectangle on the x/z plane."""

    min_x: float = -1.0
    max_x: float = 1.0
    min_z: float = -1.0
    max_z: float = 1.0

    def validate(self) -> None:
        values = (self.min_x, self.max_x, self.min_z, self.max_z)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"bounds must be finite, got {values}")
        if self.max_x <= self.min_x or self.max_z <= self.min_z:
            raise ValueError(
                f"bounds must have positive extent, got x=[{self.min_x}, {self.max_x}] z=[{self.min_z}, {self.max_z}]"
            )

    @property
    def span_x(self) -> float:
        return self.max_x - self.min_x

    @property
    def span_z(self) -> float:
        return self.max_z - self.min_z

    def contains(self, x: float, z: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z

    def to_dict(self) -> dict[str, float]:
        return {"min_x": self.min_x, "max_x": self.max_x, "min_z": self.min_z, "max_z": self.max_z}

    @classmethod
    def from_dict(cls, payload: dict[str, float]) -> "Bounds":
        bounds = cls(
            float(payload["min_x"]),
            float(payload["max_x"]),
            float(payload["min_z"]),
            float(payload["max_z"]),
        )
        bounds.validate()
        return bounds


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return lo if value < lo else hi if value > hi else value


def smoothstep(edge0: float, edge1: float, x: float) -> float:
    """Hermite step, clamped; works for reversed edges."""

    if edge0 == edge1:
        return 0.0 if x < edge0 else 1.0
    t = clamp((x - edge0) / (edge1 - edge0))
    return t * t * (3.0 - 2.0 * t)


def distance(x0: float, z0: float, x1: float, z1: float) -> float:
    return math.hypot(x1 - x0, z1 - z0)


def normalize(value: float, lo: float, hi: float) -> float:
    if hi == lo:
        return 0.0
    return (value - lo) / (hi - lo)


def remap(value: float, in_lo: float, in_hi: float, out_lo: float, out_hi: float) -> float:
    return lerp(out_lo, out_hi, normalize(value, in_lo, in_hi))


def point_to_segment_distance(
    px: float,
    pz: float,
    ax: float,
    az: float,
    bx: float,
    bz: float,
) -> tuple[float, float]:
    """Return (distance, t) from a point to segment a-b, t in [0, 1]."""

    dx = bx - ax
    dz = bz - az
    len_sq = dx * dx + dz * dz
    if len_sq == 0.0:
        return math.hypot(px - ax, pz - az), 0.0
    t = clamp(((px - ax) * dx + (pz - az) * dz) / len_sq)
    cx = ax + t * dx
    cz = az + t * dz
    return math.hypot(px - cx, pz - cz), t
