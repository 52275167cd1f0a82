"""Gridded elevation field over world bounds."""

from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

from hydroterrain.geometry import Bounds


@dataclass(frozen=True)
class ElevationField:
    """Row-major elevation grid; row index follows +z, column index follows +x.

    Cell ``(row, col)`` covers the world rectangle starting at
    ``(min_x + col * cell_w, min_z + row * cell_h)``; its sample point is the
    cell centre.
    """

    width: int
    height: int
    bounds: Bounds
    data: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"field size must be positive, got {self.width}x{self.height}")
        self.bounds.validate()
        data = np.array(self.data, dtype=np.float64)
        if data.ndim == 1 and data.size == self.width * self.height:
            data = data.reshape((self.height, self.width))
        if data.shape != (self.height, self.width):
            raise ValueError(f"data shape {data.shape} does not match ({self.height}, {self.width})")
        data.flags.writeable = False
        object.__setattr__(self, "data", data)

    @classmethod
    def from_array(cls, data: np.ndarray, bounds: Bounds | None = None) -> "ElevationField":
        arr = np.asarray(data, dtype=np.float64)
        if arr.ndim != 2:
            raise ValueError("elevation data must be 2D")
        return cls(arr.shape[1], arr.shape[0], bounds or Bounds(), arr)

    @property
    def cell_w(self) -> float:
        return self.bounds.span_x / self.width

    @property
    def cell_h(self) -> float:
        return self.bounds.span_z / self.height

    def cell_center(self, row: int, col: int) -> tuple[float, float]:
        return (
            self.bounds.min_x + (col + 0.5) * self.cell_w,
            self.bounds.min_z + (row + 0.5) * self.cell_h,
        )

    def world_to_cell(self, x: float, z: float) -> tuple[int, int]:
        """Floor-map a world point to (row, col); may fall outside the grid."""

        return (
            math.floor((z - self.bounds.min_z) / self.cell_h),
            math.floor((x - self.bounds.min_x) / self.cell_w),
        )

    def in_grid(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def sample_nearest(self, x: float, z: float) -> float:
        """Value of the containing cell, 0 outside the grid."""

        row, col = self.world_to_cell(x, z)
        if not self.in_grid(row, col):
            return 0.0
        return float(self.data[row, col])

    def sample_bilinear(self, x: float, z: float) -> float:
        """Bilinear interpolation between cell centres, clamped at the border."""

        fx = (x - self.bounds.min_x) / self.cell_w - 0.5
        fz = (z - self.bounds.min_z) / self.cell_h - 0.5
        fx = min(max(fx, 0.0), self.width - 1.0)
        fz = min(max(fz, 0.0), self.height - 1.0)
        c0 = int(math.floor(fx))
        r0 = int(math.floor(fz))
        c1 = min(c0 + 1, self.width - 1)
        r1 = min(r0 + 1, self.height - 1)
        tx = fx - c0
        tz = fz - r0
        top = self.data[r0, c0] * (1.0 - tx) + self.data[r0, c1] * tx
        bottom = self.data[r1, c0] * (1.0 - tx) + self.data[r1, c1] * tx
        return float(top * (1.0 - tz) + bottom * tz)

    def cell_centers(self) -> tuple[np.ndarray, np.ndarray]:
        """World x per column and z per row."""

        xs = self.bounds.min_x + (np.arange(self.width, dtype=np.float64) + 0.5) * self.cell_w
        zs = self.bounds.min_z + (np.arange(self.height, dtype=np.float64) + 0.5) * self.cell_h
        return xs, zs

    def land_mask(self, sea_level: float) -> np.ndarray:
        return self.data > sea_level
