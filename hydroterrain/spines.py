"""Mountain spine graph consumed by elevation and hydrology."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence


@dataclass(frozen=True)
class SpineVertex:
    x: float
    z: float
    elevation: float
    influence: float


@dataclass(frozen=True)
class SpineSegment:
    start: int
    end: int


@dataclass(frozen=True)
class Spines:
    """Vertices plus index pairs joining them into ridge segments."""

    vertices: tuple[SpineVertex, ...] = field(default_factory=tuple)
    segments: tuple[SpineSegment, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        n = len(self.vertices)
        for seg in self.segments:
            if not (0 <= seg.start < n and 0 <= seg.end < n):
                raise ValueError(f"spine segment {seg} references a missing vertex (have {n})")
        for v in self.vertices:
            if v.influence <= 0:
                raise ValueError(f"spine vertex influence must be positive, got {v.influence}")

    def segment_endpoints(self) -> list[tuple[SpineVertex, SpineVertex]]:
        return [(self.vertices[s.start], self.vertices[s.end]) for s in self.segments]

    def to_dict(self) -> dict[str, Any]:
        return {
            "vertices": [
                {"x": v.x, "z": v.z, "elevation": v.elevation, "influence": v.influence}
                for v in self.vertices
            ],
            "segments": [{"from": s.start, "to": s.end} for s in self.segments],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Spines":
        try:
            vertices = tuple(
                SpineVertex(float(v["x"]), float(v["z"]), float(v["elevation"]), float(v["influence"]))
                for v in payload.get("vertices", ())
            )
            segments = tuple(SpineSegment(int(s["from"]), int(s["to"])) for s in payload.get("segments", ()))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed spine payload: {exc}") from exc
        return cls(vertices, segments)


def straight_ridge(
    start: tuple[float, float],
    end: tuple[float, float],
    *,
    elevations: Sequence[float] = (0.8, 0.6),
    influence: float = 0.45,
) -> Spines:
    """Evenly spaced vertices from start to end, chained into one ridge."""

    count = len(elevations)
    if count < 2:
        raise ValueError("a ridge needs at least two vertices")
    vertices = []
    for i, elevation in enumerate(elevations):
        t = i / (count - 1)
        vertices.append(
            SpineVertex(
                start[0] + (end[0] - start[0]) * t,
                start[1] + (end[1] - start[1]) * t,
                float(elevation),
                influence,
            )
        )
    segments = tuple(SpineSegment(i, i + 1) for i in range(count - 1))
    return Spines(tuple(vertices), segments)
