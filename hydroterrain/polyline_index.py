"""Grid index over attributed polylines for radius queries."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any, Sequence

from hydroterrain.geometry import Bounds, point_to_segment_distance

Point = tuple[float, float]


@dataclass(frozen=True)
class IndexedPolyline:
    """Polyline with an identifier and optional per-vertex attribute dicts."""

    id: str
    points: tuple[Point, ...]
    attributes: tuple[dict[str, Any], ...] | None = None
    closed: bool = False


@dataclass(frozen=True)
class IndexedSegment:
    polyline_id: str
    segment_index: int
    p0: Point
    p1: Point
    attr_start: dict[str, Any] | None
    attr_end: dict[str, Any] | None


@dataclass(frozen=True)
class SegmentHit:
    segment: IndexedSegment
    distance: float
    t: float
    closest: Point


@dataclass(frozen=True)
class PolylineIndex:
    cell_size: float
    bounds: Bounds
    grid_width: int
    grid_height: int
    cells: tuple[tuple[int, ...], ...]
    segments: tuple[IndexedSegment, ...] = field(default_factory=tuple)

    @property
    def segment_count(self) -> int:
        return len(self.segments)


def distance_to_segment(p0: Point, p1: Point, query: Point) -> tuple[float, float, Point]:
    """Return (distance, t, closest point) from query to segment p0-p1."""

    dist, t = point_to_segment_distance(query[0], query[1], p0[0], p0[1], p1[0], p1[1])
    closest = (p0[0] + t * (p1[0] - p0[0]), p0[1] + t * (p1[1] - p0[1]))
    return dist, t, closest


def create_polyline_index(
    polylines: Sequence[IndexedPolyline] | None,
    *,
    bounds: Bounds = Bounds(),
    cell_size: float | None = None,
) -> PolylineIndex:
    """Bucket every segment into each cell its AABB overlaps."""

    size = cell_size or max(bounds.span_x, bounds.span_z) / 20.0
    grid_width = max(1, math.ceil(bounds.span_x / size))
    grid_height = max(1, math.ceil(bounds.span_z / size))
    buckets: list[list[int]] = [[] for _ in range(grid_width * grid_height)]
    segments: list[IndexedSegment] = []

    for polyline in polylines or ():
        pts = polyline.points
        if len(pts) < 2:
            continue
        attrs = polyline.attributes
        for si in range(len(pts) - 1):
            a = pts[si]
            b = pts[si + 1]
            seg_id = len(segments)
            segments.append(
                IndexedSegment(
                    polyline_id=polyline.id,
                    segment_index=si,
                    p0=(a[0], a[1]),
                    p1=(b[0], b[1]),
                    attr_start=attrs[si] if attrs else None,
                    attr_end=attrs[si + 1] if attrs else None,
                )
            )
            c0 = max(0, math.floor((min(a[0], b[0]) - bounds.min_x) / size))
            c1 = min(grid_width - 1, math.floor((max(a[0], b[0]) - bounds.min_x) / size))
            r0 = max(0, math.floor((min(a[1], b[1]) - bounds.min_z) / size))
            r1 = min(grid_height - 1, math.floor((max(a[1], b[1]) - bounds.min_z) / size))
            for r in range(r0, r1 + 1):
                for c in range(c0, c1 + 1):
                    buckets[r * grid_width + c].append(seg_id)

    return PolylineIndex(
        cell_size=size,
        bounds=bounds,
        grid_width=grid_width,
        grid_height=grid_height,
        cells=tuple(tuple(b) for b in buckets),
        segments=tuple(segments),
    )


def query_nearby_segments(index: PolylineIndex, x: float, z: float, radius: float) -> list[SegmentHit]:
    """Segments within radius of (x, z), nearest first."""

    b = index.bounds
    c0 = max(0, math.floor((x - radius - b.min_x) / index.cell_size))
    c1 = min(index.grid_width - 1, math.floor((x + radius - b.min_x) / index.cell_size))
    r0 = max(0, math.floor((z - radius - b.min_z) / index.cell_size))
    r1 = min(index.grid_height - 1, math.floor((z + radius - b.min_z) / index.cell_size))

    seen: set[int] = set()
    hits: list[SegmentHit] = []
    for r in range(r0, r1 + 1):
        for c in range(c0, c1 + 1):
            for seg_id in index.cells[r * index.grid_width + c]:
                if seg_id in seen:
                    continue
                seen.add(seg_id)
                seg = index.segments[seg_id]
                dist, t, closest = distance_to_segment(seg.p0, seg.p1, (x, z))
                if dist <= radius:
                    hits.append(SegmentHit(seg, dist, t, closest))

    hits.sort(key=lambda hit: hit.distance)
    return hits
