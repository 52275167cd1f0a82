"""Planar polygon utilities on (x, z) point tuples."""

from __future__ import annotations

from typing import Sequence

from hydroterrain.geometry import Bounds

Point = tuple[float, float]

_PARALLEL_EPS = 1e-10


def point_in_polygon(x: float, z: float, polygon: Sequence[Point]) -> bool:
    """Even-odd ray cast; open or closed rings are both accepted."""

    n = len(polygon)
    if n < 3:
        return False
    inside = False
    j = n - 1
    for i in range(n):
        xi, zi = polygon[i]
        xj, zj = polygon[j]
        if (zi > z) != (zj > z) and x < (xj - xi) * (z - zi) / (zj - zi) + xi:
            inside = not inside
        j = i
    return inside


def side_of_line(point: Point, line_point: Point, line_dir: Point) -> float:
    """Positive left of the directed line, negative right, zero on it."""

    dx = point[0] - line_point[0]
    dz = point[1] - line_point[1]
    return line_dir[0] * dz - line_dir[1] * dx


def line_intersection(p1: Point, p2: Point, p3: Point, p4: Point) -> tuple[float, float, float] | None:
    """Segment/segment intersection as (x, z, t along p1-p2), or None."""

    d1x = p2[0] - p1[0]
    d1z = p2[1] - p1[1]
    d2x = p4[0] - p3[0]
    d2z = p4[1] - p3[1]

    denom = d1x * d2z - d1z * d2x
    if abs(denom) < _PARALLEL_EPS:
        return None

    ox = p3[0] - p1[0]
    oz = p3[1] - p1[1]
    t = (ox * d2z - oz * d2x) / denom
    u = (ox * d1z - oz * d1x) / denom
    if t < 0.0 or t > 1.0 or u < 0.0 or u > 1.0:
        return None
    return p1[0] + t * d1x, p1[1] + t * d1z, t


def segment_line_intersection(
    p1: Point,
    p2: Point,
    line_point: Point,
    line_dir: Point,
) -> tuple[float, float, float] | None:
    """Intersection of segment p1-p2 with an infinite line, or None."""

    d1x = p2[0] - p1[0]
    d1z = p2[1] - p1[1]
    denom = d1x * line_dir[1] - d1z * line_dir[0]
    if abs(denom) < _PARALLEL_EPS:
        return None

    t = ((line_point[0] - p1[0]) * line_dir[1] - (line_point[1] - p1[1]) * line_dir[0]) / denom
    if t < 0.0 or t > 1.0:
        return None
    return p1[0] + t * d1x, p1[1] + t * d1z, t


def split_polygon_by_line(
    polygon: Sequence[Point],
    line_point: Point,
    line_dir: Point,
) -> tuple[list[Point], list[Point]]:
    """Split a polygon by an infinite line into (left, right) vertex lists."""

    if len(polygon) < 3:
        return [], []

    left: list[Point] = []
    right: list[Point] = []
    n = len(polygon)
    for i in range(n):
        curr = polygon[i]
        nxt = polygon[(i + 1) % n]
        curr_side = side_of_line(curr, line_point, line_dir)
        next_side = side_of_line(nxt, line_point, line_dir)

        if curr_side >= 0.0:
            left.append((curr[0], curr[1]))
        if curr_side <= 0.0:
            right.append((curr[0], curr[1]))

        if (curr_side > 0.0 and next_side < 0.0) or (curr_side < 0.0 and next_side > 0.0):
            hit = segment_line_intersection(curr, nxt, line_point, line_dir)
            if hit is not None:
                left.append((hit[0], hit[1]))
                right.append((hit[0], hit[1]))
    return left, right


def polygon_centroid(polygon: Sequence[Point]) -> Point:
    """Vertex average; (0, 0) for an empty polygon."""

    if not polygon:
        return 0.0, 0.0
    sx = sum(p[0] for p in polygon)
    sz = sum(p[1] for p in polygon)
    return sx / len(polygon), sz / len(polygon)


def polygon_area(polygon: Sequence[Point]) -> float:
    """Signed shoelace area, positive for counter-clockwise rings."""

    n = len(polygon)
    if n < 3:
        return 0.0
    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += polygon[i][0] * polygon[j][1] - polygon[j][0] * polygon[i][1]
    return area / 2.0


def is_clockwise(polygon: Sequence[Point]) -> bool:
    return polygon_area(polygon) < 0.0


def clip_polygon_to_bounds(polygon: Sequence[Point], bounds: Bounds) -> list[Point]:
    """Sutherland-Hodgman clip against the four bounds edges."""

    if len(polygon) < 3:
        return []

    # Each direction keeps the interior on the left (side >= 0).
    edges = (
        ((bounds.min_x, 0.0), (0.0, -1.0)),
        ((bounds.max_x, 0.0), (0.0, 1.0)),
        ((0.0, bounds.min_z), (1.0, 0.0)),
        ((0.0, bounds.max_z), (-1.0, 0.0)),
    )

    output: list[Point] = [(p[0], p[1]) for p in polygon]
    for edge_point, edge_dir in edges:
        if not output:
            break
        source = output
        output = []
        for i, curr in enumerate(source):
            nxt = source[(i + 1) % len(source)]
            curr_inside = side_of_line(curr, edge_point, edge_dir) >= 0.0
            next_inside = side_of_line(nxt, edge_point, edge_dir) >= 0.0
            if curr_inside:
                output.append(curr)
                if not next_inside:
                    hit = segment_line_intersection(curr, nxt, edge_point, edge_dir)
                    if hit is not None:
                        output.append((hit[0], hit[1]))
            elif next_inside:
                hit = segment_line_intersection(curr, nxt, edge_point, edge_dir)
                if hit is not None:
                    output.append((hit[0], hit[1]))
    return output
