from __future__ import annotations

import math

import pytest

from hydroterrain.config import InfluenceConfig
from hydroterrain.metadata import Road, RoadWaypoint, create_continent_metadata, road_to_polyline
from hydroterrain.queries import query_all_features, query_coastline, query_river, query_road
from hydroterrain.rivers import COAST, River, RiverVertex

SQUARE_ISLAND = [(-0.5, -0.5), (0.5, -0.5), (0.5, 0.5), (-0.5, 0.5), (-0.5, -0.5)]
INFLUENCE = InfluenceConfig(texture_resolution=128)


def _river() -> River:
    return River(
        id="river_0",
        vertices=(
            RiverVertex(-0.5, -0.2, 0.3, 1.0, 0.01),
            RiverVertex(0.5, -0.2, 0.2, 3.0, 0.03),
        ),
        termination=COAST,
    )


def _road(road_id: str, road_type: str, z: float, width: float, elevation: float) -> Road:
    return Road(
        id=road_id,
        type=road_type,
        width=width,
        waypoints=(RoadWaypoint(-0.4, z, elevation), RoadWaypoint(0.4, z, elevation)),
    )


def _metadata(roads: tuple[Road, ...] = ()):
    return create_continent_metadata(
        coastline_polylines=[SQUARE_ISLAND],
        rivers=[_river()],
        roads=roads,
        sea_level=0.1,
        influence=INFLUENCE,
    )


def test_metadata_bundles_polylines_and_textures() -> None:
    roads = (_road("road_0", "trail", 0.0, 0.01, 0.3),)
    metadata = _metadata(roads)

    assert [pl.id for pl in metadata.coastlines] == ["coastline_0"]
    assert metadata.coastlines[0].closed
    assert metadata.rivers[0].attributes[1]["width"] == pytest.approx(0.03)
    assert metadata.road_types == {"road_0": "trail"}
    for texture in (metadata.coastline_influence, metadata.river_influence, metadata.road_influence):
        assert texture.shape == (128, 128)
    assert not create_continent_metadata(influence=INFLUENCE).road_influence.any()


def test_road_polyline_grade_looks_backward_at_the_end() -> None:
    road = Road(
        id="road_1",
        type="road",
        width=0.01,
        waypoints=(RoadWaypoint(0.0, 0.0, 0.1), RoadWaypoint(1.0, 0.0, 0.2, road_elevation=0.25)),
    )
    polyline = road_to_polyline(road)

    assert [a["grade"] for a in polyline.attributes] == pytest.approx([0.1, 0.1])
    assert [a["elevation"] for a in polyline.attributes] == pytest.approx([0.1, 0.25])


def test_coastline_query_signs_distance_and_points_normal_landward() -> None:
    metadata = _metadata()

    inland = query_coastline(metadata, 0.49, 0.0)
    assert inland.influence > 0.0
    assert inland.distance_to_shore == pytest.approx(0.01)
    assert inland.shore_normal == pytest.approx((-1.0, 0.0))
    assert inland.shore_elevation == pytest.approx(0.1)

    offshore = query_coastline(metadata, 0.51, 0.0)
    assert offshore.influence > 0.0
    assert offshore.distance_to_shore == pytest.approx(-0.01)
    assert offshore.shore_normal == pytest.approx((-1.0, 0.0))


def test_coastline_query_rejects_far_points_from_texture() -> None:
    metadata = _metadata()

    assert query_coastline(metadata, 0.0, 0.0).distance_to_shore == math.inf
    assert query_coastline(metadata, 0.0, 0.0).influence == 0.0
    assert query_coastline(metadata, 0.95, 0.95).distance_to_shore == -math.inf


def test_river_query_interpolates_and_reports_bank() -> None:
    metadata = _metadata()

    bank = query_river(metadata, 0.0, -0.18)
    assert bank.influence == pytest.approx(1.0)
    assert bank.distance_to_center == pytest.approx(0.02)
    assert bank.width == pytest.approx(0.02)
    assert bank.elevation == pytest.approx(0.25)
    assert bank.flow_direction == pytest.approx((1.0, 0.0))
    assert bank.bank_side == "left"
    assert query_river(metadata, 0.0, -0.22).bank_side == "right"

    channel = query_river(metadata, 0.0, -0.2)
    assert channel.distance_to_center == pytest.approx(0.0)
    assert channel.bank_side is None

    assert query_river(metadata, 0.0, 0.8).distance_to_center == math.inf


def test_road_query_prefers_higher_class_road() -> None:
    trail = _road("road_0", "trail", 0.0, 0.01, 0.3)
    highway = _road("road_1", "highway", 0.02, 0.02, 0.4)

    both = query_road(_metadata((trail, highway)), 0.0, 0.005)
    assert both.road_type == "highway"
    assert both.distance_to_center == pytest.approx(0.015)
    assert both.width == pytest.approx(0.02)
    assert both.surface_elevation == pytest.approx(0.4)

    only_trail = query_road(_metadata((trail,)), 0.0, 0.005)
    assert only_trail.road_type == "trail"
    assert only_trail.distance_to_center == pytest.approx(0.005)
    assert query_road(_metadata((trail,)), 0.0, 0.8).road_type is None


def test_query_all_features_drops_absent_features() -> None:
    metadata = _metadata((_road("road_0", "path", 0.3, 0.01, 0.3),))

    far = query_all_features(metadata, 0.95, 0.95)
    assert far.coastline is None
    assert far.river is None
    assert far.road is None

    near_river = query_all_features(metadata, 0.0, -0.2)
    assert near_river.river is not None
    assert near_river.coastline is None
