"""Tests for Extent and ExtentNormalizer.

Tests: Extent, ExtentNormalizer
Focus: bbox parsing, degree detection, CRS conversion, intersection
"""

import math

import pytest

from conftest import UTM33
from geoscene.core.extent import ExtentNormalizer
from geoscene.core.registry import ReferenceSystemRegistry
from geoscene.errors import ConfigurationError
from geoscene.model.extent import Extent


@pytest.fixture
def normalizer() -> ExtentNormalizer:
    return ExtentNormalizer(UTM33, ReferenceSystemRegistry())


class TestExtent:
    """Value object behavior."""

    def test_min_greater_than_max_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="must not exceed"):
            Extent(min_x=10.0, max_x=5.0, min_y=0.0, max_y=1.0)

    def test_derived_properties(self) -> None:
        extent = Extent(min_x=0.0, max_x=20.0, min_y=10.0, max_y=50.0)
        assert extent.width == 20.0
        assert extent.height == 40.0
        assert extent.center == (10.0, 30.0)
        assert extent.bounds == (0.0, 10.0, 20.0, 50.0)

    @pytest.mark.parametrize(
        "bbox,expected_crs",
        [
            ("400000,5650000,420000,5670000,EPSG:32633", UTM33),
            ("400000, 5650000, 420000, 5670000, epsg:32633", UTM33),
            ("13.70,51.03,13.78,51.07", None),
        ],
    )
    def test_from_bbox(self, bbox: str, expected_crs: str | None) -> None:
        extent = Extent.from_bbox(bbox)
        assert extent.reference_system == expected_crs
        assert extent.min_x < extent.max_x

    @pytest.mark.parametrize("bbox", ["1,2,3", "a,b,c,d", "1,2,3,4,EPSG:4326,extra"])
    def test_from_bbox_rejects_malformed(self, bbox: str) -> None:
        with pytest.raises(ConfigurationError):
            Extent.from_bbox(bbox)

    def test_from_dict(self) -> None:
        extent = Extent.from_dict({"min_x": -1, "max_x": 1, "min_y": 50, "max_y": 52, "reference_system": "epsg:4326"})
        assert extent.reference_system == "EPSG:4326"
        assert extent.looks_geographic()

    def test_from_dict_camel_case(self) -> None:
        extent = Extent.from_dict({"minX": 400000, "maxX": 420000, "minY": 5650000, "maxY": 5670000, "referenceSystem": UTM33})
        assert extent.bounds == (400000.0, 5650000.0, 420000.0, 5670000.0)
        assert extent.reference_system == UTM33

    @pytest.mark.parametrize(
        "data,match",
        [
            ({"min_x": 0, "max_x": 1, "min_y": 0}, "missing"),
            ({"min_x": 0, "max_x": "east", "min_y": 0, "max_y": 1}, "not numeric"),
            ({"min_x": 5, "max_x": 1, "min_y": 0, "max_y": 1}, "must not exceed"),
        ],
    )
    def test_from_dict_rejects_invalid(self, data: dict, match: str) -> None:
        with pytest.raises(ConfigurationError, match=match):
            Extent.from_dict(data)

    def test_projected_values_do_not_look_geographic(self) -> None:
        assert not Extent.from_bbox("400000,5650000,420000,5670000").looks_geographic()


class TestExtentNormalizer:
    """Conversion into the active CRS."""

    def test_degree_extent_is_converted(self, normalizer: ExtentNormalizer) -> None:
        """{-1, 1, 50, 52} without CRS is read as WGS84 and converted to UTM 33N."""
        extent = normalizer.normalize(Extent(min_x=-1.0, max_x=1.0, min_y=50.0, max_y=52.0))

        assert extent.reference_system == UTM33
        assert all(math.isfinite(b) for b in extent.bounds)
        assert extent.width > 1000.0
        # Far west of zone 33, so eastings are negative
        assert extent.max_x < 0.0
        assert 5_400_000 < extent.min_y < extent.max_y < 6_000_000

    def test_same_crs_passes_through(self, normalizer: ExtentNormalizer) -> None:
        extent = Extent.from_bbox("400000,5650000,420000,5670000,EPSG:32633")
        assert normalizer.normalize(extent) is extent

    def test_unlabelled_projected_values_are_taken_as_active(self, normalizer: ExtentNormalizer) -> None:
        extent = normalizer.normalize(Extent.from_bbox("400000,5650000,420000,5670000"))
        assert extent.reference_system == UTM33
        assert extent.bounds == (400000.0, 5650000.0, 420000.0, 5670000.0)

    def test_other_crs_is_transformed(self, normalizer: ExtentNormalizer) -> None:
        """ETRS89 / UTM 33N (EPSG:25833) differs from WGS84 UTM by well under a meter."""
        extent = normalizer.normalize(Extent.from_bbox("400000,5650000,420000,5670000,EPSG:25833"))
        assert extent.reference_system == UTM33
        assert extent.min_x == pytest.approx(400000.0, abs=5.0)
        assert extent.max_y == pytest.approx(5670000.0, abs=5.0)

    def test_unknown_source_crs_raises(self, normalizer: ExtentNormalizer) -> None:
        with pytest.raises(ConfigurationError):
            normalizer.normalize(Extent.from_bbox("0,0,1,1,EPSG:999999"))

    def test_to_geographic(self, normalizer: ExtentNormalizer) -> None:
        geo = normalizer.to_geographic(Extent.from_bbox("400000,5650000,420000,5670000,EPSG:32633"))
        assert geo.reference_system == "EPSG:4326"
        min_lon, min_lat, max_lon, max_lat = geo.bounds
        assert 13.5 < min_lon < 13.74 < max_lon < 14.0
        assert 50.9 < min_lat < 51.05 < max_lat < 51.3

    def test_intersection(self, normalizer: ExtentNormalizer) -> None:
        first = Extent.from_bbox("400000,5650000,420000,5670000,EPSG:32633")
        second = Extent.from_bbox("410000,5660000,430000,5680000,EPSG:32633")
        overlap = normalizer.intersection(first, second)
        assert overlap is not None
        assert overlap.bounds == (410000.0, 5660000.0, 420000.0, 5670000.0)

    def test_disjoint_intersection_is_none(self, normalizer: ExtentNormalizer) -> None:
        first = Extent.from_bbox("400000,5650000,420000,5670000,EPSG:32633")
        second = Extent.from_bbox("500000,5650000,520000,5670000,EPSG:32633")
        assert normalizer.intersection(first, second) is None
