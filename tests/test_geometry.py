"""Tests for bounding box, date range and polygon helpers"""
from datetime import date

import pytest

from providers.geometry import (
    BoundingBox,
    DateRange,
    day_end,
    day_start,
    nominatim_bbox_to_bbox,
    parse_date,
    polygon_from_bbox,
)


class TestPolygonFromBbox:

    @pytest.mark.parametrize("values", [
        [-96.6397, 40.3755, -90.1401, 43.5012],
        [13.4, 52.5, 13.5, 52.6],
        [-180.0, -90.0, 180.0, 90.0],
        [10.0, 10.0, 10.0, 10.0],
    ])
    def test_closed_five_point_ring(self, values):
        polygon = polygon_from_bbox(BoundingBox.from_sequence(values))
        ring = polygon["coordinates"][0]

        assert polygon["type"] == "Polygon"
        assert len(ring) == 5
        assert ring[0] == ring[-1]

    def test_corners_counter_clockwise_from_south_west(self):
        min_lon, min_lat, max_lon, max_lat = -96.6, 40.3, -90.1, 43.5
        ring = polygon_from_bbox(BoundingBox(min_lon, min_lat, max_lon, max_lat))["coordinates"][0]

        assert ring[:4] == [
            [min_lon, min_lat],
            [max_lon, min_lat],
            [max_lon, max_lat],
            [min_lon, max_lat],
        ]
        # shoelace: positive area means counter-clockwise
        area = sum(x1 * y2 - x2 * y1 for (x1, y1), (x2, y2) in zip(ring, ring[1:]))
        assert area > 0


class TestNominatimNormalization:

    def test_reorders_to_canonical(self):
        # Nominatim: [min_lat, max_lat, min_lon, max_lon] as strings
        bbox = nominatim_bbox_to_bbox(["40.3755", "43.5012", "-96.6397", "-90.1401"])
        assert bbox.as_list() == [-96.6397, 40.3755, -90.1401, 43.5012]

    @pytest.mark.parametrize("raw", [
        ["40.0", "43.0", "-96.0", "-90.0"],
        ["43.0", "40.0", "-90.0", "-96.0"],
        ["-10.5", "-10.5", "20", "20"],
    ])
    def test_min_not_greater_than_max(self, raw):
        bbox = nominatim_bbox_to_bbox(raw)
        assert bbox.min_lon <= bbox.max_lon
        assert bbox.min_lat <= bbox.max_lat

    @pytest.mark.parametrize("raw", [
        ["40.0", "43.0", "-96.0"],
        ["north", "43.0", "-96.0", "-90.0"],
        None,
    ])
    def test_rejects_malformed(self, raw):
        with pytest.raises(ValueError):
            nominatim_bbox_to_bbox(raw)


class TestBoundingBox:

    def test_from_sequence(self):
        bbox = BoundingBox.from_sequence([1, 2, 3, 4])
        assert list(bbox) == [1.0, 2.0, 3.0, 4.0]

    @pytest.mark.parametrize("values", [
        [1, 2, 3],
        [1, 2, 3, 4, 5],
        [1, "2", 3, 4],
        [True, 2, 3, 4],
        [3, 2, 1, 4],
        [1, 4, 3, 2],
        [-200, 0, 10, 10],
        [0, -95, 10, 10],
        [0, 0, float("nan"), 10],
    ])
    def test_rejects_invalid(self, values):
        with pytest.raises(ValueError):
            BoundingBox.from_sequence(values)

    def test_is_immutable(self):
        bbox = BoundingBox(1, 2, 3, 4)
        with pytest.raises(AttributeError):
            bbox.min_lon = 0


class TestDates:

    def test_range_interval_covers_whole_days(self):
        interval = DateRange(date(2024, 6, 1), date(2024, 6, 30)).to_interval()
        assert interval == "2024-06-01T00:00:00Z/2024-06-30T23:59:59Z"

    def test_range_rejects_reversed(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 7, 1), date(2024, 6, 1))

    def test_day_bounds_keep_explicit_times(self):
        assert day_start("2024-07-28") == "2024-07-28T00:00:00Z"
        assert day_end(date(2024, 7, 28)) == "2024-07-28T23:59:59Z"
        assert day_start("2024-07-28T10:00:00Z") == "2024-07-28T10:00:00Z"

    def test_parse_date_takes_date_part_of_timestamp(self):
        assert parse_date("2024-07-28T17:05:12.024Z") == date(2024, 7, 28)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("last week")
