"""Tests for TileId and Area."""

import pytest

from aerialmap.geo.mercator import TileCoordinate
from aerialmap.tiles.area import Area, TileId

SOURCE = 'https://tiles.example.com/{z}/{x}/{y}.png'


def tile(x, y, zoom=10, source=SOURCE):
    return TileId(source, TileCoordinate(x, y), zoom)


class TestTileId:
    """Tests for TileId identity."""

    def test_structural_equality(self):
        """Should compare and hash by value."""
        assert tile(5, 5) == tile(5, 5)
        assert hash(tile(5, 5)) == hash(tile(5, 5))

    def test_source_is_part_of_identity(self):
        """Should differ between sources."""
        assert tile(5, 5) != tile(5, 5, source='https://other.example.com/{z}/{x}/{y}.png')

    def test_zoom_is_part_of_identity(self):
        """Should differ between zoom levels."""
        assert tile(5, 5, zoom=10) != tile(5, 5, zoom=11)

    def test_usable_as_dict_key(self):
        """Should work as a dict key."""
        d = {tile(1, 2): 'a'}
        assert d[tile(1, 2)] == 'a'

    def test_with_source_keeps_coordinates(self):
        """Should keep coordinates and zoom."""
        moved = tile(3, 4).with_source('other/{z}/{x}/{y}')
        assert moved.coord == TileCoordinate(3, 4)
        assert moved.zoom == 10
        assert moved.source_key == 'other/{z}/{x}/{y}'

    def test_str(self):
        """Should format as zoom/x/y."""
        assert str(tile(3, 4, zoom=7)) == '7/3/4'


class TestArea:
    """Tests for Area construction and iteration."""

    def test_bounds_blocks_1(self):
        """Should span one tile on each side."""
        area = Area(tile(5, 5), 1)
        assert area.top_left == TileCoordinate(4, 4)
        assert area.bottom_right == TileCoordinate(6, 6)
        assert len(area) == 9

    def test_blocks_0_is_single_tile(self):
        """Should contain only the center tile."""
        area = Area(tile(5, 5), 0)
        assert area.top_left == area.bottom_right == TileCoordinate(5, 5)
        assert list(area.tile_ids()) == [tile(5, 5)]

    @pytest.mark.parametrize('blocks', [0, 1, 2, 3, 8])
    def test_cell_count(self, blocks):
        """Should hold (2 * blocks + 1) squared cells."""
        area = Area(tile(100, 100), blocks)
        assert len(list(area)) == (2 * blocks + 1) ** 2 == len(area)

    def test_raster_order_x_outer_y_inner(self):
        """Should iterate x outer and y inner."""
        coords = [(c.x, c.y) for c in Area(tile(5, 5), 1)]
        assert coords == [
            (4, 4), (4, 5), (4, 6),
            (5, 4), (5, 5), (5, 6),
            (6, 4), (6, 5), (6, 6),
        ]

    def test_tile_ids_inherit_source_and_zoom(self):
        """Should yield ids with the center's source and zoom."""
        ids = list(Area(tile(5, 5, zoom=12), 1).tile_ids())
        assert all(t.source_key == SOURCE and t.zoom == 12 for t in ids)
        assert len(set(ids)) == 9

    def test_contains(self):
        """Should contain tiles inside its bounds."""
        area = Area(tile(5, 5), 1)
        assert tile(4, 6) in area
        assert tile(7, 5) not in area
        assert TileCoordinate(6, 6) in area

    def test_contains_other_source_or_zoom(self):
        """Should not contain tiles of another source or zoom."""
        area = Area(tile(5, 5), 1)
        assert tile(5, 5, source='x/{z}/{x}/{y}') not in area
        assert tile(5, 5, zoom=11) not in area
