"""Tests for the grid assembler."""

import numpy as np
import pytest

from aerialmap.geo.mercator import TileCoordinate, tile_size_meters
from aerialmap.scene.assembler import AssemblyError, GridAssembler, grid_cell_count, quad_geometry
from aerialmap.scene.slots import BlendMode, RenderQueue
from aerialmap.shared.constants import TILE_DEPTH_BIAS
from aerialmap.tiles.area import Area, TileId

SOURCE = 'https://tiles.example.com/{z}/{x}/{y}.png'
CENTER = TileId(SOURCE, TileCoordinate(34323, 22943), 16)
LAT = 47.398


def assemble(assembler, cache, blocks=1, alpha=0.7, draw_behind=False):
    return assembler.assemble(CENTER, blocks, LAT, cache, alpha=alpha, draw_behind=draw_behind)


@pytest.fixture
def assembler():
    a = GridAssembler()
    a.build(1)
    return a


class TestBuild:
    """Tests for slot pool creation."""

    @pytest.mark.parametrize('blocks', [0, 1, 3, 8])
    def test_pool_size(self, blocks):
        """Should create one slot per grid cell."""
        a = GridAssembler()
        a.build(blocks)
        assert len(a.slots) == grid_cell_count(blocks) == (2 * blocks + 1) ** 2

    def test_new_slots_hidden(self, assembler):
        """Should create hidden slots with default materials."""
        for slot in assembler.slots:
            assert not slot.visible
            assert slot.geometry.is_empty
            assert slot.material.depth_bias == TILE_DEPTH_BIAS
            assert not slot.material.depth_write
            assert not slot.material.lighting

    def test_names_unique_across_rebuilds(self, assembler):
        """Should never reuse slot names after a rebuild."""
        first = {s.name for s in assembler.slots}
        assembler.build(1)
        second = {s.name for s in assembler.slots}
        assert first.isdisjoint(second)
        assert all(name.startswith('satellite_object_') for name in first | second)

    def test_names_independent_between_instances(self):
        """Should number slots per assembler."""
        a, b = GridAssembler(), GridAssembler()
        a.build(0)
        b.build(0)
        assert a.slots[0].name == b.slots[0].name

    def test_destroy(self, assembler):
        """Should release every slot."""
        assembler.destroy()
        assert not assembler.is_built
        assert assembler.slots == ()


class TestQuadGeometry:
    """Tests for quad_geometry."""

    def test_center_quad(self):
        """Should span one tile from the origin."""
        geom = quad_geometry(0, 0, 100.0)
        assert geom.positions.shape == (6, 3)
        assert geom.uvs.shape == (6, 2)
        np.testing.assert_allclose(geom.positions.min(axis=0), [0.0, 0.0, 0.0])
        np.testing.assert_allclose(geom.positions.max(axis=0), [100.0, 100.0, 0.0])
        np.testing.assert_allclose(geom.normals, np.tile([0.0, 0.0, 1.0], (6, 1)))

    def test_south_east_neighbour(self):
        """Should offset a cell east and south."""
        # one column east, one row south
        geom = quad_geometry(1, 1, 100.0)
        np.testing.assert_allclose(geom.positions[0], [100.0, -100.0, 0.0])
        np.testing.assert_allclose(geom.positions.max(axis=0), [200.0, 0.0, 0.0])

    def test_uv_flipped(self):
        """Should flip v so the image top is north."""
        geom = quad_geometry(0, 0, 10.0)
        # bottom-left vertex samples the image origin (its top-left pixel row)
        np.testing.assert_allclose(geom.positions[0, :2], [0.0, 0.0])
        np.testing.assert_allclose(geom.uvs[0], [0.0, 0.0])
        np.testing.assert_allclose(geom.positions[1, :2], [10.0, 10.0])
        np.testing.assert_allclose(geom.uvs[1], [1.0, 1.0])


class TestAssemble:
    """Tests for GridAssembler.assemble."""

    def test_requires_built_pool(self, fake_cache):
        """Should refuse to assemble without a pool."""
        with pytest.raises(AssemblyError, match='build the tile grid first'):
            assemble(GridAssembler(), fake_cache)
        assert fake_cache.purged == []

    def test_pool_size_mismatch(self, assembler, fake_cache):
        """Should refuse a pool of the wrong size."""
        with pytest.raises(AssemblyError, match='9 slots, grid needs 25'):
            assemble(assembler, fake_cache, blocks=2)

    def test_nothing_ready(self, assembler, fake_cache):
        """Should hide every slot when no tile is ready."""
        assert not assemble(assembler, fake_cache)
        assert not any(slot.visible for slot in assembler.slots)

    def test_all_ready(self, assembler, fake_cache):
        """Should show every slot with its tile texture."""
        area = Area(CENTER, 1)
        fake_cache.make_ready(area.tile_ids())
        assert assemble(assembler, fake_cache)
        for slot, tile_id in zip(assembler.slots, area.tile_ids()):
            assert slot.visible
            assert slot.material.texture_name == f'tex_16_{tile_id.x}_{tile_id.y}'

    def test_partial(self, assembler, fake_cache):
        """Should show only the ready tiles."""
        fake_cache.make_ready([CENTER])
        assert not assemble(assembler, fake_cache)
        visible = [slot.index for slot in assembler.slots if slot.visible]
        # center is the 5th cell in raster order
        assert visible == [4]

    def test_missing_tile_hides_previous_texture(self, assembler, fake_cache):
        """Should hide a slot whose tile went away."""
        fake_cache.make_ready(Area(CENTER, 1).tile_ids())
        assemble(assembler, fake_cache)
        del fake_cache.tiles[CENTER]
        assert not assemble(assembler, fake_cache)
        assert not assembler.slots[4].visible

    def test_purge_once_after_all_polls(self, assembler, fake_cache):
        """Should purge once after polling every cell."""
        fake_cache.make_ready([CENTER])
        assemble(assembler, fake_cache)
        kinds = [kind for kind, _ in fake_cache.calls]
        assert kinds == ['ready'] * 9 + ['purge']
        assert fake_cache.purged == [Area(CENTER, 1)]

    def test_geometry_positions(self, assembler, fake_cache):
        """Should place cells around the center tile."""
        fake_cache.make_ready(Area(CENTER, 1).tile_ids())
        assemble(assembler, fake_cache)
        size = tile_size_meters(LAT, 16)
        # first cell is north-west of the center tile
        np.testing.assert_allclose(assembler.slots[0].geometry.positions[0], [-size, size, 0.0])
        np.testing.assert_allclose(assembler.slots[4].geometry.positions[0], [0.0, 0.0, 0.0])

    def test_regeneration_bit_identical(self, assembler, fake_cache):
        """Should regenerate identical geometry."""
        fake_cache.make_ready(Area(CENTER, 1).tile_ids())
        assemble(assembler, fake_cache)
        first = [slot.geometry.positions.copy() for slot in assembler.slots]
        assemble(assembler, fake_cache)
        for before, slot in zip(first, assembler.slots):
            assert np.array_equal(before, slot.geometry.positions)

    def test_opaque_material(self, assembler, fake_cache):
        """Should replace and write depth when opaque."""
        fake_cache.make_ready([CENTER])
        assemble(assembler, fake_cache, alpha=1.0, draw_behind=False)
        slot = assembler.slots[4]
        assert slot.material.blend_mode == BlendMode.REPLACE
        assert slot.material.depth_write
        assert slot.render_queue == RenderQueue.MAIN

    def test_opaque_draw_behind(self, assembler, fake_cache):
        """Should draw opaque tiles in the background queue."""
        fake_cache.make_ready([CENTER])
        assemble(assembler, fake_cache, alpha=0.9999, draw_behind=True)
        slot = assembler.slots[4]
        assert slot.material.blend_mode == BlendMode.REPLACE
        assert not slot.material.depth_write
        assert slot.render_queue == RenderQueue.BACKGROUND

    def test_transparent_material(self, assembler, fake_cache):
        """Should alpha-blend transparent tiles."""
        fake_cache.make_ready([CENTER])
        assemble(assembler, fake_cache, alpha=0.5)
        slot = assembler.slots[4]
        assert slot.material.blend_mode == BlendMode.TRANSPARENT_ALPHA
        assert not slot.material.depth_write
        assert slot.material.alpha == 0.5
        assert slot.render_queue == RenderQueue.MAIN
