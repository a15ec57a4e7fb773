"""Tests for settings and position fix models."""

import pytest
from pydantic import ValidationError

from aerialmap.domain.models import DisplaySettings, NavSatFix
from aerialmap.shared.constants import MAX_BLOCKS, MAX_ZOOM


class TestDisplaySettings:
    """Tests for DisplaySettings validation."""

    def test_defaults(self):
        """Should use the documented defaults."""
        s = DisplaySettings()
        assert s.topic == ''
        assert s.tile_url == ''
        assert s.zoom == 16
        assert s.blocks == 3
        assert s.alpha == pytest.approx(0.7)
        assert s.draw_behind is False

    @pytest.mark.parametrize('zoom', [-1, MAX_ZOOM + 1])
    def test_zoom_range(self, zoom):
        """Should reject zoom levels outside the range."""
        with pytest.raises(ValidationError):
            DisplaySettings(zoom=zoom)

    @pytest.mark.parametrize('blocks', [-1, MAX_BLOCKS + 1])
    def test_blocks_range(self, blocks):
        """Should reject block counts outside the range."""
        with pytest.raises(ValidationError):
            DisplaySettings(blocks=blocks)

    @pytest.mark.parametrize('alpha', [-0.1, 1.1])
    def test_alpha_range(self, alpha):
        """Should reject alpha outside [0, 1]."""
        with pytest.raises(ValidationError):
            DisplaySettings(alpha=alpha)

    def test_tile_url_stripped(self):
        """Should strip whitespace from the tile URL."""
        s = DisplaySettings(tile_url='  https://t.example.com/{z}/{x}/{y}.png ')
        assert s.tile_url == 'https://t.example.com/{z}/{x}/{y}.png'

    def test_tile_url_placeholders(self):
        """Should require all URL placeholders."""
        with pytest.raises(ValidationError, match='placeholders'):
            DisplaySettings(tile_url='https://t.example.com/{z}/{x}.png')

    def test_validate_assignment(self):
        """Should validate on assignment."""
        s = DisplaySettings()
        with pytest.raises(ValidationError):
            s.zoom = 42

    def test_unknown_keys_ignored(self):
        """Should ignore unknown keys."""
        s = DisplaySettings.model_validate({'zoom': 12, 'legacy_option': True})
        assert s.zoom == 12


class TestNavSatFix:
    """Tests for NavSatFix."""

    def test_fields(self):
        """Should keep frame and stamp."""
        fix = NavSatFix(latitude=47.4, longitude=8.5, frame_id='gps', stamp=12.5)
        assert fix.frame_id == 'gps'
        assert fix.stamp == 12.5

    def test_stamp_optional(self):
        """Should default the stamp to None."""
        assert NavSatFix(latitude=0.0, longitude=0.0, frame_id='gps').stamp is None

    @pytest.mark.parametrize('value', [float('nan'), float('inf')])
    def test_non_finite(self, value):
        """Should reject non-finite coordinates."""
        with pytest.raises(ValidationError):
            NavSatFix(latitude=value, longitude=0.0, frame_id='gps')

    def test_frozen(self):
        """Should be immutable."""
        fix = NavSatFix(latitude=0.0, longitude=0.0, frame_id='gps')
        with pytest.raises(ValidationError):
            fix.latitude = 1.0
