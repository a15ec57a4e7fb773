"""Tests for TOML profiles."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from aerialmap.domain.models import DisplaySettings
from aerialmap.domain.profiles import (
    _user_profiles_dir,
    delete_profile,
    list_profiles,
    load_profile,
    profile_path,
    save_profile,
)


@pytest.fixture(autouse=True)
def profiles_dir(tmp_path, monkeypatch):
    monkeypatch.setenv('AERIALMAP_PROFILES_DIR', str(tmp_path / 'profiles'))
    return tmp_path / 'profiles'


class TestProfilesDir:
    """Tests for profile directory resolution."""

    def test_env_override(self, profiles_dir):
        """Should use the directory from the environment."""
        assert _user_profiles_dir() == profiles_dir

    def test_home_fallback(self, monkeypatch):
        """Should fall back to the home directory."""
        monkeypatch.delenv('AERIALMAP_PROFILES_DIR')
        assert _user_profiles_dir() == Path.home() / '.config' / 'aerialmap' / 'profiles'


class TestProfiles:
    """Tests for save / load / list / delete."""

    def test_roundtrip(self):
        """Should load the settings it saved."""
        settings = DisplaySettings(
            topic='/gps/fix',
            tile_url='https://t.example.com/{z}/{x}/{y}.png',
            zoom=18,
            blocks=2,
            alpha=1.0,
            draw_behind=True,
        )
        path = save_profile('zurich', settings)
        assert path == profile_path('zurich')
        assert load_profile('zurich') == settings

    def test_load_by_path(self, tmp_path):
        """Should load a profile by file path."""
        path = tmp_path / 'custom.toml'
        path.write_text('zoom = 12\nblocks = 1\n', encoding='utf-8')
        settings = load_profile(str(path))
        assert settings.zoom == 12
        assert settings.blocks == 1
        assert settings.alpha == pytest.approx(0.7)

    def test_load_missing(self):
        """Should raise for a missing profile."""
        with pytest.raises(FileNotFoundError):
            load_profile('nope')

    def test_load_invalid(self, profiles_dir):
        """Should raise for invalid values."""
        profiles_dir.mkdir(parents=True, exist_ok=True)
        (profiles_dir / 'bad.toml').write_text('zoom = 40\n', encoding='utf-8')
        with pytest.raises(ValidationError):
            load_profile('bad')

    def test_list_and_delete(self):
        """Should list profiles sorted and delete idempotently."""
        save_profile('b', DisplaySettings())
        save_profile('a', DisplaySettings())
        assert list_profiles() == ['a', 'b']
        delete_profile('a')
        delete_profile('a')
        assert list_profiles() == ['b']
