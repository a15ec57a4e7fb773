"""Domain layer - settings, position fixes and profiles."""
from aerialmap.domain.models import DisplaySettings, NavSatFix
from aerialmap.domain.profiles import (
    delete_profile,
    ensure_profiles_dir,
    list_profiles,
    load_profile,
    save_profile,
)

__all__ = [
    'DisplaySettings',
    'NavSatFix',
    'delete_profile',
    'ensure_profiles_dir',
    'list_profiles',
    'load_profile',
    'save_profile',
]
