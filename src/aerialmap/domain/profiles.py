import logging
import os
from pathlib import Path

import tomlkit

from aerialmap.domain.models import DisplaySettings
from aerialmap.shared.constants import PROFILES_DIR, PROFILES_DIR_ENV

logger = logging.getLogger(__name__)


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) $AERIALMAP_PROFILES_DIR when set.
    2) Otherwise ~/.config/aerialmap/profiles.
    """
    env_dir = os.getenv(PROFILES_DIR_ENV)
    if env_dir:
        return Path(env_dir)
    return Path.home() / PROFILES_DIR


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Profile names without extension."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    return ensure_profiles_dir() / f'{name}.toml'


def load_profile(name_or_path: str) -> DisplaySettings:
    """
    Load and validate a TOML profile.

    Accepts a profile name from the profiles directory or a path to a .toml
    file.
    """
    p = Path(name_or_path)
    path = p if p.suffix.lower() == '.toml' and p.exists() else profile_path(name_or_path)
    if not path.exists():
        msg = f'Profile not found: {path}'
        raise FileNotFoundError(msg)
    data = tomlkit.parse(path.read_text(encoding='utf-8'))
    settings = DisplaySettings.model_validate(data.unwrap())
    logger.info('Loaded profile %s: zoom=%d blocks=%d', path, settings.zoom, settings.blocks)
    return settings


def save_profile(name: str, settings: DisplaySettings) -> Path:
    path = profile_path(name)
    path.write_text(tomlkit.dumps(settings.model_dump()), encoding='utf-8')
    logger.info('Saved profile %s', path)
    return path


def delete_profile(name: str) -> None:
    path = profile_path(name)
    if path.exists():
        path.unlink()
