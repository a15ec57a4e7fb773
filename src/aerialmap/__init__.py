"""Georeferenced grid of map tiles anchored to a moving position fix."""
from aerialmap.display import AerialMapDisplay
from aerialmap.domain import DisplaySettings, NavSatFix

__version__ = '1.0.0'

__all__ = ['AerialMapDisplay', 'DisplaySettings', 'NavSatFix', '__version__']
