"""Display orchestration."""
from aerialmap.display.aerial_map import AerialMapDisplay, GridState
from aerialmap.display.invalidation import INVALIDATION_TABLE, Action, actions_for

__all__ = [
    'INVALIDATION_TABLE',
    'Action',
    'AerialMapDisplay',
    'GridState',
    'actions_for',
]
