"""Which work a settings change makes necessary."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Action(str, Enum):
    REBUILD_GRID = 'rebuild_grid'
    UPDATE_CENTER_TILE = 'update_center_tile'
    REQUEST_TILES = 'request_tiles'
    RECOMPUTE_ANCHOR = 'recompute_anchor'
    MARK_DIRTY = 'mark_dirty'
    RESET = 'reset'


# Execution order when several fields change at once
_ORDER = (
    Action.RESET,
    Action.REBUILD_GRID,
    Action.UPDATE_CENTER_TILE,
    Action.REQUEST_TILES,
    Action.RECOMPUTE_ANCHOR,
    Action.MARK_DIRTY,
)

INVALIDATION_TABLE: dict[str, frozenset[Action]] = {
    # repaint only, textures are already there
    'alpha': frozenset({Action.MARK_DIRTY}),
    'draw_behind': frozenset({Action.MARK_DIRTY}),
    # same tiles from another server
    'tile_url': frozenset({Action.REQUEST_TILES}),
    # grid geometry, center tile and sub-tile offset all depend on zoom
    'zoom': frozenset({
        Action.REBUILD_GRID,
        Action.UPDATE_CENTER_TILE,
        Action.REQUEST_TILES,
        Action.RECOMPUTE_ANCHOR,
    }),
    # center tile and transforms stay valid
    'blocks': frozenset({Action.REBUILD_GRID, Action.REQUEST_TILES}),
    'topic': frozenset({Action.RESET}),
}


def actions_for(changed_fields: Iterable[str]) -> list[Action]:
    """Union of the actions of all changed fields, in execution order.

    RESET subsumes every other action.
    """
    actions: set[Action] = set()
    for field in changed_fields:
        try:
            actions |= INVALIDATION_TABLE[field]
        except KeyError:
            msg = f'Unknown setting: {field}'
            raise KeyError(msg) from None
    if Action.RESET in actions:
        return [Action.RESET]
    return [a for a in _ORDER if a in actions]
