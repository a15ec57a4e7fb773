"""Aerial map display: keeps a grid of map tiles around the latest position fix.

The host drives the display from a single thread: position fixes arrive
through on_nav_fix(), update() is called once per render tick and settings
change through configure() between ticks. Nothing here blocks; tile loading
happens behind the cache's request/ready/purge contract.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from aerialmap.display.invalidation import Action, actions_for
from aerialmap.domain.models import DisplaySettings, NavSatFix
from aerialmap.geo.mercator import GeoPoint, to_tile_index
from aerialmap.scene.assembler import AssemblyError, GridAssembler
from aerialmap.scene.slots import SceneNode
from aerialmap.shared.constants import ASSEMBLY_ERROR_LOG_INTERVAL_S, StatusKey
from aerialmap.shared.status import StatusBoard, StatusLevel
from aerialmap.tiles.area import Area, TileId
from aerialmap.tiles.errors import classify_error_rate
from aerialmap.transform.pipeline import TransformError, TransformPipeline

if TYPE_CHECKING:
    from collections.abc import Callable

    import numpy as np

    from aerialmap.scene.slots import TileSlot
    from aerialmap.shared.status import StatusSink
    from aerialmap.tiles.protocol import TileCacheClient
    from aerialmap.transform.frames import FrameLookup

    # subscriber(topic, callback) -> unsubscribe()
    Subscriber = Callable[[str, Callable[[NavSatFix], None]], Callable[[], None]]

logger = logging.getLogger(__name__)


@dataclass
class GridState:
    """Mutable state of one display instance; None means "not received yet"."""

    last_center_tile: TileId | None = None
    reference: NavSatFix | None = None
    dirty: bool = False


class AerialMapDisplay:
    def __init__(
        self,
        cache: TileCacheClient,
        frames: FrameLookup,
        status: StatusSink | None = None,
        settings: DisplaySettings | None = None,
        subscriber: Subscriber | None = None,
    ) -> None:
        self.cache = cache
        self.status = status if status is not None else StatusBoard()
        self.settings = settings.model_copy() if settings is not None else DisplaySettings()
        self.subscriber = subscriber
        self.pipeline = TransformPipeline(frames)
        self.assembler = GridAssembler()
        self.node = SceneNode()
        self.state = GridState()
        self._enabled = False
        self._unsubscribe: Callable[[], None] | None = None
        self._last_assembly_error_at: float | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def slots(self) -> tuple[TileSlot, ...]:
        return self.assembler.slots

    @property
    def anchor_offset(self) -> np.ndarray:
        return self.pipeline.anchor_offset

    def enable(self) -> None:
        if self._enabled:
            return
        self._enabled = True
        self.assembler.build(self.settings.blocks)
        self._subscribe()

    def disable(self) -> None:
        if not self._enabled:
            return
        self._unsubscribe_topic()
        self.clear_all()
        self._enabled = False

    close = disable

    def reset(self) -> None:
        """Drop all state and start over with the current settings."""
        if not self._enabled:
            return
        self._unsubscribe_topic()
        self.clear_all()
        self.assembler.build(self.settings.blocks)
        self._subscribe()

    def clear_all(self) -> None:
        self.state = GridState()
        self.pipeline.reset()
        self.assembler.destroy()
        self._set_status(StatusLevel.WARN, StatusKey.MESSAGE, 'No map received yet')

    def _subscribe(self) -> None:
        topic = self.settings.topic
        if not self._enabled or not topic:
            return
        if self.subscriber is not None:
            logger.info('Subscribing to %s', topic)
            try:
                self._unsubscribe = self.subscriber(topic, self.on_nav_fix)
            except Exception as e:
                logger.warning('Subscription to %s failed: %s', topic, e)
                self._set_status(StatusLevel.ERROR, StatusKey.TOPIC, f'Error subscribing: {e}')
                return
        self._set_status(StatusLevel.OK, StatusKey.TOPIC, 'OK')

    def _unsubscribe_topic(self) -> None:
        if self._unsubscribe is not None:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            unsubscribe()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def configure(self, **changes: Any) -> list[Action]:
        """Apply new settings and run the work they invalidate.

        Invalid values are reported through the status sink and leave every
        setting unchanged.

        Returns:
            The actions triggered by the change (empty if nothing changed).
        """
        unknown = set(changes) - set(DisplaySettings.model_fields)
        if unknown:
            msg = f'Unknown setting(s): {", ".join(sorted(unknown))}'
            raise KeyError(msg)

        try:
            new_settings = DisplaySettings.model_validate({**self.settings.model_dump(), **changes})
        except ValidationError as e:
            self._report_invalid_settings(e)
            return []

        old = self.settings
        changed = [name for name in changes if getattr(new_settings, name) != getattr(old, name)]
        if not changed:
            return []
        self.settings = new_settings
        actions = actions_for(changed)
        logger.debug('Settings changed: %s -> %s', changed, [a.value for a in actions])

        if not self._enabled:
            return actions

        for action in actions:
            if action is Action.RESET:
                self.reset()
            elif action is Action.REBUILD_GRID:
                self.assembler.build(self.settings.blocks)
                self.state.dirty = True
            elif action is Action.UPDATE_CENTER_TILE:
                if self.state.reference is not None:
                    self._derive_center_tile(self.state.reference)
            elif action is Action.REQUEST_TILES:
                self._rekey_center_tile()
                self.request_tiles()
            elif action is Action.RECOMPUTE_ANCHOR:
                self._recompute_anchor()
            elif action is Action.MARK_DIRTY:
                self.state.dirty = True
        return actions

    def _report_invalid_settings(self, error: ValidationError) -> None:
        for err in error.errors():
            field = str(err['loc'][0]) if err['loc'] else ''
            key = StatusKey.TILE_REQUEST if field == 'tile_url' else StatusKey.SETTINGS
            self._set_status(StatusLevel.ERROR, key, f'{field}: {err["msg"]}')

    def _rekey_center_tile(self) -> None:
        center = self.state.last_center_tile
        if center is not None and center.source_key != self.settings.tile_url:
            self.state.last_center_tile = center.with_source(self.settings.tile_url)

    # ------------------------------------------------------------------
    # Position updates
    # ------------------------------------------------------------------

    def on_nav_fix(self, fix: NavSatFix) -> None:
        if not self._enabled:
            return
        try:
            self._update_center_tile(fix)
        except ValueError as e:
            self._set_status(StatusLevel.ERROR, StatusKey.MESSAGE, str(e))
            return
        self._set_status(StatusLevel.OK, StatusKey.MESSAGE, 'NavSatFix okay')

    def _center_tile(self, fix: NavSatFix) -> TileId:
        coord = to_tile_index(GeoPoint(fix.latitude, fix.longitude), self.settings.zoom)
        return TileId(self.settings.tile_url, coord, self.settings.zoom)

    def _derive_center_tile(self, fix: NavSatFix) -> bool:
        """Store the center tile of the fix; True if it changed."""
        new_center = self._center_tile(fix)
        if new_center == self.state.last_center_tile:
            return False

        logger.debug('Updating center tile to %s', new_center)
        self.state.last_center_tile = new_center
        self.state.reference = fix
        return True

    def _update_center_tile(self, fix: NavSatFix) -> bool:
        if not self._derive_center_tile(fix):
            if not self.pipeline.has_offset:
                # stage 1 has not succeeded yet: retry with the newer fix
                self.state.reference = fix
                self._recompute_anchor()
            return False

        self.request_tiles()
        self._recompute_anchor()
        return True

    def request_tiles(self) -> bool:
        """Ask the cache for the area around the center tile."""
        if not self._enabled:
            return False
        if not self.settings.tile_url:
            self._set_status(StatusLevel.ERROR, StatusKey.TILE_REQUEST, 'Tile URL is not set')
            return False
        center = self.state.last_center_tile
        if center is None:
            self._set_status(StatusLevel.ERROR, StatusKey.MESSAGE, 'No NavSatFix received yet')
            return False

        try:
            self.cache.request(Area(center, self.settings.blocks))
        except (ValueError, RuntimeError) as e:
            self._set_status(StatusLevel.ERROR, StatusKey.TILE_REQUEST, str(e))
            return False
        self.state.dirty = True
        return True

    def _recompute_anchor(self) -> None:
        fix = self.state.reference
        if fix is None:
            return
        try:
            self.pipeline.update_anchor_offset(
                fix.frame_id,
                fix.stamp,
                GeoPoint(fix.latitude, fix.longitude),
                self.settings.zoom,
            )
        except TransformError as e:
            self._set_status(StatusLevel.ERROR, StatusKey.TRANSFORM, str(e))

    # ------------------------------------------------------------------
    # Render tick
    # ------------------------------------------------------------------

    def update(self) -> None:
        if not self._enabled or self.state.reference is None or self.state.last_center_tile is None:
            return
        self._assemble_scene()
        if self.pipeline.has_offset:
            self._place_grid()

    def _assemble_scene(self) -> None:
        if not self.state.dirty:
            return
        center = self.state.last_center_tile
        try:
            loaded_all = self.assembler.assemble(
                center,
                self.settings.blocks,
                self.state.reference.latitude,
                self.cache,
                alpha=self.settings.alpha,
                draw_behind=self.settings.draw_behind,
            )
        except AssemblyError as e:
            self._log_assembly_error(e)
            return

        # keep repainting until every tile arrived
        self.state.dirty = not loaded_all
        self._check_request_error_rate()

    def _check_request_error_rate(self) -> None:
        result = classify_error_rate(self.cache.error_rate(self.settings.tile_url))
        self._set_status(result.level, StatusKey.TILE_REQUEST, result.message)

    def _place_grid(self) -> None:
        try:
            self.pipeline.place(self.node)
        except TransformError as e:
            self._set_status(StatusLevel.ERROR, StatusKey.TRANSFORM, str(e))
            return
        self._set_status(StatusLevel.OK, StatusKey.TRANSFORM, 'Transform OK')

    def _log_assembly_error(self, error: AssemblyError) -> None:
        now = time.monotonic()
        last = self._last_assembly_error_at
        if last is not None and now - last < ASSEMBLY_ERROR_LOG_INTERVAL_S:
            return
        self._last_assembly_error_at = now
        logger.error('Scene assembly skipped: %s', error)

    def _set_status(self, level: StatusLevel, key: StatusKey, message: str) -> None:
        self.status.set_status(level, key.value, message)
