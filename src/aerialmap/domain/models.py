import math

from pydantic import BaseModel, field_validator

from aerialmap.shared.constants import (
    DEFAULT_ALPHA,
    DEFAULT_BLOCKS,
    DEFAULT_ZOOM,
    MAX_BLOCKS,
    MAX_ZOOM,
)
from aerialmap.tiles.fetcher import validate_tile_url


class DisplaySettings(BaseModel):
    """User-tunable settings of the aerial map display."""

    model_config = {
        'extra': 'ignore',  # ignore unknown keys from profiles
        'validate_assignment': True,
    }

    # Topic delivering position fixes
    topic: str = ''
    # URL template with {x}, {y}, {z} placeholders
    tile_url: str = ''
    # Zoom level (0 - MAX_ZOOM)
    zoom: int = DEFAULT_ZOOM
    # Adjacent blocks around the center tile (0 - MAX_BLOCKS)
    blocks: int = DEFAULT_BLOCKS
    # Map opacity (0.0 transparent - 1.0 opaque)
    alpha: float = DEFAULT_ALPHA
    # Always draw the map behind everything else
    draw_behind: bool = False

    @field_validator('tile_url')
    @classmethod
    def check_tile_url(cls, v: str) -> str:
        v = v.strip()
        if v:
            validate_tile_url(v)
        return v

    @field_validator('zoom')
    @classmethod
    def validate_zoom(cls, v: int) -> int:
        if not (0 <= v <= MAX_ZOOM):
            msg = f'Zoom must be in [0, {MAX_ZOOM}]'
            raise ValueError(msg)
        return v

    @field_validator('blocks')
    @classmethod
    def validate_blocks(cls, v: int) -> int:
        if not (0 <= v <= MAX_BLOCKS):
            msg = f'Blocks must be in [0, {MAX_BLOCKS}]'
            raise ValueError(msg)
        return v

    @field_validator('alpha')
    @classmethod
    def validate_alpha(cls, v: float) -> float:
        v = float(v)
        if not (0.0 <= v <= 1.0):
            msg = 'Alpha must be in [0.0, 1.0]'
            raise ValueError(msg)
        return v


class NavSatFix(BaseModel):
    """Position fix; only these fields are consumed by the display."""

    model_config = {'extra': 'ignore', 'frozen': True}

    latitude: float
    longitude: float
    frame_id: str
    # Seconds; None means "latest available"
    stamp: float | None = None

    @field_validator('latitude', 'longitude')
    @classmethod
    def validate_finite(cls, v: float) -> float:
        if not math.isfinite(v):
            msg = 'Coordinate must be a finite number'
            raise ValueError(msg)
        return v
