"""Mapping of the tile server error rate to a display status."""

from __future__ import annotations

from dataclasses import dataclass

from aerialmap.shared.constants import ERROR_RATE_ERROR_THRESHOLD, ERROR_RATE_WARN_THRESHOLD
from aerialmap.shared.status import StatusLevel

MSG_FEW_OR_NO_TILES = 'Few or no tiles received'
MSG_THROTTLING = 'Not all requested tiles have been received. Possibly the server is throttling?'
MSG_OK = 'OK'


@dataclass(frozen=True)
class TileRequestStatus:
    level: StatusLevel
    message: str


def classify_error_rate(error_rate: float) -> TileRequestStatus:
    """Thresholds are exclusive lower bounds: 0.30 is still OK, 0.95 still WARN."""
    if error_rate > ERROR_RATE_ERROR_THRESHOLD:
        return TileRequestStatus(StatusLevel.ERROR, MSG_FEW_OR_NO_TILES)
    if error_rate > ERROR_RATE_WARN_THRESHOLD:
        return TileRequestStatus(StatusLevel.WARN, MSG_THROTTLING)
    return TileRequestStatus(StatusLevel.OK, MSG_OK)
