"""Shared constants and status reporting."""
from aerialmap.shared.status import StatusBoard, StatusEntry, StatusLevel, StatusSink

__all__ = [
    'StatusBoard',
    'StatusEntry',
    'StatusLevel',
    'StatusSink',
]
