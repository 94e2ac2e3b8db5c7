"""Data models initialization."""
from seatmap.models.schemas import (
    SeatRecord,
    RoomEntry,
    Registry,
    RoomStatus,
    RoomOutcome,
    BatchSummary,
)

__all__ = [
    "SeatRecord",
    "RoomEntry",
    "Registry",
    "RoomStatus",
    "RoomOutcome",
    "BatchSummary",
]
