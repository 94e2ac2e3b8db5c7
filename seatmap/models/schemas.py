"""Pydantic models for the room registry and batch outcomes."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    field_validator,
)


class SeatRecord(BaseModel):
    """A final seat position in pixel coordinates of the room raster."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str = Field(..., description="1-based id assigned in reading order")
    # ints stay ints on round-trip, hand-placed fractional positions are kept
    x: Union[NonNegativeInt, NonNegativeFloat]
    y: Union[NonNegativeInt, NonNegativeFloat]


class RoomEntry(BaseModel):
    """A room as stored in the registry file."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str = ""
    description: str = ""
    image: str = Field(..., description="Image path relative to the public directory, e.g. /maps/Room 2-1.png")
    width: Optional[int] = Field(default=None, ge=1)
    height: Optional[int] = Field(default=None, ge=1)
    capacity: Optional[int] = Field(default=None, ge=0, description="Declared seating capacity, None if unknown")
    seats: List[SeatRecord] = Field(default_factory=list)

    @field_validator("capacity", mode="before")
    @classmethod
    def _blank_capacity(cls, value):
        if value == "" or value is False:
            return None
        return value


class Registry(BaseModel):
    """Room registry (``{"rooms": [...]}``). Unknown top-level keys are kept."""

    model_config = ConfigDict(extra="allow")

    rooms: List[RoomEntry] = Field(default_factory=list)

    def find(self, room_id: str) -> Optional[RoomEntry]:
        for room in self.rooms:
            if room.id == room_id:
                return room
        return None


class RoomStatus(str, Enum):
    """Outcome of processing one room."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class RoomOutcome(BaseModel):
    """Per-room result accumulated by the batch driver."""

    room_id: str
    status: RoomStatus
    reason: Optional[str] = None
    capacity: Optional[int] = None
    seat_count: int = 0
    strategy: Optional[str] = None
    strategy_counts: Dict[str, int] = Field(default_factory=dict)
    boundary_masked: bool = False
    ocr_failed: bool = False
    under_detected: bool = False

    @property
    def capacity_diff(self) -> Optional[int]:
        if self.capacity is None or self.status != RoomStatus.SUCCEEDED:
            return None
        return self.seat_count - self.capacity


class BatchSummary(BaseModel):
    """Totals reported at the end of a batch run."""

    outcomes: List[RoomOutcome] = Field(default_factory=list)

    def count(self, status: RoomStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self.count(RoomStatus.SUCCEEDED)

    @property
    def skipped(self) -> int:
        return self.count(RoomStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(RoomStatus.FAILED)

    @property
    def total_seats(self) -> int:
        return sum(o.seat_count for o in self.outcomes if o.status == RoomStatus.SUCCEEDED)

    def accuracy_buckets(self) -> Dict[str, int]:
        """Exact / within +-3 / off counts over rooms with a known capacity."""
        buckets = {"exact": 0, "close": 0, "off": 0}
        for outcome in self.outcomes:
            diff = outcome.capacity_diff
            if diff is None:
                continue
            if diff == 0:
                buckets["exact"] += 1
            elif abs(diff) <= 3:
                buckets["close"] += 1
            else:
                buckets["off"] += 1
        return buckets
