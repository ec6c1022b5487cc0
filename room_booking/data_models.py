# data_models.py
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def decode_amenities(raw: Any) -> List[str]:
    """Decodes the serialized amenity column. Anything unreadable becomes []."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, list):
        return [str(item) for item in raw]
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed amenities value: %r", raw)
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


@dataclass
class Room:
    """A bookable room as exposed to clients."""
    id: int
    name: str
    space: Optional[str] = None
    capacity: Optional[int] = None
    amenities: List[str] = field(default_factory=list)
    status: Optional[str] = None

    @classmethod
    def from_record(cls, record) -> "Room":
        return cls(
            id=record["id"],
            name=record["name"],
            space=record["space"],
            capacity=record["capacity"],
            amenities=decode_amenities(record["amenities"]),
            status=record["status"],
        )


@dataclass
class Booking:
    """Represents a single booking row."""
    id: int
    user_id: int
    room_id: int
    booking_date: date
    start_time: time
    end_time: time
    status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "Booking":
        return cls(
            id=record["id"],
            user_id=record["user_id"],
            room_id=record["room_id"],
            booking_date=record["booking_date"],
            start_time=record["start_time"],
            end_time=record["end_time"],
            status=record["status"],
            created_at=record["created_at"],
        )


@dataclass
class BookingCreated:
    """What the caller gets back after a booking is admitted."""
    id: int
    room_name: str
    date: date
    start_time: time
    end_time: time
    status: str = "pending"


@dataclass
class UserBooking:
    """A user's booking joined with the room it occupies."""
    id: int
    booking_date: date
    start_time: time
    end_time: time
    status: str
    created_at: Optional[datetime]
    room_name: str
    space: Optional[str]
    capacity: Optional[int]
