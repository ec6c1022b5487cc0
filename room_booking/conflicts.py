# conflicts.py
"""Overlap detection for room bookings.

A booking occupies its room over the half-open window [start, end), so a
booking ending at 10:00 and another starting at 10:00 do not collide.
Only active bookings (pending or confirmed) take part in the check.
"""
import logging
from datetime import date, time
from typing import Optional

from databases import Database

from room_booking.models import ACTIVE_STATUSES, bookings

logger = logging.getLogger(__name__)


def validate_time_range(start: time, end: time) -> None:
    if start >= end:
        raise ValueError(f"start time {start} must be before end time {end}")


def intervals_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """True iff [start_a, end_a) and [start_b, end_b) share any instant."""
    validate_time_range(start_a, end_a)
    validate_time_range(start_b, end_b)
    return start_a < end_b and start_b < end_a


def active_bookings_query(room_id: int, booking_date: date):
    return (
        bookings.select()
        .where(
            bookings.c.room_id == room_id,
            bookings.c.booking_date == booking_date,
            bookings.c.status.in_(ACTIVE_STATUSES),
        )
        .order_by(bookings.c.start_time, bookings.c.id)
    )


async def find_conflict(database: Database, room_id: int, booking_date: date, start: time, end: time):
    """Returns the first active booking colliding with the requested window, or None."""
    current_schedule = await database.fetch_all(active_bookings_query(room_id, booking_date))
    for booking in current_schedule:
        if intervals_overlap(start, end, booking["start_time"], booking["end_time"]):
            logger.warning(
                "Room %s on %s: %s-%s collides with booking %s (%s-%s)",
                room_id, booking_date, start, end,
                booking["id"], booking["start_time"], booking["end_time"],
            )
            return booking
    return None
