# booking_system.py
import asyncio
import logging
import weakref
import zlib
from dataclasses import asdict
from datetime import date, time
from typing import List, Optional

import sqlalchemy
from databases import Database

from room_booking.auth import User, get_user_by_id
from room_booking.conflicts import find_conflict
from room_booking.data_models import Booking, BookingCreated, Room, UserBooking
from room_booking.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError, store_errors
from room_booking.models import ACTIVE_STATUSES, BOOKING_STATUSES, bookings, rooms, users
from room_booking.notifications import (
    NotificationDispatcher,
    booking_received_email,
    booking_request_email,
    booking_status_email,
)

logger = logging.getLogger(__name__)


class RoomDateLocks:
    """One asyncio.Lock per (room, date); unused locks are garbage collected."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary" = weakref.WeakValueDictionary()

    def get(self, room_id: int, booking_date: date) -> asyncio.Lock:
        key = (room_id, booking_date)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


def advisory_lock_key(room_id: int, booking_date: date) -> int:
    return zlib.crc32(f"room:{room_id}:{booking_date.isoformat()}".encode())


class BookingSystem:
    """Room availability and the booking lifecycle, over an explicit store handle."""

    def __init__(self, database: Database, dispatcher: NotificationDispatcher, admin_email: str = ""):
        self.database = database
        self.dispatcher = dispatcher
        self.admin_email = admin_email
        self.locks = RoomDateLocks()

    async def get_available_rooms(self, booking_date: Optional[date] = None) -> List[Room]:
        """Full catalog without a date; otherwise rooms with no active booking that day."""
        query = rooms.select()
        if booking_date is not None:
            booked_rooms = sqlalchemy.select(bookings.c.room_id).where(
                bookings.c.booking_date == booking_date,
                bookings.c.status.in_(ACTIVE_STATUSES),
            )
            query = query.where(rooms.c.id.not_in(booked_rooms))
        query = query.order_by(rooms.c.name, rooms.c.id)

        with store_errors("Failed to fetch rooms"):
            records = await self.database.fetch_all(query)
        return [Room.from_record(record) for record in records]

    async def get_room(self, room_id: int) -> Room:
        with store_errors("Failed to fetch room"):
            record = await self.database.fetch_one(rooms.select().where(rooms.c.id == room_id))
        if record is None:
            raise NotFoundError("Room not found")
        return Room.from_record(record)

    async def book_room(self, user_id: int, room_id: int, booking_date: date,
                        start_time: time, end_time: time) -> BookingCreated:
        """Admits or rejects a booking request.

        Checks run in order and the first failure wins: room exists, no
        active booking overlaps the window, user exists. The check and the
        insert are serialized per (room, date) in this process and run in
        one transaction; PostgreSQL additionally takes a transaction-scoped
        advisory lock on the same key so other processes wait too.
        """
        if start_time.tzinfo is not None or end_time.tzinfo is not None:
            raise ValidationError("Times must not carry a timezone offset")
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")

        with store_errors("Booking failed"):
            async with self.locks.get(room_id, booking_date):
                async with self.database.transaction():
                    if self.database.url.dialect in ("postgresql", "postgres"):
                        await self.database.execute(
                            "SELECT pg_advisory_xact_lock(:key)",
                            values={"key": advisory_lock_key(room_id, booking_date)},
                        )

                    room = await self.database.fetch_one(rooms.select().where(rooms.c.id == room_id))
                    if room is None:
                        raise NotFoundError("Room not found")

                    conflict = await find_conflict(self.database, room_id, booking_date, start_time, end_time)
                    if conflict is not None:
                        raise ConflictError(
                            "Room is already booked for this time slot",
                            conflicting_booking=asdict(Booking.from_record(conflict)),
                        )

                    user = await get_user_by_id(self.database, user_id)
                    if user is None:
                        raise NotFoundError("User not found")

                    booking_id = await self.database.fetch_val(
                        bookings.insert().values(
                            user_id=user_id,
                            room_id=room_id,
                            booking_date=booking_date,
                            start_time=start_time,
                            end_time=end_time,
                            status="pending",
                        ).returning(bookings.c.id)
                    )

        logger.info("Booking %s created: room %s by %s on %s %s-%s",
                    booking_id, room["name"], user["email"], booking_date, start_time, end_time)

        # Committed; from here on nothing may fail the request
        fmt_start, fmt_end = start_time.strftime("%H:%M"), end_time.strftime("%H:%M")
        if self.admin_email:
            self.dispatcher.notify(self.admin_email, *booking_request_email(
                room["name"], user["full_name"], user["email"], booking_date, fmt_start, fmt_end))
        self.dispatcher.notify(user["email"], *booking_received_email(
            room["name"], user["full_name"], booking_date, fmt_start, fmt_end))

        return BookingCreated(
            id=booking_id,
            room_name=room["name"],
            date=booking_date,
            start_time=start_time,
            end_time=end_time,
            status="pending",
        )

    async def get_user_bookings(self, user_id: int) -> List[UserBooking]:
        query = sqlalchemy.select(
            bookings.c.id,
            bookings.c.booking_date,
            bookings.c.start_time,
            bookings.c.end_time,
            bookings.c.status,
            bookings.c.created_at,
            rooms.c.name.label("room_name"),
            rooms.c.space,
            rooms.c.capacity,
        ).select_from(
            bookings.join(rooms, bookings.c.room_id == rooms.c.id)
        ).where(
            bookings.c.user_id == user_id
        ).order_by(
            sqlalchemy.desc(bookings.c.booking_date),
            sqlalchemy.desc(bookings.c.start_time),
        )
        with store_errors("Failed to fetch bookings"):
            records = await self.database.fetch_all(query)
        return [
            UserBooking(
                id=record["id"],
                booking_date=record["booking_date"],
                start_time=record["start_time"],
                end_time=record["end_time"],
                status=record["status"],
                created_at=record["created_at"],
                room_name=record["room_name"],
                space=record["space"],
                capacity=record["capacity"],
            )
            for record in records
        ]

    async def update_booking_status(self, booking_id: int, new_status: str, actor: User) -> Booking:
        """Moves a booking to confirmed or cancelled.

        pending -> confirmed is reserved to admins. Cancelling an active
        booking is allowed to admins and to the booking's owner. Cancelled
        is final. The write is conditional on the status that was read, so a
        concurrent change makes this call fail with a conflict instead of
        overwriting it.
        """
        if new_status not in BOOKING_STATUSES or new_status == "pending":
            raise ValidationError(f"Cannot move a booking to '{new_status}'")

        is_admin = actor.role == "admin"

        with store_errors("Failed to update booking"):
            async with self.database.transaction():
                record = await self.database.fetch_one(bookings.select().where(bookings.c.id == booking_id))
                if record is None:
                    raise NotFoundError("Booking not found")

                current_status = record["status"]
                is_owner = record["user_id"] == actor.id
                if new_status == "confirmed" and not is_admin:
                    raise ForbiddenError("Only an administrator can confirm bookings")
                if new_status == "cancelled" and not (is_admin or is_owner):
                    raise ForbiddenError("You cannot modify this booking")
                if current_status == "cancelled" or current_status == new_status:
                    raise ValidationError(f"Booking is already {current_status}")

                # Only applies if nobody moved the booking since it was read
                updated_id = await self.database.fetch_val(
                    bookings.update()
                    .where(bookings.c.id == booking_id, bookings.c.status == current_status)
                    .values(status=new_status)
                    .returning(bookings.c.id)
                )
                if updated_id is None:
                    raise ConflictError("Booking status was changed by another request")
                owner = await self.database.fetch_one(users.select().where(users.c.id == record["user_id"]))
                room = await self.database.fetch_one(rooms.select().where(rooms.c.id == record["room_id"]))

        logger.info("Booking %s: %s -> %s by %s", booking_id, current_status, new_status, actor.email)

        if owner is not None and room is not None:
            self.dispatcher.notify(owner["email"], *booking_status_email(
                room["name"], owner["full_name"], record["booking_date"],
                record["start_time"].strftime("%H:%M"), record["end_time"].strftime("%H:%M"), new_status))

        updated = Booking.from_record(record)
        updated.status = new_status
        return updated
