"""Racing booking attempts against the same room and date."""

import asyncio
from datetime import date, time, timezone

from room_booking.booking_system import BookingSystem, RoomDateLocks
from room_booking.data_models import BookingCreated
from room_booking.database import create_database
from room_booking.errors import ConflictError, ValidationError
from room_booking.notifications import NotificationDispatcher

from conftest import RecordingSender, add_room, add_user


def run_concurrently(database_url, requests):
    async def scenario():
        database = create_database(database_url)
        await database.connect()
        try:
            system = BookingSystem(database, NotificationDispatcher(RecordingSender()))
            return await asyncio.gather(
                *(system.book_room(*request) for request in requests),
                return_exceptions=True,
            )
        finally:
            await database.disconnect()
    return asyncio.run(scenario())


def test_identical_parallel_requests_admit_exactly_one(engine, database_url):
    room_b = add_room(engine, "Room B")
    user_id = add_user(engine, "halima@swahilipothub.co.ke")
    request = (user_id, room_b, date(2024, 2, 1), time(14), time(15))

    results = run_concurrently(database_url, [request, request])

    created = [r for r in results if isinstance(r, BookingCreated)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 1
    assert conflicts[0].conflicting_booking["id"] == created[0].id


def test_many_overlapping_requests_stay_pairwise_disjoint(engine, database_url):
    room_id = add_room(engine, "Room B")
    user_id = add_user(engine, "halima@swahilipothub.co.ke")
    day = date(2024, 2, 1)
    windows = [(time(h), time(h + 2)) for h in range(8, 16)] * 2

    results = run_concurrently(database_url, [(user_id, room_id, day, s, e) for s, e in windows])

    admitted = [(r.start_time, r.end_time) for r in results if isinstance(r, BookingCreated)]
    assert all(isinstance(r, (BookingCreated, ConflictError)) for r in results)
    assert admitted
    for i, (s1, e1) in enumerate(admitted):
        for s2, e2 in admitted[i + 1:]:
            assert not (s1 < e2 and s2 < e1)


def test_different_rooms_do_not_serialize_against_each_other(engine, database_url):
    room_a = add_room(engine, "Room A")
    room_b = add_room(engine, "Room B")
    user_id = add_user(engine, "halima@swahilipothub.co.ke")
    day = date(2024, 2, 1)

    results = run_concurrently(database_url, [
        (user_id, room_a, day, time(14), time(15)),
        (user_id, room_b, day, time(14), time(15)),
    ])

    assert all(isinstance(r, BookingCreated) for r in results)


def test_room_date_locks_are_shared_per_key():
    async def scenario():
        locks = RoomDateLocks()
        first = locks.get(1, date(2024, 2, 1))
        assert locks.get(1, date(2024, 2, 1)) is first
        assert locks.get(1, date(2024, 2, 2)) is not first
        assert locks.get(2, date(2024, 2, 1)) is not first
    asyncio.run(scenario())


def test_times_with_utc_offset_are_rejected_before_the_store(engine, database_url):
    aware = time(9, tzinfo=timezone.utc)
    # Unknown room and user: only validation can answer here
    results = run_concurrently(database_url, [
        (404, 404, date(2024, 2, 1), aware, time(10)),
        (404, 404, date(2024, 2, 1), aware, time(10, tzinfo=timezone.utc)),
    ])

    assert all(isinstance(r, ValidationError) for r in results)
