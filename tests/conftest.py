"""Shared fixtures: a file-backed SQLite store, seeded rooms and a recording mailer."""

from datetime import date, time

import pytest
import sqlalchemy
from fastapi.testclient import TestClient

from room_booking.config import Settings
from room_booking.database import create_schema
from room_booking.main import create_app
from room_booking.models import bookings, rooms, users
from room_booking.notifications import EmailSender

ADMIN_EMAIL = "admin@swahilipothub.co.ke"
ADMIN_PASSWORD = "admin-pass"


class RecordingSender(EmailSender):
    def __init__(self):
        self.sent = []

    def send(self, to, subject, text, html):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


class FailingSender(EmailSender):
    def send(self, to, subject, text, html):
        raise ConnectionRefusedError("smtp down")


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'bookings.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(
        database_url=database_url,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        secret_key="test-secret",
        notification_timeout_seconds=1.0,
    )


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def engine(database_url):
    create_schema(database_url)
    engine = sqlalchemy.create_engine(database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def client(settings, sender, engine):
    app = create_app(settings, sender=sender)
    with TestClient(app) as client:
        yield client


def add_room(engine, name, amenities='["Projector"]', capacity=10, space="Ground Floor"):
    with engine.begin() as conn:
        result = conn.execute(
            rooms.insert().values(name=name, space=space, capacity=capacity, amenities=amenities, status="available")
        )
        return result.inserted_primary_key[0]


def add_user(engine, email, full_name="Test User", role="user"):
    with engine.begin() as conn:
        result = conn.execute(
            users.insert().values(email=email, password_hash="unused", full_name=full_name, role=role)
        )
        return result.inserted_primary_key[0]


def add_booking(engine, user_id, room_id, booking_date, start, end, status="confirmed"):
    with engine.begin() as conn:
        result = conn.execute(
            bookings.insert().values(
                user_id=user_id,
                room_id=room_id,
                booking_date=booking_date,
                start_time=start,
                end_time=end,
                status=status,
            )
        )
        return result.inserted_primary_key[0]


@pytest.fixture
def room_a(engine):
    return add_room(engine, "Room A")


@pytest.fixture
def room_b(engine):
    return add_room(engine, "Room B", amenities='["Whiteboard", "TV"]')


@pytest.fixture
def signup(client):
    def _signup(email="amina@swahilipothub.co.ke", password="s3cret!", full_name="Amina Said", department="Tech"):
        response = client.post(
            "/signup",
            json={"email": email, "password": password, "fullName": full_name, "department": department},
        )
        assert response.status_code == 201, response.text
        return response.json()["user_id"]
    return _signup


@pytest.fixture
def user_id(signup):
    return signup()


@pytest.fixture
def confirmed_9_to_10(engine, room_a, user_id):
    return add_booking(engine, user_id, room_a, date(2024, 1, 10), time(9, 0), time(10, 0))
