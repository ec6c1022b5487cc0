# models.py
import sqlalchemy
from room_booking.database import metadata

BOOKING_STATUSES = ("pending", "confirmed", "cancelled")
# Only these statuses occupy a room
ACTIVE_STATUSES = ("pending", "confirmed")

#'users' table
users = sqlalchemy.Table(
    "users",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("email", sqlalchemy.String(255), unique=True, index=True, nullable=False),
    sqlalchemy.Column("password_hash", sqlalchemy.String(255), nullable=False),
    sqlalchemy.Column("full_name", sqlalchemy.String(255), nullable=False),
    sqlalchemy.Column("department", sqlalchemy.String(255), nullable=True),
    sqlalchemy.Column("role", sqlalchemy.String(20), default="user", nullable=False),
)

#'rooms' table, owned by the room catalog
rooms = sqlalchemy.Table(
    "rooms",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String(255), nullable=False),
    sqlalchemy.Column("space", sqlalchemy.String(255), nullable=True),
    sqlalchemy.Column("capacity", sqlalchemy.Integer, nullable=True),
    # JSON-encoded list of strings
    sqlalchemy.Column("amenities", sqlalchemy.Text, nullable=True),
    sqlalchemy.Column("status", sqlalchemy.String(50), default="available"),
)

bookings = sqlalchemy.Table(
    "bookings",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("user_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("users.id"), nullable=False),
    sqlalchemy.Column("room_id", sqlalchemy.Integer, sqlalchemy.ForeignKey("rooms.id"), nullable=False),
    sqlalchemy.Column("booking_date", sqlalchemy.Date, nullable=False),
    sqlalchemy.Column("start_time", sqlalchemy.Time, nullable=False),
    sqlalchemy.Column("end_time", sqlalchemy.Time, nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String(20), default="pending", nullable=False),
    sqlalchemy.Column(
        "created_at",
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        nullable=False,
    ),
    sqlalchemy.CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
    sqlalchemy.CheckConstraint(
        "status IN ('pending', 'confirmed', 'cancelled')", name="ck_bookings_status"
    ),
    sqlalchemy.Index("ix_bookings_room_date", "room_id", "booking_date"),
)
