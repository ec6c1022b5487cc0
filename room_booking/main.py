# main.py
import logging
from contextlib import asynccontextmanager
from datetime import date, time
from typing import List, Optional

import fastapi
from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from room_booking.auth import (
    INVALID_CREDENTIALS,
    LoginRequest,
    SignupRequest,
    User,
    authenticate_user,
    create_access_token,
    create_user,
    get_current_active_user,
    get_user_by_email,
    register_user,
    to_profile,
)
from room_booking.booking_system import BookingSystem
from room_booking.config import Settings
from room_booking.data_models import Booking, BookingCreated, Room, UserBooking
from room_booking.database import create_database, create_schema
from room_booking.errors import (
    BookingServiceError,
    ConflictError,
    ForbiddenError,
    store_errors,
)
from room_booking.notifications import (
    EmailSender,
    NotificationDispatcher,
    build_sender,
    welcome_email,
)

logger = logging.getLogger(__name__)


# Booking Models
class BookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    room_id: int = Field(alias="roomId")
    booking_date: date = Field(alias="date")
    start_time: time = Field(alias="startTime")
    end_time: time = Field(alias="endTime")

    @field_validator("start_time", "end_time")
    @classmethod
    def must_be_naive(cls, v: time) -> time:
        # Stored times are wall-clock times of the room's site
        if v.tzinfo is not None:
            raise ValueError("time must not carry a timezone offset")
        return v


class StatusUpdate(BaseModel):
    status: str


async def seed_admin(app: fastapi.FastAPI):
    """Creates the administrator account from the environment if it is missing."""
    settings: Settings = app.state.settings
    database = app.state.database
    if not (settings.admin_email and settings.admin_password):
        return
    async with database.transaction():
        if await get_user_by_email(database, settings.admin_email) is None:
            await create_user(
                database,
                email=settings.admin_email,
                password=settings.admin_password,
                full_name="Administrator",
                role="admin",
            )
            logger.info("Seeded admin account %s", settings.admin_email)


def get_booking_system(request: Request) -> BookingSystem:
    return request.app.state.booking_system


def create_app(settings: Optional[Settings] = None, sender: Optional[EmailSender] = None) -> fastapi.FastAPI:
    settings = settings or Settings.from_env()
    sender = sender or build_sender(settings)

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI):
        create_schema(settings.database_url)
        database = create_database(settings.database_url)
        await database.connect()
        dispatcher = NotificationDispatcher(
            sender,
            maxsize=settings.notification_queue_size,
            timeout=settings.notification_timeout_seconds,
        )
        dispatcher.start()

        app.state.database = database
        app.state.dispatcher = dispatcher
        app.state.booking_system = BookingSystem(database, dispatcher, admin_email=settings.admin_email)
        try:
            await seed_admin(app)
            yield
        finally:
            await dispatcher.stop()
            await database.disconnect()

    app = fastapi.FastAPI(title="Room Booking", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BookingServiceError)
    async def booking_service_error_handler(request: Request, exc: BookingServiceError):
        content = {"detail": exc.message}
        if isinstance(exc, ConflictError) and exc.conflicting_booking is not None:
            content["conflicting_booking"] = jsonable_encoder(exc.conflicting_booking)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.get("/health")
    async def health(request: Request):
        try:
            await request.app.state.database.fetch_val("SELECT 1")
        except Exception:
            logger.exception("Health check: database unreachable")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"status": "error", "database": "disconnected"},
            )
        return {"status": "ok", "database": "connected"}

    @app.post("/signup", status_code=status.HTTP_201_CREATED)
    async def signup(user: SignupRequest, request: Request):
        if settings.is_admin_email(user.email):
            raise ForbiddenError("Cannot use admin email for signup")

        database = request.app.state.database
        with store_errors("Registration failed"):
            user_id = await register_user(
                database,
                email=user.email,
                password=user.password,
                full_name=user.full_name,
                department=user.department,
            )
        logger.info("New user registered: %s", user.email)

        request.app.state.dispatcher.notify(user.email, *welcome_email(user.full_name))
        return {"message": "User registered successfully", "user_id": user_id}

    @app.post("/login")
    async def login(credentials: LoginRequest, request: Request):
        with store_errors("Login failed"):
            user_record = await authenticate_user(request.app.state.database, credentials.email, credentials.password)
        if user_record is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=INVALID_CREDENTIALS,
            )
        logger.info("User logged in: %s", user_record["email"])

        response = {"message": "Login successful", "user": to_profile(user_record).model_dump()}
        if settings.secret_key:
            response["access_token"] = create_access_token(data={"sub": user_record["email"]}, settings=settings)
            response["token_type"] = "bearer"
        return response

    @app.get("/rooms", response_model=List[Room])
    async def list_rooms(booking_date: Optional[date] = Query(None, alias="date"), system: BookingSystem = Depends(get_booking_system)):
        return await system.get_available_rooms(booking_date)

    @app.get("/rooms/{room_id}", response_model=Room)
    async def get_room(room_id: int, system: BookingSystem = Depends(get_booking_system)):
        return await system.get_room(room_id)

    @app.post("/book", status_code=status.HTTP_201_CREATED)
    async def book_room(booking: BookingRequest, system: BookingSystem = Depends(get_booking_system)):
        created: BookingCreated = await system.book_room(
            user_id=booking.user_id,
            room_id=booking.room_id,
            booking_date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
        )
        return {"message": "Booking created successfully", "booking": created}

    @app.get("/bookings/user/{user_id}", response_model=List[UserBooking])
    async def user_bookings(user_id: int, system: BookingSystem = Depends(get_booking_system)):
        return await system.get_user_bookings(user_id)

    @app.patch("/bookings/{booking_id}/status", response_model=Booking)
    async def update_booking_status(
        booking_id: int,
        update: StatusUpdate,
        current_user: User = Depends(get_current_active_user),
        system: BookingSystem = Depends(get_booking_system),
    ):
        return await system.update_booking_status(booking_id, update.status, current_user)

    return app


def build_app() -> fastapi.FastAPI:
    """Entry point for `uvicorn room_booking.main:build_app --factory`."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return create_app(settings)
