# notifications.py
"""Best-effort email notifications.

Callers enqueue a job and move on. A single worker task drains the queue,
sends each message in a thread with a deadline, and only logs failures.
"""
import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from room_booking.config import Settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates" / "emails"
BRAND = "SwahiliPot Hub"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


class EmailSender(ABC):
    """Delivers one email. Implementations may block and may raise."""

    @abstractmethod
    def send(self, to: str, subject: str, text: str, html: str) -> None:
        pass


class SmtpEmailSender(EmailSender):
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_pass
        self.from_addr = settings.smtp_from or settings.smtp_user
        self.from_name = settings.smtp_from_name
        self.timeout = settings.notification_timeout_seconds

    def send(self, to: str, subject: str, text: str, html: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_addr}>"
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(),
                                  timeout=self.timeout) as server:
                if self.user:
                    server.login(self.user, self.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=ssl.create_default_context())
                if self.user:
                    server.login(self.user, self.password)
                server.send_message(msg)
        logger.info("Email sent to %s: %s", to, subject)


class LoggingEmailSender(EmailSender):
    """Used when no SMTP host is configured; messages only reach the log."""

    def send(self, to: str, subject: str, text: str, html: str) -> None:
        logger.info("Email to %s (not delivered, SMTP not configured): %s\n%s", to, subject, text)


def build_sender(settings: Settings) -> EmailSender:
    if settings.smtp_host:
        return SmtpEmailSender(settings)
    return LoggingEmailSender()


@dataclass(frozen=True)
class EmailJob:
    to: str
    subject: str
    text: str
    html: str


class NotificationDispatcher:
    """Bounded queue of email jobs plus the worker that drains it."""

    def __init__(self, sender: EmailSender, maxsize: int = 100, timeout: float = 10.0):
        self.sender = sender
        self.timeout = timeout
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    def notify(self, to: str, subject: str, text: str, html: str) -> bool:
        """Enqueues a message without waiting. Returns False if it was dropped."""
        if not to:
            return False
        try:
            self.queue.put_nowait(EmailJob(to, subject, text, html))
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping email to %s: %s", to, subject)
            return False
        return True

    async def deliver(self, job: EmailJob) -> None:
        """Sends one job. Never raises; there are no retries."""
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.sender.send, job.to, job.subject, job.text, job.html),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Email to %s timed out after %ss: %s", job.to, self.timeout, job.subject)
        except Exception:
            logger.exception("Email to %s failed: %s", job.to, job.subject)

    async def run(self) -> None:
        while True:
            job = await self.queue.get()
            try:
                await self.deliver(job)
            finally:
                self.queue.task_done()

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self.run())

    async def stop(self, drain_timeout: float = 5.0) -> None:
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("Dropping %d undelivered notification(s) on shutdown", self.queue.qsize())
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None


# Message builders: each returns (subject, text, html)

def welcome_email(full_name: str):
    subject = f"Welcome to {BRAND}!"
    text = (
        f"Hello {full_name},\n\n"
        f"Welcome to {BRAND} Room Booking System! You can now book rooms for your meetings and events.\n\n"
        f"Best regards,\n{BRAND} Team"
    )
    html = templates.get_template("welcome.html").render(brand=BRAND, full_name=full_name)
    return subject, text, html


def booking_request_email(room_name, user_name, user_email, booking_date, start_time, end_time):
    subject = "New Room Booking Request"
    text = (
        f"New booking request:\n\n"
        f"Room: {room_name}\nUser: {user_name} ({user_email})\n"
        f"Date: {booking_date}\nTime: {start_time} - {end_time}"
    )
    html = templates.get_template("booking_request.html").render(
        room_name=room_name, user_name=user_name, user_email=user_email,
        booking_date=booking_date, start_time=start_time, end_time=end_time,
    )
    return subject, text, html


def booking_received_email(room_name, user_name, booking_date, start_time, end_time):
    subject = "Room Booking Confirmation"
    text = (
        f"Hello {user_name},\n\n"
        f"Your booking request has been received!\n\n"
        f"Room: {room_name}\nDate: {booking_date}\nTime: {start_time} - {end_time}\n\n"
        f"You will receive a confirmation once approved.\n\n"
        f"Best regards,\n{BRAND} Team"
    )
    html = templates.get_template("booking_received.html").render(
        brand=BRAND, room_name=room_name, user_name=user_name,
        booking_date=booking_date, start_time=start_time, end_time=end_time,
    )
    return subject, text, html


def booking_status_email(room_name, user_name, booking_date, start_time, end_time, new_status):
    subject = f"Room Booking {new_status.capitalize()}"
    text = (
        f"Hello {user_name},\n\n"
        f"Your booking for {room_name} on {booking_date} ({start_time} - {end_time}) "
        f"is now {new_status}.\n\n"
        f"Best regards,\n{BRAND} Team"
    )
    html = templates.get_template("booking_status.html").render(
        brand=BRAND, room_name=room_name, user_name=user_name, booking_date=booking_date,
        start_time=start_time, end_time=end_time, new_status=new_status,
    )
    return subject, text, html
