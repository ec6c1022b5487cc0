# config.py
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read once from the environment (and .env)."""
    database_url: str = "sqlite:///./room_booking.db"
    admin_email: str = ""
    admin_password: str = ""
    secret_key: Optional[str] = None
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    smtp_from_name: str = "Room Booking"
    frontend_url: str = "http://localhost:5173"
    notification_queue_size: int = 100
    notification_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        smtp_user = os.getenv("SMTP_USER", "")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./room_booking.db"),
            admin_email=os.getenv("ADMIN_EMAIL", ""),
            admin_password=os.getenv("ADMIN_PASSWORD", ""),
            secret_key=os.getenv("SECRET_KEY"),
            algorithm=os.getenv("ALGORITHM", "HS256"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30)),
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=int(os.getenv("SMTP_PORT", "465")),
            smtp_user=smtp_user,
            smtp_pass=os.getenv("SMTP_PASS", ""),
            smtp_from=os.getenv("SMTP_FROM", smtp_user),
            smtp_from_name=os.getenv("SMTP_FROM_NAME", "Room Booking"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            notification_queue_size=int(os.getenv("NOTIFICATION_QUEUE_SIZE", 100)),
            notification_timeout_seconds=float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", 10)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def is_admin_email(self, email: str) -> bool:
        return bool(self.admin_email) and email.strip().lower() == self.admin_email.strip().lower()
