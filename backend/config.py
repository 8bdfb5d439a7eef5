# backend/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore")

    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480
    DATABASE_URL: str = "sqlite:///./database_logistics.db"
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: Optional[str] = None

    # Bounded retries when two creators race for the same order number
    ORDER_NUMBER_RETRIES: int = 5

    # Mail relay used by the notification dispatcher (empty = disabled)
    MAIL_RELAY_URL: Optional[str] = None
    MAIL_RELAY_TOKEN: Optional[str] = None
    MAIL_TIMEOUT_SECONDS: float = 10.0
    MAIL_SENDER: str = "System Transportowy <logistyka@grupaeltron.pl>"
    LOGISTICS_MAILBOX: str = "logistyka@grupaeltron.pl"

    # Recipients of "new transport request" notifications
    TRANSPORT_MANAGERS: List[str] = [
        "kierownik.bialystok@grupaeltron.pl",
        "kierownik.zielonka@grupaeltron.pl",
    ]
    # Order creators who get forwarding responses directly
    RESPONSE_NOTIFY_CREATORS: List[str] = [
        "mateusz.klewinowski@grupaeltron.pl",
    ]

settings = Settings()
