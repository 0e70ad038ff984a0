from pathlib import Path
from typing import List

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'CineMax Reservation'
    VERSION: str = '0.1.0'
    DEBUG: bool = True  # Set to False in production

    # Security (identity comes from an upstream-issued JWT)
    SECRET_KEY: SecretStr = SecretStr('test_secret_key_change_in_production')
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Tracing (OTLP gRPC, e.g. Jaeger on :4317)
    OTEL_EXPORTER_OTLP_ENDPOINT: str = ''
    OTEL_CONSOLE_EXPORT: bool = False
    DEPLOY_ENV: str = 'local_dev'

    # Log files (written only when DEBUG is on)
    LOG_DIR: str = str(_PROJECT_ROOT / 'logs')

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []  # add your frontend URL here

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',')]
        elif isinstance(v, list):
            return v
        return []

    # Database (any SQLAlchemy async URL)
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: str = '5432'
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'cinemax_reservation'
    DATABASE_URL: str = ''
    DB_ECHO: bool = False
    DB_CREATE_TABLES_ON_STARTUP: bool = True

    @property
    def DATABASE_URL_ASYNC(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}'
            f'@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    # Seat holds
    HOLD_TTL_SECONDS: int = 900  # 15 minutes checkout budget
    HOLD_TTL_MIN_SECONDS: int = 60
    HOLD_TTL_MAX_SECONDS: int = 1800
    MAX_SEATS_PER_HOLD: int = 10
    HOLD_SWEEP_INTERVAL_SECONDS: float = 30.0

    # Bookings
    CANCELLATION_CUTOFF_HOURS: float = 2.0
    BOOKING_REFERENCE_LENGTH: int = 8

    # Seat event fan-out
    SUBSCRIBER_BUFFER_SIZE: int = 100

    # Booking domain events (mailer collaborator)
    BOOKING_EVENT_BUFFER_SIZE: int = 1000
    KAFKA_BOOTSTRAP_SERVERS: str = ''  # empty disables Kafka, events go to the log
    KAFKA_RETRIES: int = 3
    KAFKA_LINGER_MS: int = 50
    BOOKING_EVENT_TOPIC: str = 'cinemax.booking-events'

    @property
    def KAFKA_ENABLED(self) -> bool:
        return bool(self.KAFKA_BOOTSTRAP_SERVERS)

    @property
    def KAFKA_PRODUCER_CONFIG(self) -> dict:
        return {
            'bootstrap.servers': self.KAFKA_BOOTSTRAP_SERVERS,
            'enable.idempotence': True,
            'acks': 'all',
            'retries': self.KAFKA_RETRIES,
            'linger.ms': self.KAFKA_LINGER_MS,
            'compression.type': 'snappy',
        }


settings = Settings()  # type: ignore
