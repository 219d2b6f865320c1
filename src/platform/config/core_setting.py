from pathlib import Path
from typing import Annotated, List, Literal

import orjson
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_ENV_PATH = _PROJECT_ROOT / '.env'
_ENV_FILE = _ENV_PATH if _ENV_PATH.exists() else (_PROJECT_ROOT / '.env.example')


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_ignore_empty=True,
        extra='ignore',
    )

    PROJECT_NAME: str = 'Event Registration Core'
    VERSION: str = '0.1.0'
    DEBUG: bool = False
    LOG_TO_FILE: bool = False

    # Primary store (PostgreSQL)
    POSTGRES_SERVER: str = 'localhost'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'postgres'
    POSTGRES_PASSWORD: SecretStr = SecretStr('postgres')
    POSTGRES_DB: str = 'event_registration'
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True

    @property
    def DATABASE_URL_ASYNC(self) -> str:
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:'
            f'{self.POSTGRES_PASSWORD.get_secret_value()}@'
            f'{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    # Secondary store (ScyllaDB)
    # NoDecode: env values arrive raw, as a comma list or a JSON array
    SCYLLA_CONTACT_POINTS: Annotated[List[str], NoDecode] = ['localhost']
    SCYLLA_PORT: int = 9042
    SCYLLA_KEYSPACE: str = 'event_registration'
    SCYLLA_USERNAME: str = 'cassandra'
    SCYLLA_PASSWORD: SecretStr = SecretStr('cassandra')
    SCYLLA_CONNECT_TIMEOUT: int = 10
    SCYLLA_CONTROL_TIMEOUT: int = 10
    SCYLLA_REQUEST_TIMEOUT: float = 10.0
    SCYLLA_REPLICATION_FACTOR: int = 1
    SCYLLA_EVENT_LEASE_TTL_SECONDS: int = 30

    @field_validator('SCYLLA_CONTACT_POINTS', mode='before')
    @classmethod
    def assemble_scylla_contact_points(cls, v: str | List[str]) -> List[str]:
        if isinstance(v, str) and v.strip().startswith('['):
            return [str(i).strip() for i in orjson.loads(v)]
        elif isinstance(v, str):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return v
        return ['localhost']

    # Store routing
    STORE_SCHEMA_AUTO_CREATE: bool = False
    PRIMARY_STORE_ENABLED: bool = True
    SECONDARY_STORE_BACKEND: Literal['scylla', 'memory'] = 'scylla'
    STORE_TIMEOUT_SECONDS: float = 30.0
    FALLBACK_HISTORY_SIZE: int = 100

    # Retry policy (exponential backoff with +/-25% jitter)
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 30.0
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # Check-in
    CHECK_IN_GRACE_HOURS: float = 4.0

    # Waitlist promotion sweeper
    PROMOTION_SWEEP_ENABLED: bool = True
    PROMOTION_SWEEP_INTERVAL_SECONDS: float = 15.0


settings = Settings()  # type: ignore
