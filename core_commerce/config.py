# core_commerce/config.py
"""
Database configuration management
"""
import logging
from typing import Optional
from dataclasses import dataclass

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from .constants import (
    DEFAULT_PORT, DEFAULT_MAX_CONNECTIONS, DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_IDLE_TIMEOUT
)

logger = logging.getLogger(__name__)

ASYNC_DRIVER = "postgresql+asyncpg"


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Immutable database configuration

    The core only consumes this object; reading the environment is left to
    the application bootstrap (see ConfigLoader).
    """
    host: str
    db_name: str
    username: str
    password: str = ""
    port: int = DEFAULT_PORT
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    ssl: bool = False
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT
    max_lifetime: Optional[int] = None
    debug: bool = False
    statement_timeout: Optional[int] = None

    def __post_init__(self):
        """Validate configuration after initialization"""
        if not self.host:
            raise ValueError("Database host cannot be empty")
        if not self.db_name:
            raise ValueError("Database name cannot be empty")
        if self.port <= 0:
            raise ValueError("Port must be positive")
        if self.max_connections <= 0:
            raise ValueError("Max connections must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("Connect timeout must be positive")

    def url(self, db_name: Optional[str] = None) -> URL:
        """SQLAlchemy URL for the asyncpg driver"""
        return URL.create(
            ASYNC_DRIVER,
            username=self.username,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=db_name or self.db_name,
        )

    @property
    def pool_recycle(self) -> int:
        """Seconds after which pooled connections are replaced (-1 = never)"""
        if self.max_lifetime:
            return self.max_lifetime
        if self.idle_timeout:
            return self.idle_timeout
        return -1


class DatabaseSettings(BaseSettings):
    """Environment (and .env) backed settings, prefixed with DB_"""

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = "localhost"
    port: int = DEFAULT_PORT
    name: str = "postgres"
    user: str = "postgres"
    password: str = ""
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    ssl: bool = False
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT
    max_lifetime: Optional[int] = None
    debug: bool = False
    statement_timeout: Optional[int] = None


class ConfigLoader:
    """Load and validate database configuration"""

    @staticmethod
    def from_environment() -> DatabaseConfig:
        """Load configuration from DB_* environment variables"""
        settings = DatabaseSettings()
        return ConfigLoader.from_settings(settings)

    @staticmethod
    def from_settings(settings: DatabaseSettings) -> DatabaseConfig:
        return DatabaseConfig(
            host=settings.host,
            port=settings.port,
            db_name=settings.name,
            username=settings.user,
            password=settings.password,
            max_connections=settings.max_connections,
            connect_timeout=settings.connect_timeout,
            ssl=settings.ssl,
            idle_timeout=settings.idle_timeout,
            max_lifetime=settings.max_lifetime,
            debug=settings.debug,
            statement_timeout=settings.statement_timeout,
        )

    @staticmethod
    def from_params(host: str, db_name: str, username: str, **kwargs) -> DatabaseConfig:
        """Load configuration from parameters"""
        return DatabaseConfig(host=host, db_name=db_name, username=username, **kwargs)


def get_database_config(
    host: Optional[str] = None,
    db_name: Optional[str] = None,
    username: Optional[str] = None,
    **kwargs
) -> DatabaseConfig:
    """
    Main function to get database configuration
    Explicit parameters win over environment variables
    """
    if host and db_name and username:
        return ConfigLoader.from_params(host=host, db_name=db_name, username=username, **kwargs)
    logger.debug("Loading database configuration from environment")
    return ConfigLoader.from_environment()
