import os
import logging

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8081

DEFAULT_ENV_FILE = "dev.env"


def is_production(env: Optional[str]) -> bool:
    return (env or "").upper() == "PRODUCTION"


class Settings(BaseSettings):
    env: str = Field(default="", title="Runtime mode", validation_alias="ENV")
    app_port: int = Field(default=DEFAULT_PORT, title="HTTP port", validation_alias="APP_PORT")

    db_host: str = Field(default="localhost", title="Database host", validation_alias="DBHOST")
    db_port: int = Field(default=5432, title="Database port", validation_alias="DBPORT")
    db_user: str = Field(default="", title="Database user", validation_alias="DBUSER")
    db_pass: str = Field(default="", title="Database password", validation_alias="DBPASS")
    db_name: str = Field(default="", title="Database name", validation_alias="DBNAME")
    database_url: Optional[str] = Field(default=None, title="Full database URL", validation_alias="DATABASE_URL")
    db_timeout: float = Field(default=60.0, title="Database timeout in seconds", validation_alias="DB_TIMEOUT")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("app_port", mode="before")
    @classmethod
    def default_port(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PORT
        return value

    @property
    def production(self) -> bool:
        return is_production(self.env)

    @property
    def enable_query_logging(self) -> bool:
        return not self.production


def load_settings(env_file: Optional[str] = DEFAULT_ENV_FILE) -> Settings:
    """Read settings from the environment.

    Outside of production ``env_file`` is used as a fallback source, so a
    local ``dev.env`` can supply the database credentials.
    """
    if is_production(os.environ.get("ENV")) or env_file is None:
        return Settings(_env_file=None)

    if not os.path.exists(env_file):
        logger.debug(f"No env file at {env_file}")
    return Settings(_env_file=env_file, _env_file_encoding="utf-8")
