# evu_diag/config.py
from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Annotated, Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


_DEFAULT_REGIONS = ["eu-central-1", "eu-west-1", "us-east-1", "eu-west-2", "eu-west-3"]

# Regions not covered by the default sweep.
_DEFAULT_EXTENDED_REGIONS = [
    "us-west-1",
    "us-west-2",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-northeast-1",
    "ap-northeast-2",
    "sa-east-1",
    "ca-central-1",
    "eu-central-2",
    "eu-north-1",
    "me-central-1",
]

_DEFAULT_USER_FORMATS = ["postgres.{project_ref}", "{project_ref}", "postgres"]

_LIST_FIELDS = (
    "POOLER_REGIONS",
    "POOLER_EXTENDED_REGIONS",
    "POOLER_USER_FORMATS",
    "POOLER_PORTS",
    "DNS_SERVICES",
)


class MissingSettingError(RuntimeError):
    """Raised when a probe needs a secret or endpoint that is not configured."""


class Settings(BaseSettings):
    # Managed backend (no defaults for credentials)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_PROJECT_REF: Optional[str] = None
    SUPABASE_DB_PASSWORD: Optional[str] = None
    DATABASE_URL: Optional[str] = None
    DIRECT_URL: Optional[str] = None

    # Pooler sweep / DNS probe
    POOLER_REGIONS: Annotated[list[str], NoDecode] = list(_DEFAULT_REGIONS)
    POOLER_EXTENDED_REGIONS: Annotated[list[str], NoDecode] = list(_DEFAULT_EXTENDED_REGIONS)
    POOLER_USER_FORMATS: Annotated[list[str], NoDecode] = list(_DEFAULT_USER_FORMATS)
    POOLER_PORTS: Annotated[list[int], NoDecode] = [6543, 5432]
    POOLER_DOMAIN: str = "pooler.supabase.com"
    PROJECT_DOMAIN: str = "supabase.co"
    DNS_SERVICES: Annotated[list[str], NoDecode] = ["db", "api", "auth"]
    DB_NAME: str = "postgres"
    CONNECT_TIMEOUT_MS: int = 3000

    # Funnel API
    LOCAL_BASE_URL: str = "http://localhost:3000"
    API_URL: str = "https://enfinitus-production.up.railway.app/api/v1"
    FUNNEL_ID: str = "enfinitus-website"
    HTTP_TIMEOUT: float = 30.0

    # Test harness (.env.test)
    TEST_DB_NAME: str = "evu_backend_test"
    JWT_SECRET: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def _split_list(cls, value: Any) -> Any:
        """Accept JSON arrays or comma-separated strings from the environment."""
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                return json.loads(text)
            return [part.strip() for part in text.split(",") if part.strip()]
        return value

    def require(self, name: str) -> str:
        value = getattr(self, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise MissingSettingError(f"Missing {name}; set it in the environment or .env")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Console logging for the CLI scripts; results go to stdout, logs to stderr."""
    resolved = (level or get_settings().LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
