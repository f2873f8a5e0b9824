"""
Runtime configuration, read from EMAIL_AUTH_CHECK_* environment variables.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .dns_utils import DNS_TIMEOUT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EMAIL_AUTH_CHECK_", env_file=".env", extra="ignore")

    dns_timeout: float = Field(default=DNS_TIMEOUT, gt=0)
    # identity of the receiving server; only its Authentication-Results are trusted
    authserv_id: Optional[str] = None
    nameservers: List[str] = Field(default_factory=list)
    check_dnssec: bool = True
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
