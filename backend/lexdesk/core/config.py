from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    project_name: str = "lexdesk"
    version: str = "1.0.0"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./lexdesk.db"
    sql_echo: bool = False

    cors_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # tokens
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_refresh_secret_key: str = "dev-refresh-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    # login / session bookkeeping
    session_ttl_hours: int = 24
    max_login_attempts: int = 5
    lockout_minutes: int = 30
    login_history_limit: int = 50
    session_history_limit: int = 20

    # listing
    default_list_limit: int = 50
    max_list_limit: int = 200
    timeline_page_limit: int = 200

    archive_retention_days: int = 2555

    report_dir: str = "./reports"
    report_generate_pdf: bool = False

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
