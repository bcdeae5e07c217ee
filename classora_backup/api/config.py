"""Configuration for FastAPI application."""

import json
from typing import List, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # API Configuration
    api_prefix: str = "/api/v1"
    api_title: str = "classora-backup API"
    api_version: str = "1.0.0"
    allowed_origins: Union[str, List[str]] = ["*"]

    @field_validator('allowed_origins', mode='before')
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed_origins from string or list."""
        if isinstance(v, str):
            if v.startswith('['):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v]
            return [v]
        return v

    # Administrators allowed to manage backups (comma separated user ids)
    admin_user_ids: Union[str, List[str]] = Field(default_factory=list)

    @field_validator('admin_user_ids', mode='before')
    @classmethod
    def parse_admin_user_ids(cls, v):
        if isinstance(v, str):
            if v.startswith('['):
                return json.loads(v)
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    user_id_header: str = "x-user-id"

    # Run the automatic backup scheduler inside the API process
    run_scheduler: bool = True


settings = Settings()
