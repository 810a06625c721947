from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SERVER_URL: str = "https://www.activityinfo.org"
    API_TOKEN: Optional[str] = None
    REQUEST_TIMEOUT: float = 30.0
    LOG_LEVEL: str = "INFO"

    # Read FORMQUERY_* variables from the environment or the .env file
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="FORMQUERY_", extra="ignore"
    )


# Create a single instance of the settings to use everywhere
settings = Settings()
