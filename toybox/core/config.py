# toybox/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # General
    ENV: str = "dev"
    APP_NAME: str = "Toybox Emulator"

    # Storage / DB
    DB_URL: str = "sqlite:///./data/toybox.db"
    STORAGE_BACKEND: str = "local"
    BLOB_ROOT: str = "./data/cdn"
    S3_BUCKET: str = ""
    AWS_REGION: str = "us-east-1"

    # Wire formats
    CONTENT_URL_BASE: str = "http://api.cl0udb0x.com/content/getzip?id="

    # Listing
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_DIR: str = "./logs"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

_settings: Settings | None = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
