from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    STORAGE_BACKEND: str = "json"  # json, sql
    DATA_DIR: str = "./data"
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    AUTO_REMOVE_ON_ZERO: bool = True
    DEFAULT_MIN_STOCK: int = 5
    RECENT_WINDOW_HOURS: int = 24
    LOCK_TIMEOUT_SECONDS: int = 10
    LOW_STOCK_SCAN_SECONDS: int = 300
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
