"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    DB_POOL_SIZE: int
    DB_MAX_OVERFLOW: int
    DB_STATEMENT_TIMEOUT_MS: int
    API_PREFIX: str
    LIST_FALLBACK_ON_ERROR: bool
    SESSION_MAX_AGE_DAYS: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'licence_admin.db'}")
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
        self.API_PREFIX = os.getenv("API_PREFIX", "/admin/aapi").rstrip("/")
        self.LIST_FALLBACK_ON_ERROR = os.getenv("LIST_FALLBACK_ON_ERROR", "true").lower() == "true"
        self.SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.DB_STATEMENT_TIMEOUT_MS <= 0:
            raise RuntimeError("DB_STATEMENT_TIMEOUT_MS must be a positive number of milliseconds")
        if self.DB_POOL_SIZE < 1:
            raise RuntimeError("DB_POOL_SIZE must be at least 1")
        if self.ENV != "dev" and self.DATABASE_URL.startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must point at PostgreSQL in non-dev environments")


settings = Settings()
