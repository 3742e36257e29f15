"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_MINUTES: int
    DATABASE_URL: str
    DB_TIMEOUT_SECONDS: float
    STATIC_DIR: Path
    LOG_LEVEL: str
    ALLOW_DEV_CORS: bool

    def __init__(self):
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'quizcraft.db'}")
        self.DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))
        self.STATIC_DIR = Path(os.getenv("STATIC_DIR", str(BASE / "static")))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "false").lower() == "true"
        self._validate()

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def _validate(self):
        if not self.JWT_SECRET.strip():
            raise RuntimeError("JWT_SECRET must be set to sign authentication tokens")
        if self.JWT_EXPIRE_MINUTES <= 0:
            raise RuntimeError("JWT_EXPIRE_MINUTES must be a positive number of minutes")


settings = Settings()
