# ================================
# file: app/core/config.py
# ================================
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Mandatory: missing values stop the app at import time
    DB_URL: str
    JWT_SECRET: str

    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # Password hashing
    BCRYPT_ROUNDS: int = 12
    PASSWORD_PEPPER: str = ""

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Rate limit (fixed window per client)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX_REQUESTS: int = 1000
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = 100

    # Uploads / body limits
    UPLOAD_PATH: str = "uploads"
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    MAX_FILES: int = 10
    MAX_JSON_BODY: int = 10 * 1024 * 1024

    REQUEST_TIMEOUT_MS: int = 120000

    # Staff of these departments review medical evidence
    EXAM_DEPARTMENT_NAMES: str = "Examination Department,Exam Department"

    AUDIT_HMAC_SECRET: str = "audit-dev"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def exam_department_names(self) -> List[str]:
        return [n.strip() for n in self.EXAM_DEPARTMENT_NAMES.split(",") if n.strip()]


settings = Settings()
