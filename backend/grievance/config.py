from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Database
    POSTGRES_USER: str = "grievance"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "grievance_desk"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    # Full URL override (sqlite:///./grievance.db for local runs and tests)
    DATABASE_URL: Optional[str] = None

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"

    # Business rules
    ACTIVE_COMPLAINT_LIMIT: int = 3

    # Unit of work
    LOCK_TIMEOUT_SECONDS: float = 5.0
    CONFLICT_RETRY_ATTEMPTS: int = 3
    CONFLICT_RETRY_BACKOFF_SECONDS: float = 0.05

    class Config:
        env_file = ".env"
        extra = "allow"  # Allow extra environment variables

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
