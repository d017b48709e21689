from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    env: str = "dev"
    secret_key: str = "change_me_super_secret"
    jwt_algorithm: str = "HS256"
    database_url: str = "postgresql+psycopg2://shiftuser:shiftpass@db:5432/staffshift"
    business_header: str = "X-Business-ID"
    backend_cors_origins: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Shift dates and expected start times are anchored to this zone
    timezone: str = "Asia/Bishkek"

    default_percent_master: float = 60
    default_percent_salon: float = 40
    max_adjusted_hours: float = 48

    # Shared secret for the overdue-shift closer
    cron_secret: str = "change_me_cron_secret"

    port: int = int(os.getenv("PORT", "8000"))

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        origins = self.backend_cors_origins
        return [origin.strip() for origin in origins.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
