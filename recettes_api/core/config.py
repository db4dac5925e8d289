from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    PROJECT_NAME: str = "API Recettes"
    VERSION: str = "1.0.0"
    # "production" hides stack traces from error responses
    ENVIRONMENT: str = "production"

    SECRET_KEY: str = "change-me-jwt-secret"  # Default for dev, override in prod
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60

    # Database
    DATABASE_URL: str = "sqlite:///./recettes.db"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000"
    ]

    # Rate limiting on login / registration
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/minute"

    LOGGING_CONFIG: str = "logging.ini"

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

settings = Settings()
