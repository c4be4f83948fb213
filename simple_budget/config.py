from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List
import os

# Load .env automatically
load_dotenv()


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "development")
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./simple_budget.db")
    sql_echo: bool = os.getenv("SQL_ECHO", "false").lower() in {"1", "true", "yes"}
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
    trial_days: int = int(os.getenv("TRIAL_DAYS", "30"))
    admin_emails: List[str] = _env_list("ADMIN_EMAILS")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Global settings instance used by the default app
settings = Settings()
