from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv


class Settings(BaseSettings):
    PROJECT_NAME: str = "VentureLink"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # Database
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_RETRY_INTERVAL_SECONDS: float = 30.0

    # Adapters
    DATA_BACKEND: str = "supabase"
    IDENTITY_BACKEND: str = "supabase"
    AFFILIATIONS_TABLE: str = "investor_companies"

    # Roster behaviour
    REMOTE_TIMEOUT_SECONDS: float = 10.0
    ACTIVE_ROLE_KEYWORDS: List[str] = Field(
        default_factory=lambda: ["ceo", "founder", "managing", "partner"]
    )

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:8000",
        ]
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_DIR: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


load_dotenv()

settings = Settings()
