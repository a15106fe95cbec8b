from pydantic_settings import BaseSettings
from typing import Optional, List

from vibeledger.core.constants import DebitPolicyEnum

class Settings(BaseSettings):
    PROJECT_NAME: str = "Vibe Ledger"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_ALGORITHM: str = "HS256"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./vibeledger.db"
    TEST_DATABASE_URL: Optional[str] = None
    STORAGE_TIMEOUT_SECONDS: float = 5.0
    STORAGE_RETRY_ATTEMPTS: int = 3
    STORAGE_RETRY_BASE_DELAY: float = 0.05
    STORAGE_RETRY_MAX_DELAY: float = 1.0

    # Ledger
    WALLET_DEBIT_POLICY: DebitPolicyEnum = DebitPolicyEnum.REJECT
    PLATFORM_FEE_PERCENTAGE: float = 7.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"

settings = Settings()
