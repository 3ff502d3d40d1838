from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_CHECKOUT_WARN_SECONDS: float = 5.0
    AUTO_CREATE_TABLES: bool = False

    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # 5MB
    MAX_IMPORT_SIZE: int = 10 * 1024 * 1024  # 10MB

    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: str = "leadportal-documents"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_ENDPOINT_URL: Optional[str] = None
    DOCUMENT_URL_TTL: int = 24 * 3600  # 24 hours
    DOCUMENT_UPLOAD_URL_TTL: int = 7 * 24 * 3600  # 7 days

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT: int = 100
    RATE_LIMIT_WINDOW: int = 600  # 10 minutes

    ENFORCE_STATUS_TRANSITIONS: bool = False

    API_TITLE: str = "Lead Portal API"
    API_DESCRIPTION: str = "Lead intake, review workflow, documents and CSV import/export"
    API_VERSION: str = "1.0.0"

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
