from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Satellite Task Records"
    API_V1_STR: str = "/api"
    LOG_LEVEL: str = "INFO"

    POSTGRES_USER: str = "satrec"
    POSTGRES_PASSWORD: str = "secure_password"
    POSTGRES_DB: str = "satellite_records"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"

    DATABASE_URL: Optional[str] = None

    # Connection pool, kept small for serverless Postgres providers
    DB_POOL_SIZE: int = 3
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT: int = 5
    DB_POOL_RECYCLE: int = 300
    DB_CONNECT_TIMEOUT: int = 5
    DB_STATEMENT_TIMEOUT_MS: int = 15000

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    JWT_SECRET: str = "satellite-records-jwt-secret-change-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 50

    MAX_UPLOAD_BYTES: int = int(4.5 * 1024 * 1024)
    IMPORT_BATCH_SIZE: int = 100
    EXPORT_LIMIT: int = 10000
    CHART_DEFAULT_LIMIT: int = 10000
    CHART_MAX_LIMIT: int = 50000
    CHART_DEFAULT_DAYS: int = 30

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            # Some providers still hand out 'postgres://', which SQLAlchemy no longer accepts
            url = self.DATABASE_URL
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            return url
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        case_sensitive = True
        env_file = ".env"

settings = Settings()
