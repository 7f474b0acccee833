from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./attendance.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "dev-secret-attendance"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"
    CACHE_TTL: int = 300  # 5 minutes
    RATE_LIMIT_PER_MINUTE: int = 60
    CHECKIN_TOKEN_TTL_MINUTES: int = 15
    # calendar day boundary for "already marked today"
    SCHOOL_TIMEZONE: str = "UTC"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
