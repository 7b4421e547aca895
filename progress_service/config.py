from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./progress.db"
    SECRET_KEY: str = "dev-secret-progress"
    JWT_ALGORITHM: str = "HS256"
    LOG_LEVEL: str = "INFO"
    # календарный день стрика считается в этой зоне
    STREAK_TIMEZONE: str = "UTC"
    STREAK_CAS_RETRIES: int = 5
    CERTIFICATE_PREFIX: str = "CERT"
    CERTIFICATE_NUMBER_RETRIES: int = 3
    SEED_ACHIEVEMENTS: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
