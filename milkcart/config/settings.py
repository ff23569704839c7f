from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL: str
    TEST_DB_URL: str | None = None
    DB_ECHO: bool = False
    JWT_SECRET: str
    JWT_ALGO: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    STORE_TIMEZONE: str = "Asia/Kolkata"
    CURSOR_SECRET: str = "dev-secret-change-me"

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
