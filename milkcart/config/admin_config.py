from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod"
    ENABLE_ADMIN: bool = True      # False -> admin routers not mounted
    ENABLE_METRICS: bool = False
    SERVICE_NAME: str = "milkcart"

    class Config:
        env_file = ".env"
        extra="ignore"

admin_config = Settings()
