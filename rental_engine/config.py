from pydantic_settings import BaseSettings
from typing import List, Optional
from urllib.parse import quote_plus

class Settings(BaseSettings):
    env: str = "local"
    log_level: str = "INFO"

    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "rentals"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # Full URL override, e.g. sqlite:///./rentals.db for local runs
    sqlalchemy_database_uri: Optional[str] = None
    sqlite_busy_timeout: int = 30

    # Signing key for ebook watermarks
    secret_key: str = "change-me"
    algorithm: str = "HS256"

    # When true, a category without active terms blocks rentals instead of
    # letting them through.
    terms_fail_closed: bool = False

    # Shared key for back-office calls (X-Admin-Key). Unset disables them.
    admin_api_key: Optional[str] = None

    low_inventory_threshold: int = 2

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @property
    def database_url(self):
        if self.sqlalchemy_database_uri:
            return self.sqlalchemy_database_uri
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()
