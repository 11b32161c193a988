# leadstore/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    AUTH_SECRET_KEY: str = "change-me"
    AUTH_TOKEN_EXPIRE_MINUTES: int = 480

    STORAGE_DIR: str = "storage"        # каталог key-value хранилища снимков
    STORAGE_KEY: str = "sqliteDb"       # фиксированный ключ снимка базы
    DEFAULT_ADMIN_PASSWORD: str = "admin"
    PASSWORD_HASH_ROUNDS: int = 535000

    LOG_DIR: str = "log"
    LOG_PRINT: str = "1"
    LOG_PRINT_DB: str = "0"
    DEBUG_ROUTES: str = "0"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @staticmethod
    def is_on(value: str) -> bool:
        return str(value).lower() in ("1", "true", "yes")

settings = Settings()
