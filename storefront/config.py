import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Хранилище документов: memory | sql
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")

    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "storefront.db")

    # Справочник пользователей (роли, email)
    USER_DIRECTORY_URL: str = os.getenv("USER_DIRECTORY_URL", "")
    USER_DIRECTORY_TOKEN: str = os.getenv("USER_DIRECTORY_TOKEN", "")

    # Повторы read-modify-write при конфликте версий
    ORDER_UPDATE_MAX_ATTEMPTS: int = int(os.getenv("ORDER_UPDATE_MAX_ATTEMPTS", "3"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if self.POSTGRES_CONNECTION_STRING:
            return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")
        return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"


settings = Settings()
