import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from storefront.application.directory import UserDirectory
from storefront.application.interfaces import DocumentStore, KeyValueStore
from storefront.config import settings
from storefront.database import create_session_factory, create_tables
from storefront.infrastructure.http_clients import HTTPKeyValueStore
from storefront.infrastructure.memory_store import InMemoryDocumentStore, InMemoryKeyValueStore
from storefront.infrastructure.sql_store import SQLAlchemyDocumentStore
from storefront.presentation.api import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(store: Optional[DocumentStore] = None, users: Optional[KeyValueStore] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Управление жизненным циклом приложения"""
        engine = None
        document_store = store
        if document_store is None and settings.STORE_BACKEND == "sql":
            engine, session_factory = create_session_factory(settings.DATABASE_URL)
            await create_tables(engine)
            logger.info("Таблицы созданы")
            document_store = SQLAlchemyDocumentStore(session_factory)
        elif document_store is None:
            document_store = InMemoryDocumentStore()
            logger.info("Хранилище документов в памяти")

        user_store = users
        if user_store is None and settings.USER_DIRECTORY_URL:
            user_store = HTTPKeyValueStore(settings.USER_DIRECTORY_URL, settings.USER_DIRECTORY_TOKEN)
        elif user_store is None:
            user_store = InMemoryKeyValueStore()

        app.state.store = document_store
        app.state.directory = UserDirectory(user_store)

        yield

        logger.info("Приложение останавливается...")
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Storefront Order Service",
        description="Заказы, остатки и живые подписки витрины",
        version="1.0.0",
        lifespan=lifespan
    )
    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": "Storefront Order Service работает"}

    @app.get("/health")
    async def health():
        return {"status": "healthy", "store": type(app.state.store).__name__}

    return app


app = create_app()
