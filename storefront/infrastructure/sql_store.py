import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.application.interfaces import (
    DocumentSnapshot, DocumentStore, Listener, ListenerRegistration, collection_of
)
from storefront.domain.exceptions import ConcurrentModificationError, StoreUnavailableError
from storefront.infrastructure.change_feed import ChangeFeed
from storefront.infrastructure.db_schema import documents_tbl

logger = logging.getLogger(__name__)


class SQLAlchemyDocumentStore(DocumentStore):
    """Документы в одной таблице: путь -> JSON + версия для compare-and-set.

    Уведомления слушателям рассылаются после commit внутри процесса;
    записи других процессов слушатели этого экземпляра не видят.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._feed = ChangeFeed()
        # список коллекции и рассылка идут по очереди, последним уходит самый свежий снимок
        self._collection_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def listener_count(self) -> int:
        return self._feed.listener_count()

    @staticmethod
    def _to_snapshot(row) -> DocumentSnapshot:
        return DocumentSnapshot(path=row.path, data=dict(row.data), version=row.version)

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(documents_tbl).where(documents_tbl.c.path == path)
                )
                row = result.fetchone()
        except SQLAlchemyError as e:
            logger.error(f"Ошибка чтения документа {path}: {e}")
            raise StoreUnavailableError(f"Хранилище недоступно: {str(e)}") from e
        return self._to_snapshot(row) if row else None

    async def set_document(self, path: str, data: dict, merge: bool = False,
                           expected_version: Optional[int] = None) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(documents_tbl).where(documents_tbl.c.path == path)
                )
                row = result.fetchone()
                current_version = row.version if row else 0
                if expected_version is not None and expected_version != current_version:
                    raise ConcurrentModificationError(path, expected_version, current_version)

                if row is None:
                    new_version = 1
                    await session.execute(
                        insert(documents_tbl).values(
                            path=path,
                            collection=collection_of(path),
                            data=data,
                            version=new_version
                        )
                    )
                else:
                    new_version = current_version + 1
                    new_data = {**row.data, **data} if merge else data
                    stmt = (
                        update(documents_tbl)
                        .where(
                            documents_tbl.c.path == path,
                            documents_tbl.c.version == current_version
                        )
                        .values(data=new_data, version=new_version)
                    )
                    result = await session.execute(stmt)
                    if result.rowcount == 0:
                        raise ConcurrentModificationError(path, current_version, current_version + 1)
                await session.commit()
        except IntegrityError as e:
            # документ создан параллельно между select и insert
            raise ConcurrentModificationError(path, 0, 1) from e
        except SQLAlchemyError as e:
            logger.error(f"Ошибка записи документа {path}: {e}")
            raise StoreUnavailableError(f"Хранилище недоступно: {str(e)}") from e

        await self._notify(collection_of(path))
        return new_version

    async def delete_document(self, path: str) -> None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(documents_tbl).where(documents_tbl.c.path == path)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Ошибка удаления документа {path}: {e}")
            raise StoreUnavailableError(f"Хранилище недоступно: {str(e)}") from e
        if result.rowcount:
            await self._notify(collection_of(path))

    async def list_documents(self, collection: str) -> List[DocumentSnapshot]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(documents_tbl)
                    .where(documents_tbl.c.collection == collection)
                    .order_by(documents_tbl.c.created_at.asc(), documents_tbl.c.path.asc())
                )
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.error(f"Ошибка чтения коллекции {collection}: {e}")
            raise StoreUnavailableError(f"Хранилище недоступно: {str(e)}") from e
        return [self._to_snapshot(row) for row in rows]

    async def subscribe(self, collection: str, listener: Listener) -> ListenerRegistration:
        # слушатель регистрируется до чтения: запись во время чтения вызовет повторную рассылку
        registration = self._feed.add(collection, listener)
        try:
            async with self._collection_locks[collection]:
                snapshots = await self.list_documents(collection)
                await self._feed.deliver(registration, snapshots)
        except StoreUnavailableError:
            registration.remove()
            raise
        return registration

    async def _notify(self, collection: str) -> None:
        if not self._feed.has_listeners(collection):
            return
        async with self._collection_locks[collection]:
            try:
                snapshots = await self.list_documents(collection)
            except StoreUnavailableError as e:
                logger.error(f"Не удалось разослать изменения коллекции {collection}: {e}")
                return
            await self._feed.publish(collection, snapshots)
