from contextlib import asynccontextmanager
from typing import List

from storefront.application.interfaces import DocumentStore
from storefront.infrastructure.repositories import (
    DocumentCatalogRepository,
    DocumentOrderRepository,
    PendingWrite
)


class UnitOfWork:
    def __init__(self, store: DocumentStore):
        self._store = store

    @asynccontextmanager
    async def __call__(self):
        uow_impl = _UnitOfWorkImpl(self._store)
        try:
            yield uow_impl
        finally:
            # Если commit не вызван, записи отбрасываются
            await uow_impl.rollback()


class _UnitOfWorkImpl:
    def __init__(self, store: DocumentStore):
        self._store = store
        self._writes: List[PendingWrite] = []
        self.orders = DocumentOrderRepository(store, self._writes)
        self.catalog = DocumentCatalogRepository(store, self._writes)

    async def commit(self):
        """Записи уходят в хранилище по порядку. Транзакции нет: при ошибке
        уже примененные записи остаются"""
        while self._writes:
            write = self._writes.pop(0)
            await self._store.set_document(
                write.path,
                write.data,
                merge=write.merge,
                expected_version=write.expected_version
            )

    async def rollback(self):
        self._writes.clear()
