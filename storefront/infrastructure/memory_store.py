import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

from storefront.application.interfaces import (
    DocumentSnapshot, DocumentStore, KeyValueStore, Listener, ListenerRegistration, collection_of
)
from storefront.domain.exceptions import ConcurrentModificationError
from storefront.infrastructure.change_feed import ChangeFeed


class InMemoryDocumentStore(DocumentStore):
    """Хранилище документов в памяти процесса.

    Каждая операция отдает управление циклу событий, как настоящий I/O,
    поэтому конкурентные чтения и записи перемежаются так же, как с сетью.
    """

    def __init__(self, documents: Optional[Dict[str, dict]] = None):
        self._documents: Dict[str, Tuple[dict, int]] = {}
        self._feed = ChangeFeed()
        for path, data in (documents or {}).items():
            self._documents[path] = (copy.deepcopy(data), 1)

    def _snapshot(self, path: str) -> Optional[DocumentSnapshot]:
        entry = self._documents.get(path)
        if entry is None:
            return None
        data, version = entry
        return DocumentSnapshot(path=path, data=copy.deepcopy(data), version=version)

    def _collection(self, collection: str) -> List[DocumentSnapshot]:
        return [
            self._snapshot(path) for path in self._documents
            if collection_of(path) == collection
        ]

    def listener_count(self) -> int:
        return self._feed.listener_count()

    async def get_document(self, path: str) -> Optional[DocumentSnapshot]:
        await asyncio.sleep(0)
        return self._snapshot(path)

    async def set_document(self, path: str, data: dict, merge: bool = False,
                           expected_version: Optional[int] = None) -> int:
        await asyncio.sleep(0)
        current_data, current_version = self._documents.get(path, ({}, 0))
        if expected_version is not None and expected_version != current_version:
            raise ConcurrentModificationError(path, expected_version, current_version)

        new_data = {**current_data, **data} if merge else dict(data)
        new_version = current_version + 1
        self._documents[path] = (copy.deepcopy(new_data), new_version)

        await self._notify(collection_of(path))
        return new_version

    async def delete_document(self, path: str) -> None:
        await asyncio.sleep(0)
        if self._documents.pop(path, None) is not None:
            await self._notify(collection_of(path))

    async def list_documents(self, collection: str) -> List[DocumentSnapshot]:
        await asyncio.sleep(0)
        return self._collection(collection)

    async def subscribe(self, collection: str, listener: Listener) -> ListenerRegistration:
        registration = self._feed.add(collection, listener)
        await self._feed.deliver(registration, self._collection(collection))
        return registration

    async def _notify(self, collection: str) -> None:
        if self._feed.has_listeners(collection):
            await self._feed.publish(collection, self._collection(collection))


class InMemoryKeyValueStore(KeyValueStore):
    """Дерево ключ-значение в памяти: путь users/{id}/role"""

    def __init__(self, tree: Optional[dict] = None):
        self._tree = copy.deepcopy(tree or {})

    async def get(self, path: str) -> Any:
        node: Any = self._tree
        for segment in path.strip("/").split("/"):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return copy.deepcopy(node)
