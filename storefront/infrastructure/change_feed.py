import logging
from collections import defaultdict
from typing import Dict, List

from storefront.application.interfaces import DocumentSnapshot, Listener, ListenerRegistration

logger = logging.getLogger(__name__)


class _Registration(ListenerRegistration):
    def __init__(self, feed: "ChangeFeed", collection: str, listener: Listener):
        self._feed = feed
        self.collection = collection
        self.listener = listener
        self.active = True

    def remove(self) -> None:
        if self.active:
            self.active = False
            self._feed.discard(self)


class ChangeFeed:
    """Реестр слушателей коллекций для хранилищ документов.

    Слушатели вызываются последовательно, в порядке записей. Ошибка одного
    слушателя логируется и не роняет запись и остальных слушателей.
    """

    def __init__(self):
        self._listeners: Dict[str, List[_Registration]] = defaultdict(list)

    def add(self, collection: str, listener: Listener) -> _Registration:
        registration = _Registration(self, collection, listener)
        self._listeners[collection].append(registration)
        return registration

    def discard(self, registration: _Registration) -> None:
        listeners = self._listeners.get(registration.collection, [])
        if registration in listeners:
            listeners.remove(registration)
        if not listeners:
            self._listeners.pop(registration.collection, None)

    def has_listeners(self, collection: str) -> bool:
        return bool(self._listeners.get(collection))

    def listener_count(self) -> int:
        return sum(len(listeners) for listeners in self._listeners.values())

    async def deliver(self, registration: _Registration, snapshots: List[DocumentSnapshot]) -> None:
        if not registration.active:
            return
        try:
            await registration.listener(snapshots)
        except Exception as e:
            logger.error(f"Ошибка слушателя коллекции {registration.collection}: {e}", exc_info=True)

    async def publish(self, collection: str, snapshots: List[DocumentSnapshot]) -> None:
        for registration in list(self._listeners.get(collection, [])):
            await self.deliver(registration, snapshots)
