import logging
from typing import Dict

from storefront.application.interfaces import KeyValueStore
from storefront.domain.models import Actor, Role

logger = logging.getLogger(__name__)

UNKNOWN_EMAIL = "Unknown"


class UserDirectory:
    """Роли и email пользователей из key-value хранилища (только чтение)"""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def role_of(self, owner_id: str) -> Role:
        role = await self._store.get(f"users/{owner_id}/role")
        return Role.ADMIN if role == Role.ADMIN.value else Role.CUSTOMER

    async def actor(self, owner_id: str) -> Actor:
        return Actor(owner_id=owner_id, role=await self.role_of(owner_id))

    async def email_of(self, owner_id: str) -> str:
        email = await self._store.get(f"users/{owner_id}/email")
        return email or UNKNOWN_EMAIL

    async def emails(self) -> Dict[str, str]:
        users = await self._store.get("users") or {}
        emails = {
            owner_id: (profile or {}).get("email") or UNKNOWN_EMAIL
            for owner_id, profile in users.items()
        }
        logger.info(f"Получены email {len(emails)} пользователей")
        return emails
