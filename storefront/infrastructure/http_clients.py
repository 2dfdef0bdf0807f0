import httpx
import logging
from typing import Any, Optional

from storefront.application.interfaces import KeyValueStore
from storefront.domain.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


class HTTPKeyValueStore(KeyValueStore):
    """REST-клиент realtime database: GET {base_url}/{path}.json"""

    def __init__(self, base_url: str, auth_token: str = "", timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._timeout = timeout
        self._transport = transport

    async def get(self, path: str) -> Any:
        params = {"auth": self._auth_token} if self._auth_token else None
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self._base_url}/{path.strip('/')}.json",
                    params=params,
                    timeout=self._timeout
                )

                if response.status_code == 200:
                    return response.json()
                elif response.status_code == 404:
                    return None
                else:
                    raise StoreUnavailableError(f"Key-value хранилище ошибка: {response.status_code}")

        except httpx.RequestError as e:
            logger.error(f"Key-value хранилище ошибка подключения: {e}")
            raise StoreUnavailableError(f"Key-value хранилище не доступно: {str(e)}")
