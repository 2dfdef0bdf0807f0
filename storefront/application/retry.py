import logging
from typing import Awaitable, Callable, TypeVar

from storefront.domain.exceptions import ConcurrentModificationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_version_retry(attempt: Callable[[], Awaitable[T]], max_attempts: int, target: str) -> T:
    """Повторяет read-modify-write, пока запись не пройдет по версии.

    Сбои хранилища (StoreUnavailableError) не повторяются, их получает вызывающий.
    """
    for number in range(1, max_attempts + 1):
        try:
            return await attempt()
        except ConcurrentModificationError:
            if number == max_attempts:
                logger.error(f"{target}: конфликт версий, попытки исчерпаны ({max_attempts})")
                raise
            logger.info(f"{target}: конфликт версий, повтор {number + 1}/{max_attempts}")
    raise ValueError("max_attempts должен быть больше нуля")
