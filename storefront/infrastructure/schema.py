"""Нормализация документов на границе хранилища.

Исторически документы заказов и товаров меняли форму: products/lineItems,
productId/catalogItemId, color строкой или списком, approval/approved,
timestamp в миллисекундах. Каждый документ несет schemaVersion; при чтении
он поднимается до текущей версии, и движок видит только каноническую форму.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict

from pydantic import ValidationError

from storefront.application.interfaces import DocumentSnapshot
from storefront.domain.exceptions import DocumentSchemaError
from storefront.domain.models import CatalogItem, Order

logger = logging.getLogger(__name__)

SCHEMA_VERSION_KEY = "schemaVersion"
ORDER_SCHEMA_VERSION = 2
CATALOG_SCHEMA_VERSION = 2

_LEGACY_PAYMENT_METHODS = {
    "GCASH": "WALLET",
    "Mastercard": "CARD",
    "VISA": "CARD",
}


def _legacy_timestamp(value):
    """Миллисекунды epoch -> ISO строка, остальное как есть"""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
    return value


def _as_list(value) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _order_v1_to_v2(data: dict) -> dict:
    placed_at = _legacy_timestamp(data.get("timestamp"))
    lines = []
    for product in data.get("products") or []:
        lines.append({
            "catalogItemId": str(product.get("productId")),
            "name": product.get("productName", ""),
            "unitPrice": product.get("productPrice", 0),
            "quantity": product.get("quantity", 1),
            "variantSize": product.get("productSize") or None,
            "variantColor": product.get("productColor") or None,
            "status": str(product.get("status", "pending")).lower(),
            "approved": bool(product.get("approval", False)),
            "savedAt": product.get("savedAt") or placed_at,
            "updatedAt": product.get("updatedAt") or None,
        })
    return {
        "ownerId": data.get("userId"),
        "paymentMethod": _LEGACY_PAYMENT_METHODS.get(data.get("paymentMethod"), data.get("paymentMethod")),
        "placedAt": placed_at,
        "lineItems": lines,
    }


def _catalog_v1_to_v2(data: dict) -> dict:
    return {
        "name": data.get("name", ""),
        "price": data.get("price", 0),
        "stockQuantity": max(int(data.get("stockQuantity", 0)), 0),
        "colorOptions": _as_list(data.get("color")),
        "sizeOptions": _as_list(data.get("size")),
        "category": data.get("category", ""),
        "description": data.get("description", ""),
        "lastUpdated": data.get("lastUpdated") or None,
    }


_ORDER_MIGRATIONS: Dict[int, Callable[[dict], dict]] = {1: _order_v1_to_v2}
_CATALOG_MIGRATIONS: Dict[int, Callable[[dict], dict]] = {1: _catalog_v1_to_v2}


def _upgrade(snapshot: DocumentSnapshot, migrations, current: int) -> dict:
    data = dict(snapshot.data)
    version = data.pop(SCHEMA_VERSION_KEY, 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise DocumentSchemaError(f"Документ {snapshot.path}: некорректная версия схемы {version!r}")
    if version > current:
        raise DocumentSchemaError(
            f"Документ {snapshot.path}: версия схемы {version} новее поддерживаемой {current}"
        )
    while version < current:
        migrate = migrations.get(version)
        if migrate is None:
            raise DocumentSchemaError(f"Документ {snapshot.path}: нет миграции с версии {version}")
        data = migrate(data)
        version += 1
        logger.debug(f"Документ {snapshot.path} поднят до версии схемы {version}")
    return data


def order_from_document(snapshot: DocumentSnapshot) -> Order:
    data = _upgrade(snapshot, _ORDER_MIGRATIONS, ORDER_SCHEMA_VERSION)
    try:
        return Order.model_validate({**data, "id": snapshot.id, "version": snapshot.version})
    except ValidationError as e:
        raise DocumentSchemaError(f"Заказ {snapshot.path} не соответствует схеме: {e}") from e


def order_to_document(order: Order) -> dict:
    data = order.model_dump(mode="json", by_alias=True, exclude={"id", "version"})
    data[SCHEMA_VERSION_KEY] = ORDER_SCHEMA_VERSION
    return data


def catalog_item_from_document(snapshot: DocumentSnapshot) -> CatalogItem:
    data = _upgrade(snapshot, _CATALOG_MIGRATIONS, CATALOG_SCHEMA_VERSION)
    try:
        return CatalogItem.model_validate({**data, "id": snapshot.id, "version": snapshot.version})
    except ValidationError as e:
        raise DocumentSchemaError(f"Товар {snapshot.path} не соответствует схеме: {e}") from e


def catalog_item_to_document(item: CatalogItem) -> dict:
    data = item.model_dump(mode="json", by_alias=True, exclude={"id", "version"})
    data[SCHEMA_VERSION_KEY] = CATALOG_SCHEMA_VERSION
    return data
