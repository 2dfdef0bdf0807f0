import json
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from storefront.application.admin_dashboard import AdminDashboardUseCase, Dashboard
from storefront.application.directory import UserDirectory
from storefront.application.get_order import (
    GetOrderUseCase, ListAllOrdersUseCase, ListCatalogUseCase, ListOrdersUseCase
)
from storefront.application.place_order import PlaceOrderDTO, PlaceOrderUseCase
from storefront.application.policy import OrderLinePolicy
from storefront.application.update_line import LineTarget, UpdateLineApprovalUseCase, UpdateLineStatusUseCase
from storefront.config import settings
from storefront.domain.exceptions import (
    CatalogItemNotFoundError, EmptySelectionError, NotFoundError, PermissionDeniedError,
    StoreUnavailableError, TransitionNotAllowedError, ConcurrentModificationError
)
from storefront.domain.models import Actor
from storefront.infrastructure.subscriptions import OrderFeed, Subscription
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.presentation.schemas import (
    CatalogItemResponse, ErrorResponse, LineApprovalRequest, LineStatusRequest,
    OrderResponse, PlaceOrderRequest, PlaceOrderResponse
)

router = APIRouter()
policy = OrderLinePolicy()


# Фабрики для создания use cases
def get_uow(request: Request) -> UnitOfWork:
    return UnitOfWork(request.app.state.store)


def get_order_feed(request: Request) -> OrderFeed:
    return OrderFeed(request.app.state.store)


def get_directory(request: Request) -> UserDirectory:
    return request.app.state.directory


async def get_actor(
    x_user_id: str = Header(...),
    directory: UserDirectory = Depends(get_directory)
) -> Actor:
    """Личность приходит от внешнего identity provider в заголовке X-User-Id"""
    try:
        return await directory.actor(x_user_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


def get_place_order_use_case(uow: UnitOfWork = Depends(get_uow)):
    return PlaceOrderUseCase(uow, max_attempts=settings.ORDER_UPDATE_MAX_ATTEMPTS)


def get_update_status_use_case(uow: UnitOfWork = Depends(get_uow)):
    return UpdateLineStatusUseCase(uow, max_attempts=settings.ORDER_UPDATE_MAX_ATTEMPTS)


def get_update_approval_use_case(uow: UnitOfWork = Depends(get_uow)):
    return UpdateLineApprovalUseCase(uow, max_attempts=settings.ORDER_UPDATE_MAX_ATTEMPTS)


def get_dashboard_use_case(
    uow: UnitOfWork = Depends(get_uow),
    directory: UserDirectory = Depends(get_directory)
):
    return AdminDashboardUseCase(ListAllOrdersUseCase(uow), directory)


def _check(check, *args):
    try:
        check(*args)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


async def _ndjson(subscription: Subscription, max_events: Optional[int]):
    """Снимки заказов построчно, пока клиент не отключится"""
    sent = 0
    try:
        async for orders in subscription:
            payload = [OrderResponse.from_domain(order).model_dump(mode="json") for order in orders]
            yield json.dumps(payload) + "\n"
            sent += 1
            if max_events is not None and sent >= max_events:
                break
    finally:
        subscription.cancel()


@router.post(
    "/customers/{owner_id}/orders",
    response_model=PlaceOrderResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def place_order(
    owner_id: str,
    request: PlaceOrderRequest,
    actor: Actor = Depends(get_actor),
    use_case: PlaceOrderUseCase = Depends(get_place_order_use_case)
):
    """Оформить заказ"""
    _check(policy.require_access, actor, owner_id)
    try:
        order_id = await use_case(PlaceOrderDTO(
            owner_id=owner_id,
            payment_method=request.payment_method,
            selections=request.selections
        ))
        return PlaceOrderResponse(order_id=order_id)

    except EmptySelectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CatalogItemNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


@router.get("/customers/{owner_id}/orders", response_model=List[OrderResponse])
async def list_orders(
    owner_id: str,
    actor: Actor = Depends(get_actor),
    uow: UnitOfWork = Depends(get_uow)
):
    _check(policy.require_access, actor, owner_id)
    try:
        orders = await ListOrdersUseCase(uow)(owner_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
    return [OrderResponse.from_domain(order) for order in orders]


@router.get("/customers/{owner_id}/orders/stream")
async def stream_orders(
    owner_id: str,
    max_events: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    feed: OrderFeed = Depends(get_order_feed)
):
    """Живой поток заказов клиента (NDJSON)"""
    _check(policy.require_access, actor, owner_id)
    try:
        subscription = await feed.subscribe(owner_id)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
    return StreamingResponse(_ndjson(subscription, max_events), media_type="application/x-ndjson")


@router.get(
    "/customers/{owner_id}/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(
    owner_id: str,
    order_id: str,
    actor: Actor = Depends(get_actor),
    uow: UnitOfWork = Depends(get_uow)
):
    """Получить заказ по ID"""
    _check(policy.require_access, actor, owner_id)
    try:
        order = await GetOrderUseCase(uow)(owner_id, order_id)
        return OrderResponse.from_domain(order)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Заказ не найден")
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


@router.patch(
    "/customers/{owner_id}/orders/{order_id}/lines/{catalog_item_id}/status",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def update_line_status(
    owner_id: str,
    order_id: str,
    catalog_item_id: str,
    request: LineStatusRequest,
    actor: Actor = Depends(get_actor),
    use_case: UpdateLineStatusUseCase = Depends(get_update_status_use_case)
):
    """Сменить статус товара в заказе"""
    try:
        guard = policy.status_guard(actor, owner_id, request.status)
        target = LineTarget(
            owner_id=owner_id,
            order_id=order_id,
            catalog_item_id=catalog_item_id,
            variant_size=request.variant_size,
            variant_color=request.variant_color
        )
        order = await use_case(target, request.status, guard=guard)
        return OrderResponse.from_domain(order)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (TransitionNotAllowedError, ConcurrentModificationError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


@router.patch(
    "/customers/{owner_id}/orders/{order_id}/lines/{catalog_item_id}/approval",
    response_model=OrderResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def update_line_approval(
    owner_id: str,
    order_id: str,
    catalog_item_id: str,
    request: LineApprovalRequest,
    actor: Actor = Depends(get_actor),
    use_case: UpdateLineApprovalUseCase = Depends(get_update_approval_use_case)
):
    """Одобрить или снять одобрение товара (только админ)"""
    try:
        guard = policy.approval_guard(actor, request.approved)
        target = LineTarget(
            owner_id=owner_id,
            order_id=order_id,
            catalog_item_id=catalog_item_id,
            variant_size=request.variant_size,
            variant_color=request.variant_color
        )
        order = await use_case(target, request.approved, guard=guard)
        return OrderResponse.from_domain(order)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (TransitionNotAllowedError, ConcurrentModificationError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")


@router.get("/catalog", response_model=List[CatalogItemResponse])
async def list_catalog(uow: UnitOfWork = Depends(get_uow)):
    try:
        items = await ListCatalogUseCase(uow)()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
    return [CatalogItemResponse.from_domain(item) for item in items]


@router.get("/admin/orders", response_model=List[OrderResponse])
async def list_all_orders(
    actor: Actor = Depends(get_actor),
    uow: UnitOfWork = Depends(get_uow)
):
    _check(policy.require_admin, actor)
    try:
        orders = await ListAllOrdersUseCase(uow)()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
    return [OrderResponse.from_domain(order) for order in orders]


@router.get("/admin/orders/stream")
async def stream_all_orders(
    max_events: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    feed: OrderFeed = Depends(get_order_feed)
):
    """Живой поток заказов всех клиентов (NDJSON)"""
    _check(policy.require_admin, actor)
    try:
        subscription = await feed.subscribe_all()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
    return StreamingResponse(_ndjson(subscription, max_events), media_type="application/x-ndjson")


@router.get("/admin/dashboard", response_model=Dashboard)
async def admin_dashboard(
    actor: Actor = Depends(get_actor),
    use_case: AdminDashboardUseCase = Depends(get_dashboard_use_case)
):
    _check(policy.require_admin, actor)
    try:
        return await use_case()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=f"Service unavailable: {str(e)}")
