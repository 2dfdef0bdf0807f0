from storefront.application.update_line import LineGuard
from storefront.domain.exceptions import PermissionDeniedError, TransitionNotAllowedError
from storefront.domain.models import Actor, LineStatus, OrderLine


TERMINAL_STATUSES = frozenset({LineStatus.COMPLETED, LineStatus.CANCELLED})


class OrderLinePolicy:
    """Правила вызывающей стороны поверх разрешающего движка.

    Статусы completed и cancelled конечные, для повторной покупки
    нужен новый заказ. Клиент может только отменять свои строки, остальное делает
    администратор.
    """

    def require_admin(self, actor: Actor) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError("Действие доступно только администратору")

    def require_access(self, actor: Actor, owner_id: str) -> None:
        if not actor.is_admin and actor.owner_id != owner_id:
            raise PermissionDeniedError("Нет доступа к заказам другого пользователя")

    def status_guard(self, actor: Actor, owner_id: str, new_status: LineStatus) -> LineGuard:
        self.require_access(actor, owner_id)
        if not actor.is_admin and new_status != LineStatus.CANCELLED:
            raise PermissionDeniedError("Клиент может только отменить товар")

        def guard(line: OrderLine) -> None:
            if line.status == LineStatus.COMPLETED:
                raise TransitionNotAllowedError("You cannot cancel a completed order."
                                                if new_status == LineStatus.CANCELLED
                                                else "This item has already been completed.")
            if line.status == LineStatus.CANCELLED:
                raise TransitionNotAllowedError("This item has already been cancelled.")

        return guard

    def approval_guard(self, actor: Actor, approved: bool) -> LineGuard:
        self.require_admin(actor)

        def guard(line: OrderLine) -> None:
            if approved and line.status == LineStatus.CANCELLED:
                raise TransitionNotAllowedError("Cannot approve a cancelled item.")

        return guard
