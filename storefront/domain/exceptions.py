class DomainException(Exception):
    pass


class NotFoundError(DomainException):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class OrderLineNotFoundError(NotFoundError):
    pass


class CatalogItemNotFoundError(NotFoundError):
    pass


class EmptySelectionError(DomainException):
    pass


class StoreUnavailableError(DomainException):
    """Хранилище не ответило или вернуло ошибку (TransientIO)"""
    pass


class ConcurrentModificationError(DomainException):
    def __init__(self, path: str, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Документ {path} изменен конкурентно: ожидалась версия {expected}, текущая {actual}")


class TransitionNotAllowedError(DomainException):
    pass


class PermissionDeniedError(DomainException):
    pass


class DocumentSchemaError(DomainException):
    pass
