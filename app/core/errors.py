from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    CACHE_UNAVAILABLE = "cache_unavailable"


class ServiceError(Exception):
    """
    Base class for failures raised by the service layer.

    Callers branch on ``kind`` and read ``entity``/``entity_id`` for context;
    the message is for logs only.
    """

    kind: ErrorKind

    def __init__(
        self,
        entity: str | None = None,
        entity_id: int | str | None = None,
        detail: str | None = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [self.kind.value]
        if self.entity:
            parts.append(self.entity)
        if self.entity_id is not None:
            parts.append(str(self.entity_id))
        message = " ".join(parts)
        return f"{message}: {self.detail}" if self.detail else message


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT


class ValidationError(ServiceError):
    kind = ErrorKind.VALIDATION


class CacheUnavailableError(ServiceError):
    """Raised inside the cache layer only; never reaches a caller."""

    kind = ErrorKind.CACHE_UNAVAILABLE
