"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Root of everything the domain layer raises.

    The human-readable text is kept on ``message`` for log lines and health output.
    """

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """No stored row matches the id an update was keyed by."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class CatalogLookupError(DomainException):
    """Raised when the external catalog cannot provide metadata for an item.

    Covers network errors, timeouts, HTTP errors (including 404) and
    malformed payloads. The sync workers treat every variant the same way.
    """

    def __init__(
        self,
        message: str,
        external_id: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.external_id = external_id
        self.status_code = status_code


__all__ = [
    "CatalogLookupError",
    "DomainException",
    "EntityNotFoundException",
]
