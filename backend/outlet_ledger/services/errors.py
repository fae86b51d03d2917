"""Service-layer errors translated to HTTP responses by the route layer."""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors raised by outlet ledger services."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when an outlet or product referenced by a request does not exist."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found", code="not_found")


class ValidationError(ServiceError):
    """Raised when a request carries quantities the ledger cannot store."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, code="validation_error")
