"""Typed errors raised by the commerce core.

Each error carries a stable ``code`` and the HTTP status the API boundary
answers with. Business rules raise these at the point of detection; nothing
below the API layer catches them.
"""


class CommerceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class BadRequest(CommerceError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class InsufficientStock(BadRequest):
    def __init__(self, available: int, item: str | None = None) -> None:
        self.available = available
        self.item = item
        message = f"Only {available} items available"
        if item:
            message = f"Insufficient stock for {item}. Only {available} items available"
        super().__init__(message, details={"item": item, "available": available})


class Unauthorized(CommerceError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Forbidden(CommerceError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFound(CommerceError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", details: dict | None = None) -> None:
        self.resource = resource
        super().__init__(f"{resource} not found", details)


class Conflict(CommerceError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class PaymentError(CommerceError):
    status_code = 402
    code = "PAYMENT_ERROR"
    default_message = "Payment processing failed"


class ExternalServiceError(CommerceError):
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: str | None = None, details: dict | None = None) -> None:
        self.service = service
        super().__init__(message or f"{service} service unavailable", details)


class DatabaseError(CommerceError):
    status_code = 500
    code = "DATABASE_ERROR"
    default_message = "Database operation failed"
