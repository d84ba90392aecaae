"""Maps errors raised below the HTTP boundary to ``{code, message, details}``."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers as register_domain_handlers

from commerce.errors import CommerceError

logger = structlog.get_logger(__name__)


def _body(code: str, message: str, details=None) -> dict:
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    # Protean's own mappings first; the handlers below replace the ones that
    # need the commerce error shape.
    register_domain_handlers(app)

    @app.exception_handler(CommerceError)
    async def commerce_error(request: Request, exc: CommerceError):
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ValidationError)
    async def domain_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=_body("BAD_REQUEST", "Validation failed", exc.messages))

    @app.exception_handler(ObjectNotFoundError)
    async def object_not_found(request: Request, exc: ObjectNotFoundError):
        return JSONResponse(status_code=404, content=_body("NOT_FOUND", "Resource not found"))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=422, content=_body("VALIDATION_ERROR", "Validation failed", details))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path, method=request.method)
        message = str(exc) if debug else "Internal server error"
        return JSONResponse(status_code=500, content=_body("INTERNAL_ERROR", message))
