import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from venda_certa.core.errors import VendaCertaError, conflict_from_integrity

logger = logging.getLogger(__name__)


def _error_body(message: str, errors=None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


def _field_message(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    msg = error.get("msg", "")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    """Translate exceptions into the ``{success: false, message}`` envelope."""

    @app.exception_handler(VendaCertaError)
    async def domain_error_handler(request: Request, exc: VendaCertaError):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.errors))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [_field_message(err) for err in exc.errors()]
        return JSONResponse(status_code=400, content=_error_body("Dados inválidos", errors))

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        conflict = conflict_from_integrity(exc)
        logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
        return JSONResponse(status_code=conflict.status_code, content=_error_body(conflict.message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        body = _error_body("Erro interno do servidor")
        if not request.app.state.settings.is_production:
            body["detail"] = str(exc)
            body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=body)
