from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from smartshelf.config import settings
from smartshelf.errors import InventoryError

logger = logging.getLogger(__name__)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError):
        if exc.status_code >= 500:
            logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
        return JSONResponse(content=exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        problems = []
        fields = []
        for error in exc.errors():
            location = [str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path')]
            name = '.'.join(location)
            if name:
                fields.append(name)
            problems.append(f"{name or 'request'}: {error.get('msg')}")
        return JSONResponse(
            content={'error': '; '.join(problems) or 'Invalid request', 'fields': fields},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception('Unhandled error on %s %s', request.method, request.url.path)
        payload = {'error': 'Internal server error'}
        if not settings.is_production:
            payload['detail'] = str(exc)
            payload['stack'] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(content=payload, status_code=500)
