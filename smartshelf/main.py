from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartshelf.config import settings
from smartshelf.db import init_db
from smartshelf.exception_handler import setup_exception_handlers
from smartshelf.logging_config import configure_logging
from smartshelf.routers import auth, catalog, inventory, live, logs, pallets
from smartshelf.security.headers import install_security_headers
from smartshelf.services.notification_service import NotificationPublisher


def create_app(*, create_tables: bool = True) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if create_tables:
            init_db()
        yield

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    app.state.publisher = NotificationPublisher()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
        allow_headers=['*'],
    )
    install_security_headers(app)
    setup_exception_handlers(app)

    api = APIRouter(prefix='/api')
    api.include_router(auth.router)
    api.include_router(inventory.router)
    api.include_router(pallets.router)
    api.include_router(catalog.router)
    api.include_router(logs.router)

    @api.get('/health')
    def health():
        return {
            'status': 'ok',
            'timestamp': datetime.now(tz=timezone.utc).isoformat(),
            'service': settings.service_name,
        }

    app.include_router(api)
    app.include_router(live.router)
    return app


app = create_app()
