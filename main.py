from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import settings
from logger import get_logger
from models import UserRole
from routers import admin, auth, cart, gifts, requests
from storage import Storage, build_storage

logger = get_logger(__name__)


def seed_admin(storage: Storage) -> None:
    """Create the configured admin account unless it already exists."""
    if storage.get_user_by_username(settings.ADMIN_USERNAME):
        return

    storage.create_user(
        {
            "username": settings.ADMIN_USERNAME,
            "password": auth.hash_password(settings.ADMIN_PASSWORD),
            "email": settings.ADMIN_EMAIL,
            "name": "System Admin",
            "company": "GiftConnect",
            "role": UserRole.ADMIN.value,
        }
    )
    logger.info(f"Seeded admin user '{settings.ADMIN_USERNAME}'")


def register_error_handlers(app: FastAPI) -> None:
    """Every error body is {"message": ...}; validation adds "errors"."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "message": "Validation error",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


def create_app(storage: Optional[Storage] = None, seed: bool = settings.SEED_ADMIN) -> FastAPI:
    app = FastAPI(title="GiftConnect")

    app.state.storage = storage if storage is not None else build_storage()
    if seed:
        seed_admin(app.state.storage)

    register_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(gifts.router)
    app.include_router(cart.router)
    app.include_router(requests.router)
    app.include_router(admin.router)

    return app


def __getattr__(name: str):
    # `uvicorn main:app` builds the default app on first access, so importing
    # this module never opens a database connection.
    if name == "app":
        app = globals()["app"] = create_app()
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
