from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .config import Settings, settings as default_settings
from .database import Database
from .logging_config import get_logger, setup_logging
from .routers import auth as auth_router
from .routers import budgets as budgets_router
from .routers import categories as categories_router
from .routers import expenses as expenses_router
from .routers import admin_features as admin_features_router
from .routers import features as features_router
from .routers import monthly_budgets as monthly_budgets_router
from .routers import subscription as subscription_router
from .routers import users as users_router

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(title="Simple Budget – Backend", version="0.1.0")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        app.state.db = Database(settings)
        app.state.db.init_db()

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.db.dispose()

    @app.exception_handler(OperationalError)
    async def database_busy(request: Request, exc: OperationalError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Database is busy, please retry"},
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(auth_router.router)
    app.include_router(budgets_router.router)
    app.include_router(categories_router.router)
    app.include_router(expenses_router.router)
    app.include_router(features_router.router)
    app.include_router(monthly_budgets_router.router)
    app.include_router(users_router.router)
    app.include_router(subscription_router.router)
    app.include_router(admin_features_router.router)

    return app


app = create_app()
