from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .errors import BillHubError
from .logging import setup_logging, RequestIdMiddleware, structlog
from .store.registry import get_store, init_store
from .auth.router import router as auth_router
from .routes.projects import router as projects_router
from .routes.subcontractors import router as subcontractors_router
from .routes.timelogs import router as timelogs_router
from .routes.invoices import router as invoices_router
from .routes.reports import router as reports_router
from .routes.integrations import router as integrations_router
from .routes.users import router as users_router
from .routes.roles import router as roles_router
from .routes.notifications import router as notifications_router
from .routes.realtime import router as realtime_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Domain errors -> HTTP
    @app.exception_handler(BillHubError)
    async def _domain_error(request: Request, exc: BillHubError):
        log = logger.warning if exc.http_status < 500 else logger.error
        log("request_failed", error=exc.kind, detail=exc.message, status=exc.http_status)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    # Routers
    app.include_router(auth_router)
    app.include_router(projects_router)
    app.include_router(subcontractors_router)
    app.include_router(timelogs_router)
    app.include_router(invoices_router)
    app.include_router(reports_router)
    app.include_router(integrations_router)
    app.include_router(users_router)
    app.include_router(roles_router)
    app.include_router(notifications_router)
    app.include_router(realtime_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "store": settings.store_backend}

    @app.on_event("startup")
    def _startup():
        logger.info("startup", store=settings.store_backend, environment=settings.environment)
        init_store(get_store())

    return app


app = create_app()
