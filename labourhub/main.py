from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from .config import settings
from .db import Base, engine
from .errors import LabourHubError
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router, labourer_router
from .routes.users import router as users_router
from .routes.employee_types import router as employee_types_router
from .routes.projects import router as projects_router
from .routes.labourers import router as labourers_router
from .routes.pay_rates import router as pay_rates_router
from .routes.work_logs import router as work_logs_router
from .routes.payment_periods import router as payment_periods_router
from .routes.reports import router as reports_router
from .routes.corrections import router as corrections_router
from .routes.audit import router as audit_router


logger = structlog.get_logger(__name__)


async def labourhub_error_handler(request: Request, exc: LabourHubError):
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


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

    app.add_exception_handler(LabourHubError, labourhub_error_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(labourer_router)
    app.include_router(users_router)
    app.include_router(employee_types_router)
    app.include_router(projects_router)
    app.include_router(labourers_router)
    app.include_router(pay_rates_router)
    app.include_router(work_logs_router)
    app.include_router(payment_periods_router)
    app.include_router(reports_router)
    app.include_router(corrections_router)
    app.include_router(audit_router)

    Instrumentator().instrument(app).expose(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "environment": settings.environment}

    @app.on_event("startup")
    def _startup():
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("database_ready", url=engine.url.render_as_string(hide_password=True))

    return app


app = create_app()
