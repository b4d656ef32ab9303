import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.admin.router import router as admin_router
from app.api.v1.auth.router import router as auth_router
from app.api.v1.fees.router import router as fees_router
from app.api.v1.parents.router import router as parents_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.students.router import router as students_router
from app.api.v1.teachers.router import router as teachers_router
from app.core.config import settings
from app.core.exceptions import ServiceError
from app.core.logging import configure_logging
from app.integrations.paynow import PaynowGateway

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
        return _error(status.HTTP_400_BAD_REQUEST, message)


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Management Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One gateway client per app; handlers get it via get_payment_gateway
    app.state.payment_gateway = PaynowGateway.from_settings(settings)

    _register_exception_handlers(app)

    # Routers
    app.include_router(auth_router)
    app.include_router(students_router)
    app.include_router(teachers_router)
    app.include_router(parents_router)
    app.include_router(fees_router)
    app.include_router(payments_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"success": True, "message": "OK"}

    logger.info("Application configured")
    return app


app = create_app()
