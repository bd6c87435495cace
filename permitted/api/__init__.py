from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from permitted.api.role.routes import router as role_router
from permitted.api.permission.routes import router as permission_router
from permitted.api.module.routes import router as module_router
from permitted.api.user.routes import router as user_router
from permitted.core.exceptions import (
    FeatureDisabled,
    InvalidSubModule,
    MissingCapabilityError,
    NotFoundError,
    PermissionModuleRequired,
    TenantResolutionError,
)
from permitted.utils.logger import get_logger

logger = get_logger(__name__)

api_router = APIRouter()

api_router.include_router(role_router, prefix="/roles", tags=["roles"])
api_router.include_router(permission_router, prefix="/permissions", tags=["permissions"])
api_router.include_router(module_router, prefix="/modules", tags=["modules"])
api_router.include_router(user_router, prefix="/users", tags=["users"])


# Domain error -> HTTP status
ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    FeatureDisabled: status.HTTP_400_BAD_REQUEST,
    TenantResolutionError: status.HTTP_400_BAD_REQUEST,
    InvalidSubModule: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PermissionModuleRequired: status.HTTP_422_UNPROCESSABLE_ENTITY,
    MissingCapabilityError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain errors raised by the services into JSON responses."""

    def _handler(status_code: int):
        async def handle(request: Request, exc: Exception) -> JSONResponse:
            if status_code >= 500:
                logger.error(f"[API] {request.method} {request.url.path}: {exc}")
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        return handle

    for error, status_code in ERROR_STATUS.items():
        app.add_exception_handler(error, _handler(status_code))

    @app.exception_handler(IntegrityError)
    async def integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning(f"[API] Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": "Conflicts with an existing record"},
        )
