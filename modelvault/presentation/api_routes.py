from typing import Final

from fastapi import APIRouter

from .asset_routes import assets_router
from .auth_routes import auth_router
from .deleted_model_routes import deleted_models_router
from .employee_routes import employees_router, users_router
from .log_routes import logs_router
from .model_routes import models_router
from .project_routes import projects_router
from .sphere_routes import spheres_router

api_router: Final = APIRouter(
    prefix="/api",
    responses={
        400: {"description": "Bad Request - Invalid input data"},
        401: {"description": "Unauthorized - No valid session"},
        403: {"description": "Forbidden - Missing permission"},
        404: {"description": "Not Found - Resource does not exist"},
        409: {"description": "Conflict - Duplicate or invalid state"},
        502: {"description": "Bad Gateway - Asset store failed"},
    },
)

for router in (
    auth_router,
    models_router,
    deleted_models_router,
    employees_router,
    users_router,
    logs_router,
    projects_router,
    spheres_router,
    assets_router,
):
    api_router.include_router(router)
