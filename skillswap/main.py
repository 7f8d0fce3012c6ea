from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from .api.v1.api import router as api_router
from .core.config import get_settings
from .core.exceptions import SkillSwapError
from .core.logging import setup_logging

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting up {settings.app_name} in {settings.environment} environment "
                f"with {settings.store_backend} store")
    yield
    logger.info("Shutting down")

app = FastAPI(
    title=settings.app_name,
    description="""
    API for the SkillSwap skill-exchange marketplace.

    ## Authentication

    Access tokens are issued by Supabase Auth. Click the "Authorize" button and
    paste the access token (no "Bearer" prefix). On first use, create your
    profile with `PUT /api/v1/users/me`.

    ## Errors

    Domain errors return `{"detail": ..., "error": ...}` where `error` is one of
    `not_found`, `forbidden`, `conflict`, `validation_error` or `self_reference`.
    """,
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "tryItOutEnabled": True,
        "defaultModelsExpandDepth": -1,
        "docExpansion": "none",
    }
)

# Configure CORS
# Default origins for development
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    settings.frontend_url,
]

logger.info(f"CORS origins: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "X-Has-Next"],
)

# Include API router
app.include_router(api_router)

PUBLIC_PATHS = (
    "/",
    "/health",
    "/api/v1/users/search",
    "/api/v1/users/suggestions/skills",
    "/api/v1/users/{user_id}",
    "/api/v1/feedback/user/{user_id}",
)

# Custom OpenAPI schema
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    # Add security scheme
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Enter the token without the 'Bearer' prefix"
        }
    }

    # Apply security per operation, skipping the public endpoints
    for path, operations in openapi_schema.get("paths", {}).items():
        for method, operation in operations.items():
            if method == "parameters":
                continue
            if path in PUBLIC_PATHS and method == "get":
                continue
            if path == "/api/v1/announcements/" and method == "get":
                continue
            operation["security"] = [{"bearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

@app.get("/")
async def root():
    return {"message": f"Welcome to the {settings.app_name}", "environment": settings.environment}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.environment}

@app.exception_handler(SkillSwapError)
async def skillswap_exception_handler(request: Request, exc: SkillSwapError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
    )

# Add exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    for error in errors:
        # Give a readable message for malformed ids in the path
        if error.get("type") == "uuid_parsing":
            loc = error.get("loc", [])
            if len(loc) >= 2 and loc[0] == "path":
                input_value = error.get("input", "")
                return JSONResponse(
                    status_code=422,
                    content={
                        "detail": f"Invalid UUID format for {loc[1]}: '{input_value}'. Please provide a valid UUID.",
                        "error": "validation_error",
                    }
                )

    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(errors), "error": "validation_error"}
    )

def jsonable_errors(errors):
    # ctx may carry exception instances that JSON can't encode
    cleaned = []
    for error in errors:
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        cleaned.append(error)
    return cleaned
