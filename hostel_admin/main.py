"""
FastAPI application entry point.
Main application instance with middleware and route configuration.
"""
from fastapi import FastAPI, Request, status, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
import logging

from hostel_admin.config import settings
from hostel_admin.gateway import build_gateway, close_gateway, get_gateway
from hostel_admin.routes import branches, dashboard, enquiries, gallery
from hostel_admin.services.backend_client import BackendGateway, GatewayError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests for 1 hour
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every console request with its outcome."""
    method = request.method
    path = request.url.path

    try:
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code} for {method} {path}")
        return response
    except Exception as e:
        logger.error(
            f"Error processing {method} {path}: {str(e)}\n"
            f"  Error type: {type(e).__name__}",
            exc_info=True
        )
        raise


app.include_router(dashboard.router, prefix="/console")
app.include_router(branches.router, prefix="/console")
app.include_router(gallery.router, prefix="/console")
app.include_router(enquiries.router, prefix="/console")


def add_cors_headers(response: JSONResponse, request: Request) -> JSONResponse:
    """
    Echo the request origin on error responses when it is an allowed origin,
    so the admin frontend can read the error body.
    """
    origin = request.headers.get("origin")
    if origin and origin in settings.CORS_ORIGINS:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    return response


# Exception Handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Render error panels, form errors and other HTTP errors."""
    logger.warning(
        f"HTTPException on {request.method} {request.url.path}: "
        f"status {exc.status_code}, detail {exc.detail}"
    )

    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "detail": str(exc.detail)}

    response = JSONResponse(
        status_code=exc.status_code,
        content=content
    )
    return add_cors_headers(response, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Handle request validation errors."""
    logger.error(
        f"Validation error on {request.method} {request.url.path}:\n"
        f"  Errors: {exc.errors()}"
    )
    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation error",
            "detail": jsonable_encoder(exc.errors())
        }
    )
    return add_cors_headers(response, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}:\n"
        f"  Error: {str(exc)}\n"
        f"  Error type: {type(exc).__name__}",
        exc_info=True
    )
    response = JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )
    return add_cors_headers(response, request)


# Root Endpoints
@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/backend")
async def health_check_backend(gateway: BackendGateway = Depends(get_gateway)):
    """
    Backend health check endpoint.
    Reports whether the hostel backend answers at its root path.
    """
    try:
        status_code = await gateway.ping()
    except GatewayError as e:
        logger.error(f"Backend health check failed: {e.message}")
        return {
            "backend": "unreachable",
            "status": "unhealthy",
            "error": e.message,
            "backend_url": settings.BACKEND_URL
        }

    return {
        "backend": "reachable",
        "status": "healthy" if status_code < 500 else "unhealthy",
        "backend_status_code": status_code,
        "backend_url": settings.BACKEND_URL
    }


@app.on_event("startup")
async def startup_event():
    """Build the backend gateway on application startup."""
    logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")
    app.state.gateway = build_gateway(settings)


@app.on_event("shutdown")
async def shutdown_event():
    """Close backend connections on application shutdown."""
    gateway = getattr(app.state, "gateway", None)
    if gateway is None:
        return
    try:
        await close_gateway(gateway)
    except Exception as e:
        logger.warning(f"Error during gateway shutdown: {str(e)}")
