from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from familybudget.config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from familybudget.database import engine, Base
from familybudget import models  # noqa: F401  (registers tables on Base.metadata)
from familybudget.db_helpers import (
    clear_request_user_id,
    read_user_id_from_headers,
    set_request_user_id,
)
from familybudget.exceptions import FamilyBudgetError
from familybudget.routes import api_router

logger = logging.getLogger(__name__)


if settings.auto_create_tables:
    Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Family Budget API",
    description="API for shared family budgets and recurring transactions",
    version="0.1.0",
    docs_url="/docs" if settings.api_docs_enabled else None,
    redoc_url="/redoc" if settings.api_docs_enabled else None,
    openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.middleware("http")
async def request_user_middleware(request: Request, call_next):
    """Expose the caller identity forwarded by the gateway to route handlers."""
    try:
        request_user_id = read_user_id_from_headers(request.headers)
    except HTTPException as exc:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    token = set_request_user_id(request_user_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_user_id(token)

    return response


@app.exception_handler(FamilyBudgetError)
async def family_budget_error_handler(request: Request, exc: FamilyBudgetError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")


@app.get("/")
def root():
    payload = {"message": "Family Budget API"}
    if settings.api_docs_enabled:
        payload["docs"] = "/docs"
    return payload


@app.get("/health")
def health():
    return {"status": "healthy"}
