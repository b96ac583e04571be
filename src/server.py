"""
FastAPI server for the Discovery Ranking Service.

Exposes:
  - GET /health - Health check
  - POST /matches - Ranked discovery candidates for a user
  - POST /swipes - Record a like/pass for behavioral ranking
  - GET /filters/{user_id} - Saved discovery filters
  - PUT /filters/{user_id} - Replace saved discovery filters
  - GET /docs - Interactive API documentation (Swagger UI)
"""

from dotenv import load_dotenv
load_dotenv()

import sys
import time
from typing import Annotated, Any, Dict, Optional

from fastapi import FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

# Import configuration (loads .env automatically)
from src.config import config, validate_config

# Import logging setup
from src.utils.logging_config import logger, setup_langsmith, setup_logging

from src.engine import build_engine
from src.models import PreferenceCriteria
from src.utils.errors import PRECONDITION_ERRORS, ExternalStoreError

# Setup logging
setup_logging(debug=config.DEBUG)

# ============================================================
# VALIDATE CONFIGURATION AT STARTUP
# ============================================================
try:
    config_status = validate_config()
    logger.info("Configuration validated successfully")
    for key, value in config_status.items():
        logger.info(f"  {key}: {value}")
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    sys.exit(1)

# ============================================================
# DISCOVERY ENGINE
# ============================================================
# One engine per process so swipe history accumulates across requests.
engine = build_engine()

# ============================================================
# FASTAPI APPLICATION
# ============================================================
app = FastAPI(
    title="Discovery Ranking Service",
    description="Filters, scores, and ranks dating-app candidates for discovery screens",
    version="1.0.0",
)

# ============================================================
# CORS CONFIGURATION
# ============================================================
origins = [
    "http://localhost:5173",  # Vite dev
    "http://localhost:3000",  # React/Next dev
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================
class MatchRequest(BaseModel):
    """
    Request body for /matches.

    Attributes:
        requester_id (str): User asking for discovery candidates.
        criteria (Optional[PreferenceCriteria]): Filters for this request.
                 Saved filters are used when omitted.
        limit (Optional[int]): Maximum matches to return.
    """
    requester_id: str
    criteria: Optional[PreferenceCriteria] = None
    limit: Optional[int] = None


class SwipeRequest(BaseModel):
    requester_id: str
    candidate_id: str
    is_like: bool = False
    is_super_like: bool = False


class ApiResponse(BaseModel):
    """
    Consistent response envelope.

    Attributes:
        success (bool): Whether the request succeeded
        data (dict): Endpoint payload
        error (Optional[str]): Error message if something went wrong
    """
    success: bool
    data: Dict[str, Any] = {}
    error: Optional[str] = None


def _require_token(authorization: Optional[str]) -> None:
    """Reject the request unless it carries the shared service token."""

    if not config.AI_SERVICE_TOKEN:
        return

    if authorization != f"Bearer {config.AI_SERVICE_TOKEN}":
        logger.warning("Unauthorized request: invalid or missing token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ============================================================
# MIDDLEWARE
# ============================================================
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """
    Middleware to track request processing time.

    Adds X-Process-Time header to all responses showing how long request took.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# ============================================================
# ROUTES
# ============================================================

@app.get("/health", tags=["System"])
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Called by load balancers and monitoring systems.
    """
    return {"status": "healthy"}


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    """Information about the API and how to access documentation."""
    return {
        "service": "Discovery Ranking Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.post("/matches", response_model=ApiResponse, tags=["Discovery"])
def get_matches(
    request: MatchRequest,
    authorization: Annotated[Optional[str], Header()] = None,
) -> ApiResponse:
    """
    Rank discovery candidates for a user.

    Invalid criteria or a missing requester location return 400. Store
    outages never fail the request: the response carries an unscored list
    with ``degraded`` set instead.
    """
    _require_token(authorization)

    logger.info(f"Received discovery request for {request.requester_id}")
    start_time = time.time()

    matches = engine.get_ranked_matches(
        request.requester_id, criteria=request.criteria, limit=request.limit
    )

    logger.info(
        "matches summary: requester=%s returned=%s time=%.2fs",
        request.requester_id,
        len(matches),
        time.time() - start_time,
    )
    return ApiResponse(
        success=True,
        data={
            "matches": [match.model_dump(mode="json") for match in matches],
            "degraded": any(match.degraded for match in matches),
        },
    )


@app.post("/swipes", response_model=ApiResponse, tags=["Discovery"])
def record_swipe(
    request: SwipeRequest,
    authorization: Annotated[Optional[str], Header()] = None,
) -> ApiResponse:
    """Record a like, super-like or pass; reports whether it made a match."""
    _require_token(authorization)

    candidate = engine.user_store.get_profile(request.candidate_id)
    if candidate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown candidate: {request.candidate_id}",
        )

    is_match = engine.record_swipe(
        request.requester_id,
        candidate,
        request.is_like,
        is_super_like=request.is_super_like,
    )
    return ApiResponse(
        success=True,
        data={
            "candidate_id": request.candidate_id,
            "is_like": request.is_like or request.is_super_like,
            "is_super_like": request.is_super_like,
            "is_match": is_match,
        },
    )


@app.get("/filters/{user_id}", response_model=ApiResponse, tags=["Filters"])
def get_filters(
    user_id: str,
    authorization: Annotated[Optional[str], Header()] = None,
) -> ApiResponse:
    _require_token(authorization)

    criteria = engine.load_filters(user_id)
    return ApiResponse(success=True, data={"filters": criteria.model_dump(mode="json")})


@app.put("/filters/{user_id}", response_model=ApiResponse, tags=["Filters"])
def put_filters(
    user_id: str,
    criteria: PreferenceCriteria,
    authorization: Annotated[Optional[str], Header()] = None,
) -> ApiResponse:
    _require_token(authorization)

    engine.save_filters(user_id, criteria)
    return ApiResponse(success=True, data={"filters": criteria.model_dump(mode="json")})


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTP exceptions with consistent error response format.
    """
    logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


async def precondition_exception_handler(request: Request, exc: ValueError):
    """Caller errors (bad criteria, missing location) map to 400."""
    logger.warning(f"Rejected request: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": str(exc),
            "status_code": 400
        }
    )


for _error_type in PRECONDITION_ERRORS:
    app.add_exception_handler(_error_type, precondition_exception_handler)


@app.exception_handler(ExternalStoreError)
async def store_exception_handler(request: Request, exc: ExternalStoreError):
    """Store outages on non-discovery endpoints map to 503."""
    logger.error(f"Store unavailable: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "success": False,
            "error": "Store unavailable",
            "status_code": 503
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle unexpected exceptions.

    Never returns the exception message to the client; use logging instead.
    """
    logger.error(f"Unhandled exception: {str(exc)}")
    logger.exception("Full traceback:")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal server error",
            "status_code": 500
        }
    )


# ============================================================
# STARTUP EVENTS
# ============================================================

@app.on_event("startup")
async def startup_event():
    """
    Run when the application starts.

    Configuration is already validated above (in module-level code),
    but we log it again here for visibility.
    """
    setup_langsmith()

    logger.info("=" * 60)
    logger.info("Discovery Ranking Service Starting Up")
    logger.info("=" * 60)

    logger.info(f"Firebase Project: {config.FIREBASE_PROJECT_ID or 'demo store'}")
    logger.info(f"Debug Mode: {config.DEBUG}")
    logger.info(f"Max Candidates: {config.MAX_CANDIDATES}")
    logger.info(f"Swipe History Limit: {config.SWIPE_HISTORY_LIMIT}")

    logger.info("=" * 60)
    logger.info("Service ready to handle requests")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Discovery Ranking Service Shutting Down")


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    """
    Run with: python -m uvicorn src.server:app --reload
    """
    import uvicorn
    uvicorn.run(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="info" if not config.DEBUG else "debug"
    )
