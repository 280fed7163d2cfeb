from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from inchforward.core.config import settings
from inchforward.core.database import AsyncSessionLocal, init_db
from inchforward.api.endpoints import goals, today
from inchforward.services.ai_service import SuggestionClient
from inchforward.services.session import GoalSession
from inchforward.services.store import ProgressStore
from inchforward.services.suggestions import SuggestionOrchestrator
import logging
import sys
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

logging.basicConfig(stream=sys.stdout, level=logging.INFO)
logger = logging.getLogger("inchforward")

limiter = Limiter(key_func=get_remote_address)


def build_session() -> GoalSession:
    store = ProgressStore(AsyncSessionLocal())
    orchestrator = SuggestionOrchestrator(SuggestionClient(), timeout_seconds=settings.AI_TIMEOUT_SECONDS)
    return GoalSession(store, orchestrator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    session = build_session()
    app.state.goal_session = session
    await session.resolve_today()
    logger.info(f"🚀 [STARTUP] Ready. Today: {session.state}")
    yield
    session.cancel_pending()
    await session.store.close()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

# --- GRACEFUL VALIDATION ERRORS ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        field = error.get("loc", [])[-1]
        msg = error.get("msg", "Invalid value")
        errors.append(f"{field}: {msg}")

    return JSONResponse(
        status_code=422,
        content={"detail": "Validation Error", "errors": errors}
    )

# --- GLOBAL EXCEPTION HANDLER ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"🔥 CRITICAL ERROR: {str(exc)} | Path: {request.url}")
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred. Please try again later."}
    )

@app.get("/")
@limiter.limit("20/minute")
async def health_check(request: Request):
    return {"status": "ok", "message": "InchForward backend is running"}

app.include_router(goals.router, prefix=settings.API_V1_STR)
app.include_router(today.router, prefix=settings.API_V1_STR)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
