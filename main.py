# main.py
import logging
import os

if os.getenv("DEBUGPY", "0") == "1":
    import debugpy
    debugpy.listen(("0.0.0.0", 5678))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from config.logging_config import configure_logging
from database import init_db
from middleware.rate_limit import limiter
from middleware.request_logging import RequestLoggingMiddleware
from routers.crypto_assessment_routes import router as crypto_assessment_router

configure_logging()
logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
]


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or DEFAULT_ORIGINS


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Validation error")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{location}: {message}" if location else message,
            "detail": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


app = FastAPI(title="Crypto Assessment API")

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(crypto_assessment_router, prefix="/api")


@app.on_event("startup")
def create_tables() -> None:
    init_db()
    logger.info("startup_complete")


@app.get("/health")
def health():
    return {"ok": True}
