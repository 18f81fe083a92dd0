# main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import CORS_ORIGINS, LOG_LEVEL
from app.middleware.request_logger import RequestLoggerMiddleware
from app.routers import router as api_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Wenergy Orders API",
    description="FastAPI backend for the order lifecycle: Odoo, Firestore, Stripe and Resend",
    version="0.1.0",
)
# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggerMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Invalid request on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "message": "Invalid request",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx may carry the raw exception object, which is not serialisable
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


# Health check endpoint
@app.get("/", tags=["Health"])
async def health_check():
    return {"status": "ok", "message": "Backend is running"}


# Register routers
app.include_router(api_router)
