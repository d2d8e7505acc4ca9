import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
from fastapi.middleware.cors import CORSMiddleware

from rfpflow.database import engine
from rfpflow.errors import ExtractionError, ProcurementError
from rfpflow.models.base import Base
import rfpflow.models  # noqa: F401 - register RFP, Vendor, Proposal for create_all
from rfpflow.api.endpoints import proposals, rfps, vendors
from rfpflow.services.completion_client import ai_provider_info
from rfpflow.services.mail_service import mailer_kind

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="RFP Flow API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rfps.router)
app.include_router(vendors.router)
app.include_router(proposals.router)


@app.exception_handler(ProcurementError)
async def procurement_error_handler(request: Request, exc: ProcurementError):
    if isinstance(exc, ExtractionError):
        logger.warning("%s %s: %s raw=%r", request.method, request.url.path, exc.message, (exc.raw_text or "")[:2000])
    elif exc.status_code >= 500:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **jsonable_encoder(exc.extra)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Missing or malformed input is a 400 across the API.
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    """Health check endpoint for load balancers and readiness probes."""
    return {
        "status": "ok",
        "service": "rfpflow-backend",
        **ai_provider_info(),
        "mailer": mailer_kind(),
    }
