import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette import status

from app.core.config import CORS_ORIGINS, LOG_LEVEL
from app.core.errors import LedgerError

import app.models  # ensure models are registered
from app.utils.database import engine, Base

from app.routers import (
    loans_router,
    users_router,
    stats_router,
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("nft_lending")

app = FastAPI(title="NFT Lending Ledger API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(users_router.router)
app.include_router(loans_router.router)
app.include_router(stats_router.router)


# Errors
@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError):
    logger.warning(
        "%s %s rejected: %s (%s)",
        request.method, request.url.path, exc.message, exc.__class__.__name__,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.__class__.__name__},
    )


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    # missing / malformed fields are a plain 400 for this API
    missing = [
        ".".join(str(p) for p in err.get("loc", ())[1:])
        for err in exc.errors()
        if err.get("type") == "missing"
    ]
    detail = f"Missing required fields: {', '.join(missing)}" if missing else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": detail,
            "error": "ValidationError",
            "errors": jsonable_encoder(
                [{k: err.get(k) for k in ("loc", "msg", "type")} for err in exc.errors()]
            ),
        },
    )


@app.on_event("startup")
def on_startup():
    # DEV ONLY: production schemas are managed outside the app
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready")


@app.get("/")
def root():
    return {"message": "NFT Lending Ledger is running!!"}
