"""
FastAPI application factory for the trade ledger.

Ledger errors are translated to HTTP statuses here and nowhere else:
validation and locked-trade conflicts are 400, unknown ids 404 and FX
provider failures 502. Invariant violations are left unmapped and surface
as 500.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.ledger.api.routers import tax as tax_router
from src.ledger.api.routers import trades as trades_router
from src.ledger.config import LedgerConfig
from src.ledger.config import config as default_config
from src.ledger.errors import (
    ConflictError,
    LedgerError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from src.ledger.service.ledger_service import LedgerService

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 400,
    UpstreamError: 502,
}


async def _ledger_error(request: Request, exc: Exception) -> JSONResponse:
    status = ERROR_STATUS.get(type(exc), 400)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content={"error": str(exc)})


async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": message})


def create_app(
    service: LedgerService | None = None,
    config: LedgerConfig | None = None,
) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        service: Ledger to serve; built from config when omitted, in which
            case the app owns it and closes it on shutdown
        config: Application configuration (module default when omitted)

    Returns:
        Configured FastAPI instance

    """
    config = config or default_config
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ledger = service or LedgerService.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Ledger API ready ({config.storage.backend} storage)")
        yield
        if service is None:
            await ledger.aclose()

    app = FastAPI(title="Trade Ledger", debug=config.debug, lifespan=lifespan)
    app.state.ledger = ledger
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for error_type in ERROR_STATUS:
        app.add_exception_handler(error_type, _ledger_error)
    app.add_exception_handler(RequestValidationError, _request_error)

    app.include_router(trades_router.router)
    app.include_router(tax_router.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
