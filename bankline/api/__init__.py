"""
Bankline API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging
from .dependencies import BankingSystem, get_banking_system
from .accounts import router as accounts_router
from .transfers import router as transfers_router


def create_app(system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Pre-built banking system (tests pass one backed by an
            in-memory store); built from configuration when omitted
    """
    config = system.config if system else get_config()
    setup_logging(config.log_level, "bankline", config.log_format)
    
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.banking_system.close()
    
    app = FastAPI(
        title="Bankline API",
        description="Account management and inter-account transfers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.banking_system = system or BankingSystem(config=config)
    
    @app.exception_handler(RequestValidationError)
    async def invalid_payload(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "invalid request payload"})
    
    app.include_router(accounts_router, prefix="/account", tags=["Accounts"])
    app.include_router(transfers_router, prefix="/transfer", tags=["Transfers"])
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "bankline_api",
            "version": __version__
        }
    
    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "bankline.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )


__all__ = ["BankingSystem", "create_app", "get_banking_system", "run_server"]
