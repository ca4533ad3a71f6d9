"""
VOTECHAIN — REST API.

FastAPI server exposing the vote ledger.
Main entry point for initialization and routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from votechain import __version__, config
from votechain.routes import ledger as ledger_router
from votechain.routes import votes as votes_router
from votechain.storage import get_storage_mode, open_gateway

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the configured block store on startup."""
    gateway = await open_gateway()
    logger.info("Starting with %s storage: %r", get_storage_mode().value, gateway)
    app.state.gateway = gateway
    try:
        yield
    finally:
        await gateway.close()
        app.state.gateway = None


app = FastAPI(
    title="VOTECHAIN — Vote Ledger API",
    description="Records votes as mined, hash-linked blocks and audits the chain.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(votes_router.router)
app.include_router(ledger_router.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}
