"""FastAPI application main entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()  # Before config is read

from .middleware import register_error_handlers
from .routes import collections, extract, graphs, system
from ..mcp.server import mcp
from ..services.config import get_config
from ..services.database import init_database

logger = logging.getLogger(__name__)

# Hosted MCP HTTP endpoint (mounted Starlette app)
mcp_app = mcp.http_app(path="/")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler to run startup tasks."""
    logger.info("Running startup: initializing database...")
    db_path = init_database(get_config().database_path)
    logger.info(f"Startup complete: database ready at {db_path}")

    # Run the MCP session manager for the mounted endpoint
    async with mcp_app.lifespan(app):
        yield


app = FastAPI(
    title="Contextory API",
    description="Extracts collections, records and graphs from unstructured text",
    version="0.1.0",
    lifespan=lifespan,
)

config = get_config()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(extract.router)
app.include_router(graphs.router)
app.include_router(collections.router)
app.include_router(system.router, tags=["system"])

app.mount("/mcp", mcp_app)
logger.info("MCP HTTP endpoint mounted at /mcp")


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


__all__ = ["app"]
