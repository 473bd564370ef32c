"""Entry point for running the FastAPI application."""

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

if __name__ == "__main__":
    # Run from the repository root: python -m backend.main
    # PORT/HOST override the bind address; RELOAD=0 disables auto-reload
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")
    reload = os.getenv("RELOAD", "1").strip().lower() not in {"0", "false", "no"}

    uvicorn.run(
        "backend.src.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )
