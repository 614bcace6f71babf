"""
Ticket Scanner API - Main Application
FastAPI application for entrance ticket scanning

Run with: python main.py
Access API docs at: http://localhost:8000/docs (or https:// if certificates exist)
"""

import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from ticket_scanner import __version__
from ticket_scanner.api import HealthResponse, router
from ticket_scanner.config import load_config
from ticket_scanner.utils import setup_logging

config = load_config()
setup_logging(config['logging'].get('file'), config['logging'].get('level', 'INFO'))

# Create FastAPI app
app = FastAPI(
    title="Ticket Scanner API",
    description="Scan Sri Dalada Maligawa entrance tickets using PaddleOCR",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": "Ticket Scanner API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    return HealthResponse(version=__version__)


if __name__ == "__main__":
    import uvicorn

    # Serve over HTTPS when a certificate pair is present (camera capture on mobile needs it)
    cert_file = Path("cert.pem")
    key_file = Path("key.pem")

    if cert_file.exists() and key_file.exists():
        logger.info("HTTPS enabled (cert.pem / key.pem)")
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            ssl_keyfile=str(key_file),
            ssl_certfile=str(cert_file)
        )
    else:
        logger.warning("HTTP mode: no cert.pem / key.pem found, camera capture on mobile will not work")
        uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
