#!/usr/bin/env python3
"""
modem-bringup - HTTP API
FastAPI server exposing modem bring-up sessions
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modem_bringup import __version__
from modem_bringup.api.routes import modem as modem_routes
from modem_bringup.utils.logger import get_logger

logger = logging.getLogger(__name__)

app = FastAPI(title="modem-bringup", version=__version__)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(modem_routes.router)


@app.get("/")
async def root():
    return {"name": "modem-bringup", "version": __version__, "status": "running"}


def serve(host: str = "0.0.0.0", port: int = 8000):
    import uvicorn

    get_logger()
    logger.info(f"🚀 modem-bringup API on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    serve()
