"""
FastAPI application factory for the image optimizer server.

Serves transformed images from a single directory under a URL prefix.
"""

import os
import sys

# Ensure the project root is in Python path for local imports
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from contextlib import asynccontextmanager
from fastapi import FastAPI


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup/shutdown hooks."""
    yield
    # Shutdown: stop pipeline workers (cached variants die with the process)
    app.state.optimizer.close()


def create_app(config=None, optimizer=None) -> FastAPI:
    """FastAPI application factory.

    Args:
        config: Config dict (see api.config); loaded from disk when None
        optimizer: Pre-built Optimizer; built from config when None
    """
    from api.config import load_optimizer_config, build_optimizer
    from api.routers.images import router as images_router

    config = load_optimizer_config(config)
    if optimizer is None:
        optimizer = build_optimizer(config)

    app = FastAPI(
        title="Image Optimizer",
        description="On-demand resized, cropped and re-encoded images",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.optimizer = optimizer
    app.state.config = config

    prefix = config['url_prefix'].rstrip('/')
    app.include_router(images_router, prefix=prefix)

    return app
