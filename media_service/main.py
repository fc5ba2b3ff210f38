from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import uvicorn
import logging

from media_service.categories import Category, category_config
from media_service.dependencies import create_storage_client
from media_service.image_service.service import ImageService
from media_service.settings import settings
from media_service.routers.images import router as image_router
from media_service.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level.upper())
log = logging.getLogger("media-service")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Builds the storage gateway and image service, and makes sure every
        category bucket exists (best effort).
    """
    storage = create_storage_client(settings)
    app.state.images = ImageService(storage=storage, settings=settings)
    if storage is not None:
        for category in Category:
            storage.ensure_bucket(category_config(category, settings).bucket)
    yield
    if storage is not None:
        storage.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Food Media Service",
)

# Add exception handlers
add_exception_handlers(app)

# CORS - Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add the routers
app.include_router(image_router, prefix=settings.api_prefix)

# Serve files written by the filesystem profile
if settings.storage_backend == "local":
    app.mount(
        settings.local_public_prefix,
        StaticFiles(directory=settings.local_upload_dir, check_dir=False),
        name="uploads",
    )

# Check Health
@app.get("/")
def read_root():
    """
        Default end point

    """
    return "Food Media Service is running."

if __name__ == "__main__":
    uvicorn.run("media_service.main:app", host="0.0.0.0", port=8000, reload=True)
