import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from bazaar import config
from bazaar.models.listing import CampusMismatchError
from bazaar.routers import admin, auth, listings, pages, profile, realtime, recent, reports, saved, uploads
from bazaar.services.factory import get_store
from bazaar.services.store import NotFound, StoreError

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = get_store()
    logger.info("Campus Bazaar started in %s mode", "demo" if store.is_demo else "backend")
    yield


app = FastAPI(title="Campus Bazaar", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(CampusMismatchError)
async def campus_mismatch_handler(request: Request, exc: CampusMismatchError):
    logger.error("Campus check failed on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Register routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(profile.router, prefix="/profile", tags=["Profile"])
app.include_router(listings.router, prefix="/listings", tags=["Listings"])
app.include_router(saved.router, prefix="/saved", tags=["Saved Items"])
app.include_router(recent.router, prefix="/recent", tags=["Recently Viewed"])
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])
app.include_router(realtime.router, prefix="/realtime", tags=["Realtime"])
app.include_router(pages.router, tags=["Pages"])

# Demo mode serves uploaded images from the local data directory
_uploads_dir = os.path.join(config.get_demo_data_dir(), "uploads")
if not config.is_backend_configured():
    os.makedirs(_uploads_dir, exist_ok=True)
    app.mount("/uploads/files", StaticFiles(directory=_uploads_dir), name="uploads")
