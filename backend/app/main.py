from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pathlib import Path
import logging

from app import config
from app.routers import listing, image_upload, auth_router, realtime
from app.db import create_db_and_tables
from app.errors import MarketplaceError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="UniSwap API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router)
app.include_router(listing.router)
app.include_router(image_upload.router)
app.include_router(realtime.router)

if config.STORAGE_BACKEND == "local":
    media_dir = Path(config.LOCAL_STORAGE_DIR)
    (media_dir / config.STORAGE_BUCKET).mkdir(parents=True, exist_ok=True)
    app.mount("/media", StaticFiles(directory=media_dir), name="media")


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
async def on_startup():
    create_db_and_tables()
    logger.info("Storage backend: %s, bucket: %s", config.STORAGE_BACKEND, config.STORAGE_BUCKET)


@app.get("/")
def root():
    return {"message": "UniSwap backend is live"}
