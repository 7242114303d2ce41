import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import create_tables, async_session
from app.dependencies import verify_api_key
from app.seed import seed_data
from app.routers.profiles import router as profiles_router
from app.routers.photos import router as photos_router
from app.services.staging import StagingArea
from app.utils.exceptions import register_exception_handlers

SERVICE_NAME = "profile-photos-api"
VERSION = "0.1.0"

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    async with async_session() as session:
        await seed_data(session)
    yield


app = FastAPI(
    title="Profile Photos API",
    description="Photo staging, upload and moderation for dating profiles",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.state.staging = StagingArea()

_api_key_dep = [Depends(verify_api_key)]

app.include_router(profiles_router, prefix="/api/v1", dependencies=_api_key_dep)
app.include_router(photos_router, prefix="/api/v1", dependencies=_api_key_dep)

# Public URLs of stored objects resolve here
_bucket_dir = os.path.join(settings.data_dir, settings.storage_bucket)
os.makedirs(_bucket_dir, exist_ok=True)
app.mount(f"/storage/{settings.storage_bucket}", StaticFiles(directory=_bucket_dir), name="storage")


@app.get("/health")
async def health_check():
    return {"status": "success", "data": {"service": SERVICE_NAME, "version": VERSION}, "message": None}
