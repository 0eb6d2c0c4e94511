from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from receipt_scanner.config import settings
from receipt_scanner.services.ocr import release_default_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await release_default_engine()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Receipt photo to reviewable expense draft",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "0.1.0",
        "status": "running"
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

# Import routers
from receipt_scanner.routers import scan

# Include routers
app.include_router(scan.router)
