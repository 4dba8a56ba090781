from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront_search.core.config import settings
from storefront_search.core.logging_config import setup_logging
from storefront_search.core.mongo import close_mongo, connect_mongo
from storefront_search.routers.catalog import router as catalog_router
from storefront_search.routers.search import router as search_router

# Setup logging (must be done before any other imports that use logging)
setup_logging(log_level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await connect_mongo()
    yield
    # Shutdown
    await close_mongo()


app = FastAPI(
    title=settings.APP_NAME,
    description="Hybrid product search (semantic, keyword and local similarity fallback) for the storefront",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(search_router, prefix="/api/v1")
app.include_router(catalog_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
