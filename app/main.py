# app/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.config.settings import settings
from app.config.database import engine
from app.core.logging import setup_logging
from app.core.middleware import setup_middleware, setup_exception_handlers
from app.api.v1.router import api_router
from app.shared.database.models import Base

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    print("🚀 Licorería API Starting...")
    print(f"📍 Version: {settings.version}")
    print(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    print(f"🔐 JWT Algorithm: {settings.algorithm}")
    print(f"⏰ Token Expire: {settings.access_token_expire_minutes} minutes")
    print(f"🗄️  Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else settings.database_url}")

    if settings.is_sqlite:
        # Esquema en caliente sólo para desarrollo local con SQLite
        Base.metadata.create_all(bind=engine)

    yield

    # Shutdown
    print("🛑 Licorería API Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Backend de Licorería: compras, recepción en bodega, inventario y facturación",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)
setup_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "🚀 Licorería API - Inventario y Facturación",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "environment": "production" if not settings.debug else "development"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
