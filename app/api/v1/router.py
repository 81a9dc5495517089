# app/api/v1/router.py
from fastapi import APIRouter
from app.modules.purchases.router import router as purchases_router
from app.modules.receiving.router import router as receiving_router
from app.modules.inventory.router import router as inventory_router, product_router
from app.modules.invoices.router import router as invoices_router

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(
    purchases_router,
    prefix="/compras",
    tags=["Compras"]
)

api_router.include_router(
    receiving_router,
    prefix="/bodega/recepciones",
    tags=["Bodega - Recepciones"]
)

api_router.include_router(
    inventory_router,
    prefix="/inventario",
    tags=["Inventario"]
)

api_router.include_router(
    product_router,
    prefix="/productos",
    tags=["Inventario"]
)

api_router.include_router(
    invoices_router,
    prefix="/facturas",
    tags=["Facturas"]
)

# Health check específico de la API
@api_router.get("/health")
async def api_health():
    return {
        "status": "healthy",
        "api_version": "v1",
        "modules": ["compras", "bodega", "inventario", "facturas"]
    }
